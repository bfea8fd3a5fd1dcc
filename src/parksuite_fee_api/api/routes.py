from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from parksuite_fee_api.api.deps import get_currency_formatter
from parksuite_fee_api.config import settings
from parksuite_fee_api.db.models import BusinessSettings, FrequentParker, ParkingSession, ParkingSettings
from parksuite_fee_api.db.session import get_db_session
from parksuite_fee_api.repositories.parking import ParkingRepository
from parksuite_fee_api.schemas.fee import (
    EnrichedSession,
    FeeResult,
    FeeSimulateRequest,
    ParkingExitResponse,
    ResolvedPricingContext,
)
from parksuite_fee_api.schemas.parking import (
    BusinessSettingsRecord,
    BusinessSettingsUpsertRequest,
    FrequentParkerRecord,
    FrequentParkerUpsertRequest,
    ParkingEntryRequest,
    ParkingExitRequest,
    ParkingSessionRecord,
    ParkingSessionResponse,
    ParkingSettingsUpsertRequest,
    ParkingValidationCreateRequest,
    ParkingValidationRecord,
    RateSchedule,
)
from parksuite_fee_api.services.currency import CurrencyFormatter
from parksuite_fee_api.services.enrichment import enrich_session
from parksuite_fee_api.services.fee_engine import calculate_fee
from parksuite_fee_api.services.plates import display_plate, normalize_plate
from parksuite_fee_api.services.pricing_context import resolve_pricing_context

router = APIRouter(prefix="/api/v1", tags=["fee-api"])


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def _load_context(repo: ParkingRepository, tenant_id: str) -> ResolvedPricingContext:
    schedule = await repo.load_rate_schedule(tenant_id)
    business = await repo.load_business_settings(tenant_id)
    return resolve_pricing_context(
        schedule,
        business,
        default_currency=settings.default_currency,
        default_locale=settings.default_locale,
    )


@router.post(
    "/parking/entry",
    response_model=ParkingSessionResponse,
    summary="车辆入场",
    description="归一化车牌后创建停车会话；同一车牌已有未结束会话时返回409。",
)
async def parking_entry(
    payload: ParkingEntryRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ParkingSession:
    """车辆入场接口。"""
    logger.info("parking_entry.request payload={}", payload.model_dump(mode="json"))
    repo = ParkingRepository(db)
    normalized = normalize_plate(payload.plate_display)
    if not normalized:
        raise HTTPException(status_code=400, detail="Plate is required")

    existing = await repo.find_open_session(payload.tenant_id, normalized)
    if existing:
        logger.warning(
            "parking_entry.conflict tenant_id={} plate={} session_id={}",
            payload.tenant_id,
            normalized,
            existing.id,
        )
        raise HTTPException(status_code=409, detail="Vehicle already has an open parking session")

    row = await repo.create_entry(
        tenant_id=payload.tenant_id,
        plate_display=display_plate(payload.plate_display),
        plate_normalized=normalized,
        country_hint=payload.country_hint,
        technician_id=payload.technician_id,
    )
    logger.info("parking_entry.response session_id={} plate={}", row.id, row.plate_normalized)
    return row


@router.post(
    "/parking/exit",
    response_model=ParkingExitResponse,
    summary="车辆离场",
    description=(
        "按车牌精确匹配未结束会话，计算含税费用并关闭会话，费用在关闭时一次性冻结；"
        "仅有疑似识别错误的车牌时返回409及候选车牌，不自动关闭；并发重复离场返回409。"
    ),
)
async def parking_exit(
    payload: ParkingExitRequest,
    db: AsyncSession = Depends(get_db_session),
    formatter: CurrencyFormatter = Depends(get_currency_formatter),
) -> ParkingExitResponse:
    """车辆离场接口。"""
    logger.info("parking_exit.request payload={}", payload.model_dump(mode="json"))
    repo = ParkingRepository(db)
    normalized = normalize_plate(payload.plate_display)
    row = await repo.find_open_session(payload.tenant_id, normalized)
    if not row:
        near_misses = await repo.find_near_miss_sessions(payload.tenant_id, normalized)
        if near_misses:
            candidates = [item.plate_normalized for item in near_misses]
            logger.warning(
                "parking_exit.near_miss tenant_id={} plate={} candidates={}",
                payload.tenant_id,
                normalized,
                candidates,
            )
            raise HTTPException(
                status_code=409,
                detail={
                    "message": "No exact plate match; confirm one of the candidate plates",
                    "candidates": candidates,
                },
            )
        logger.warning("parking_exit.not_found tenant_id={} plate={}", payload.tenant_id, normalized)
        raise HTTPException(status_code=404, detail="No open parking session found for this plate")

    exit_at = _utcnow()
    context = await _load_context(repo, payload.tenant_id)
    parker = await repo.get_parker(payload.tenant_id, row.plate_normalized)
    validations = await repo.list_validations(row.id)
    record = ParkingSessionRecord.model_validate(row).model_copy(update={"exit_at": exit_at})
    fee = calculate_fee(record, context, parker, validations, formatter=formatter, now=exit_at)

    session_id = row.id
    closed = await repo.close_session(session_id, exit_at, fee, record_visit=parker is not None)
    if closed is None:
        logger.warning("parking_exit.already_closed session_id={}", session_id)
        raise HTTPException(status_code=409, detail="Parking session already closed")

    logger.info(
        "parking_exit.response session_id={} duration_minutes={} final_fee={} currency={}",
        closed.id,
        fee.duration_minutes,
        fee.final_fee,
        fee.currency,
    )
    return ParkingExitResponse(session=ParkingSessionResponse.model_validate(closed), fee=fee)


@router.get(
    "/parking/sessions",
    response_model=list[ParkingSessionResponse],
    summary="查询停车会话列表",
    description="支持按是否未结束筛选。",
)
async def list_parking_sessions(
    tenant_id: str = Query(),
    open: bool | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> list[ParkingSession]:
    """停车会话列表查询接口。"""
    logger.info("list_parking_sessions.request tenant_id={} open={}", tenant_id, open)
    rows = await ParkingRepository(db).list_sessions(tenant_id, open_only=open)
    logger.info("list_parking_sessions.response count={}", len(rows))
    return rows


@router.get(
    "/parking/sessions/live",
    response_model=list[EnrichedSession],
    summary="查询在场车辆及实时预估费用",
    description="返回未结束会话，并附带不含税的实时费用估算。",
)
async def list_live_sessions(
    tenant_id: str = Query(),
    db: AsyncSession = Depends(get_db_session),
    formatter: CurrencyFormatter = Depends(get_currency_formatter),
) -> list[EnrichedSession]:
    """在场车辆实时估价接口。"""
    logger.info("list_live_sessions.request tenant_id={}", tenant_id)
    repo = ParkingRepository(db)
    context = await _load_context(repo, tenant_id)
    now = _utcnow()
    items: list[EnrichedSession] = []
    for row in await repo.list_sessions(tenant_id, open_only=True):
        parker = await repo.get_parker(tenant_id, row.plate_normalized)
        items.append(
            enrich_session(
                ParkingSessionRecord.model_validate(row),
                context,
                parker,
                formatter=formatter,
                now=now,
            )
        )
    logger.info("list_live_sessions.response count={}", len(items))
    return items


@router.get(
    "/parking/sessions/{session_id}/fee",
    response_model=FeeResult,
    summary="查询未结束会话的预估费用",
    description="按当前时间估算含税费用（含验证优惠与VIP折扣），不落库。",
)
async def estimate_session_fee(
    session_id: str,
    db: AsyncSession = Depends(get_db_session),
    formatter: CurrencyFormatter = Depends(get_currency_formatter),
) -> FeeResult:
    """会话费用估算接口。"""
    logger.info("estimate_session_fee.request session_id={}", session_id)
    repo = ParkingRepository(db)
    row = await repo.get_session(session_id)
    if not row:
        logger.warning("estimate_session_fee.not_found session_id={}", session_id)
        raise HTTPException(status_code=404, detail="Parking session not found")
    if row.exit_at is not None:
        logger.warning("estimate_session_fee.closed session_id={}", session_id)
        raise HTTPException(status_code=409, detail="Parking session already closed; its fee is frozen")

    context = await _load_context(repo, row.tenant_id)
    parker = await repo.get_parker(row.tenant_id, row.plate_normalized)
    validations = await repo.list_validations(row.id)
    fee = calculate_fee(
        ParkingSessionRecord.model_validate(row),
        context,
        parker,
        validations,
        formatter=formatter,
        now=_utcnow(),
    )
    logger.info("estimate_session_fee.response session_id={} final_fee={}", session_id, fee.final_fee)
    return fee


@router.post(
    "/parking/sessions/{session_id}/validations",
    response_model=ParkingValidationRecord,
    summary="添加停车验证优惠",
    description="为未结束会话添加第三方验证优惠，按添加顺序参与计费。",
)
async def add_parking_validation(
    session_id: str,
    payload: ParkingValidationCreateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ParkingValidationRecord:
    """停车验证优惠添加接口。"""
    logger.info(
        "add_parking_validation.request session_id={} payload={}",
        session_id,
        payload.model_dump(mode="json"),
    )
    repo = ParkingRepository(db)
    row = await repo.get_session(session_id)
    if not row:
        logger.warning("add_parking_validation.not_found session_id={}", session_id)
        raise HTTPException(status_code=404, detail="Parking session not found")
    if row.exit_at is not None:
        logger.warning("add_parking_validation.closed session_id={}", session_id)
        raise HTTPException(status_code=409, detail="Parking session already closed")

    validation = await repo.add_validation(session_id, payload)
    logger.info("add_parking_validation.response session_id={} validation_id={}", session_id, validation.id)
    return ParkingValidationRecord.model_validate(validation)


@router.put(
    "/parking/settings",
    response_model=RateSchedule,
    summary="更新停车计费配置",
)
async def upsert_parking_settings(
    payload: ParkingSettingsUpsertRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ParkingSettings:
    """停车计费配置接口。"""
    logger.info("upsert_parking_settings.request payload={}", payload.model_dump(mode="json"))
    row = await ParkingRepository(db).upsert_parking_settings(payload)
    logger.info("upsert_parking_settings.response tenant_id={}", row.tenant_id)
    return row


@router.get(
    "/parking/settings",
    response_model=RateSchedule,
    summary="查询停车计费配置",
    description="未配置时返回默认计费配置。",
)
async def get_parking_settings(
    tenant_id: str = Query(),
    db: AsyncSession = Depends(get_db_session),
) -> RateSchedule:
    """停车计费配置查询接口。"""
    schedule = await ParkingRepository(db).load_rate_schedule(tenant_id)
    if schedule is None:
        logger.info("get_parking_settings.defaults tenant_id={}", tenant_id)
        return RateSchedule()
    return schedule


@router.put(
    "/business-settings",
    response_model=BusinessSettingsRecord,
    summary="更新商户税率/币种配置",
)
async def upsert_business_settings(
    payload: BusinessSettingsUpsertRequest,
    db: AsyncSession = Depends(get_db_session),
) -> BusinessSettings:
    """商户配置接口。"""
    logger.info("upsert_business_settings.request payload={}", payload.model_dump(mode="json"))
    row = await ParkingRepository(db).upsert_business_settings(payload)
    logger.info("upsert_business_settings.response tenant_id={}", row.tenant_id)
    return row


@router.get(
    "/business-settings",
    response_model=BusinessSettingsRecord,
    summary="查询商户税率/币种配置",
)
async def get_business_settings(
    tenant_id: str = Query(),
    db: AsyncSession = Depends(get_db_session),
) -> BusinessSettingsRecord:
    """商户配置查询接口。"""
    business = await ParkingRepository(db).load_business_settings(tenant_id)
    if business is None:
        logger.warning("get_business_settings.not_found tenant_id={}", tenant_id)
        raise HTTPException(status_code=404, detail="Business settings not found")
    return business


@router.put(
    "/frequent-parkers",
    response_model=FrequentParkerRecord,
    summary="新增或更新常客档案",
    description="按归一化车牌维护VIP标记与月卡到期时间。",
)
async def upsert_frequent_parker(
    payload: FrequentParkerUpsertRequest,
    db: AsyncSession = Depends(get_db_session),
) -> FrequentParker:
    """常客档案接口。"""
    logger.info("upsert_frequent_parker.request payload={}", payload.model_dump(mode="json"))
    normalized = normalize_plate(payload.plate_display)
    if not normalized:
        raise HTTPException(status_code=400, detail="Plate is required")
    row = await ParkingRepository(db).upsert_frequent_parker(
        tenant_id=payload.tenant_id,
        plate_normalized=normalized,
        customer_name=payload.customer_name,
        is_vip=payload.is_vip,
        monthly_pass_expiry=payload.monthly_pass_expiry,
    )
    logger.info("upsert_frequent_parker.response plate={} is_vip={}", row.plate_normalized, row.is_vip)
    return row


@router.post(
    "/parking/fee/simulate",
    response_model=FeeResult,
    summary="模拟停车计费",
    description="直接传入计费配置、商户配置、常客与验证优惠，返回分项计费结果，不读写存储。",
)
async def simulate_parking_fee(
    payload: FeeSimulateRequest,
    formatter: CurrencyFormatter = Depends(get_currency_formatter),
) -> FeeResult:
    """计费模拟接口。"""
    logger.info("simulate_parking_fee.request payload={}", payload.model_dump(mode="json"))
    if payload.exit_at is not None and payload.exit_at < payload.entry_at:
        raise HTTPException(status_code=400, detail="exit_at must not be earlier than entry_at")

    context = resolve_pricing_context(
        payload.schedule,
        payload.business,
        default_currency=settings.default_currency,
        default_locale=settings.default_locale,
    )
    session = ParkingSessionRecord(entry_at=payload.entry_at, exit_at=payload.exit_at)
    fee = calculate_fee(
        session,
        context,
        payload.parker,
        payload.validations,
        formatter=formatter,
        now=payload.now,
    )
    logger.info(
        "simulate_parking_fee.response duration_minutes={} final_fee={} line_item_count={}",
        fee.duration_minutes,
        fee.final_fee,
        len(fee.line_items),
    )
    return fee
