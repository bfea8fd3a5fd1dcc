from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parksuite_fee_api.db.models import (
    BusinessSettings,
    FrequentParker,
    ParkingSession,
    ParkingSettings,
    ParkingValidation,
)
from parksuite_fee_api.schemas.fee import FeeLineItemListAdapter, FeeResult
from parksuite_fee_api.schemas.parking import (
    BusinessSettingsRecord,
    BusinessSettingsUpsertRequest,
    FrequentParkerRecord,
    ParkingSettingsUpsertRequest,
    ParkingValidationRecord,
    RateSchedule,
)
from parksuite_fee_api.services.plates import plates_probably_same


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ParkingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_open_session(self, tenant_id: str, plate_normalized: str) -> ParkingSession | None:
        stmt = (
            select(ParkingSession)
            .where(
                ParkingSession.tenant_id == tenant_id,
                ParkingSession.plate_normalized == plate_normalized,
                ParkingSession.exit_at.is_(None),
            )
            .order_by(ParkingSession.entry_at.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_near_miss_sessions(self, tenant_id: str, plate_normalized: str) -> list[ParkingSession]:
        """Open sessions whose plate is a likely misread of ``plate_normalized``; never an exact match."""
        return [
            row
            for row in await self.list_sessions(tenant_id, open_only=True)
            if row.plate_normalized != plate_normalized
            and plates_probably_same(row.plate_normalized, plate_normalized)
        ]

    async def create_entry(
        self,
        *,
        tenant_id: str,
        plate_display: str,
        plate_normalized: str,
        country_hint: str,
        technician_id: str | None,
        entry_at: datetime | None = None,
    ) -> ParkingSession:
        row = ParkingSession(
            tenant_id=tenant_id,
            plate_display=plate_display,
            plate_normalized=plate_normalized,
            country_hint=country_hint,
            technician_id=technician_id,
            entry_at=entry_at or _utcnow(),
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def get_session(self, session_id: str) -> ParkingSession | None:
        stmt = select(ParkingSession).where(ParkingSession.id == session_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def list_sessions(self, tenant_id: str, open_only: bool | None = None) -> list[ParkingSession]:
        stmt = select(ParkingSession).where(ParkingSession.tenant_id == tenant_id)
        if open_only is True:
            stmt = stmt.where(ParkingSession.exit_at.is_(None))
        elif open_only is False:
            stmt = stmt.where(ParkingSession.exit_at.is_not(None))
        stmt = stmt.order_by(ParkingSession.created_at.desc())
        return list((await self.session.execute(stmt)).scalars().all())

    async def close_session(
        self,
        session_id: str,
        exit_at: datetime,
        fee: FeeResult,
        *,
        record_visit: bool = False,
    ) -> ParkingSession | None:
        """Close a session and freeze its fee, at most once.

        The update only matches while ``exit_at IS NULL``; a concurrent duplicate
        exit gets ``None`` back and must not repeat any side effects. The frequent
        parker visit count is bumped in the same transaction as the close.
        """
        stmt = (
            update(ParkingSession)
            .where(ParkingSession.id == session_id, ParkingSession.exit_at.is_(None))
            .values(
                exit_at=exit_at,
                calculated_fee=fee.final_fee,
                fee_line_items=FeeLineItemListAdapter.dump_python(fee.line_items, mode="json"),
                updated_at=_utcnow(),
            )
            .returning(ParkingSession)
            .execution_options(synchronize_session=False)
        )
        closed = (await self.session.execute(stmt)).scalar_one_or_none()
        if closed is None:
            await self.session.commit()
            return None
        if record_visit:
            await self.session.execute(
                update(FrequentParker)
                .where(
                    FrequentParker.tenant_id == closed.tenant_id,
                    FrequentParker.plate_normalized == closed.plate_normalized,
                )
                .values(visit_count=FrequentParker.visit_count + 1, updated_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
        await self.session.commit()
        await self.session.refresh(closed)
        return closed

    async def load_rate_schedule(self, tenant_id: str) -> RateSchedule | None:
        row = await self._get_parking_settings(tenant_id)
        return RateSchedule.model_validate(row) if row else None

    async def load_business_settings(self, tenant_id: str) -> BusinessSettingsRecord | None:
        row = await self._get_business_settings(tenant_id)
        return BusinessSettingsRecord.model_validate(row) if row else None

    async def _get_parking_settings(self, tenant_id: str) -> ParkingSettings | None:
        stmt = select(ParkingSettings).where(ParkingSettings.tenant_id == tenant_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def _get_business_settings(self, tenant_id: str) -> BusinessSettings | None:
        stmt = select(BusinessSettings).where(BusinessSettings.tenant_id == tenant_id)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def upsert_parking_settings(self, payload: ParkingSettingsUpsertRequest) -> ParkingSettings:
        values = payload.model_dump(exclude={"tenant_id"})
        row = await self._get_parking_settings(payload.tenant_id)
        if row is None:
            row = ParkingSettings(tenant_id=payload.tenant_id, **values)
            self.session.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = _utcnow()
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def upsert_business_settings(self, payload: BusinessSettingsUpsertRequest) -> BusinessSettings:
        values = payload.model_dump(exclude={"tenant_id"})
        row = await self._get_business_settings(payload.tenant_id)
        if row is None:
            row = BusinessSettings(tenant_id=payload.tenant_id, **values)
            self.session.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = _utcnow()
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def get_parker(self, tenant_id: str, plate_normalized: str) -> FrequentParkerRecord | None:
        row = await self._get_parker_row(tenant_id, plate_normalized)
        return FrequentParkerRecord.model_validate(row) if row else None

    async def _get_parker_row(self, tenant_id: str, plate_normalized: str) -> FrequentParker | None:
        stmt = select(FrequentParker).where(
            FrequentParker.tenant_id == tenant_id,
            FrequentParker.plate_normalized == plate_normalized,
        ).execution_options(populate_existing=True)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def upsert_frequent_parker(
        self,
        *,
        tenant_id: str,
        plate_normalized: str,
        customer_name: str | None,
        is_vip: bool,
        monthly_pass_expiry: datetime | None,
    ) -> FrequentParker:
        row = await self._get_parker_row(tenant_id, plate_normalized)
        if row is None:
            row = FrequentParker(
                tenant_id=tenant_id,
                plate_normalized=plate_normalized,
                customer_name=customer_name,
                is_vip=is_vip,
                visit_count=0,
                monthly_pass_expiry=monthly_pass_expiry,
            )
            self.session.add(row)
        else:
            row.customer_name = customer_name
            row.is_vip = is_vip
            row.monthly_pass_expiry = monthly_pass_expiry
            row.updated_at = _utcnow()
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def list_validations(self, session_id: str) -> list[ParkingValidationRecord]:
        stmt = (
            select(ParkingValidation)
            .where(ParkingValidation.session_id == session_id)
            .order_by(ParkingValidation.id)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [ParkingValidationRecord.model_validate(row) for row in rows]

    async def add_validation(self, session_id: str, payload: ParkingValidationRecord) -> ParkingValidation:
        row = ParkingValidation(session_id=session_id, **payload.model_dump())
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return row
