from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parksuite_fee_api.db.base import Base


def _utcnow_utc() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid4().hex


class ParkingSession(Base):
    __tablename__ = "parking_sessions"
    __table_args__ = (
        Index("ix_parking_sessions_tenant_plate_open", "tenant_id", "plate_normalized", "exit_at"),
        {"comment": "停车会话表"},
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id, comment="会话ID")
    tenant_id: Mapped[str] = mapped_column(String(64), index=True, comment="租户ID")
    plate_display: Mapped[str] = mapped_column(String(50), comment="展示车牌")
    plate_normalized: Mapped[str] = mapped_column(String(50), index=True, comment="归一化车牌")
    country_hint: Mapped[str] = mapped_column(String(8), default="OTHER", comment="国家提示")
    entry_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="入场时间")
    exit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, comment="离场时间")
    calculated_fee: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="离场时冻结的费用（最小货币单位）")
    fee_line_items: Mapped[list[dict] | None] = mapped_column(JSONB, nullable=True, comment="离场时冻结的费用明细")
    technician_id: Mapped[str | None] = mapped_column(String(64), nullable=True, comment="操作员ID")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="创建时间")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="更新时间"
    )
    validations: Mapped[list["ParkingValidation"]] = relationship(
        back_populates="session", cascade="all, delete-orphan", order_by="ParkingValidation.id"
    )


class ParkingSettings(Base):
    __tablename__ = "parking_settings"
    __table_args__ = ({"comment": "停车计费配置表（按租户）"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="主键ID")
    tenant_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, comment="租户ID")
    hourly_rate: Mapped[int] = mapped_column(Integer, default=500, comment="小时费率")
    first_hour_rate: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="首小时费率")
    daily_max_rate: Mapped[int] = mapped_column(Integer, default=3000, comment="每日封顶")
    grace_period_minutes: Mapped[int] = mapped_column(Integer, default=15, comment="免费宽限分钟")
    night_rate: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="夜间首小时费率")
    night_start_hour: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="夜间开始小时")
    night_end_hour: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="夜间结束小时")
    weekend_rate: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="周末首小时费率")
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", comment="计费时区")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="创建时间")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="更新时间"
    )


class BusinessSettings(Base):
    __tablename__ = "business_settings"
    __table_args__ = ({"comment": "商户配置表（税率/币种/区域）"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="主键ID")
    tenant_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, comment="租户ID")
    tax_rate: Mapped[int] = mapped_column(Integer, default=0, comment="税率（基点，1500=15%）")
    tax_label: Mapped[str] = mapped_column(String(32), default="Tax", comment="税项名称")
    currency: Mapped[str] = mapped_column(String(3), default="USD", comment="币种")
    locale: Mapped[str] = mapped_column(String(16), default="en-US", comment="区域设置")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="创建时间")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="更新时间"
    )


class FrequentParker(Base):
    __tablename__ = "frequent_parkers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "plate_normalized", name="uq_frequent_parkers_tenant_id_plate_normalized"),
        {"comment": "常客表"},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="主键ID")
    tenant_id: Mapped[str] = mapped_column(String(64), index=True, comment="租户ID")
    plate_normalized: Mapped[str] = mapped_column(String(50), index=True, comment="归一化车牌")
    customer_name: Mapped[str | None] = mapped_column(String(128), nullable=True, comment="客户姓名")
    is_vip: Mapped[bool] = mapped_column(Boolean, default=False, comment="是否VIP")
    visit_count: Mapped[int] = mapped_column(Integer, default=0, comment="到访次数")
    monthly_pass_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="月卡到期时间"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="创建时间")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="更新时间"
    )


class ParkingValidation(Base):
    __tablename__ = "parking_validations"
    __table_args__ = ({"comment": "停车验证（第三方优惠）表"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="主键ID")
    session_id: Mapped[str] = mapped_column(
        ForeignKey("parking_sessions.id", ondelete="CASCADE"), index=True, comment="所属停车会话ID"
    )
    validator_name: Mapped[str] = mapped_column(String(128), comment="验证方名称")
    discount_percent: Mapped[int] = mapped_column(Integer, default=0, comment="折扣百分比")
    discount_amount: Mapped[int] = mapped_column(Integer, default=0, comment="固定减免金额")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="创建时间")
    session: Mapped["ParkingSession"] = relationship(back_populates="validations")
