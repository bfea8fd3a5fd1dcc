from __future__ import annotations

from datetime import datetime
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

CountryHint = Literal["FR", "ZA", "CD", "OTHER"]


class ParkingSessionRecord(BaseModel):
    """停车会话（单次入场到离场）。"""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = Field(default=None, description="会话ID")
    tenant_id: str | None = Field(default=None, description="租户ID")
    plate_display: str = Field(default="", description="展示车牌")
    plate_normalized: str = Field(default="", description="归一化车牌")
    country_hint: str = Field(default="OTHER", description="国家提示")
    entry_at: datetime = Field(description="入场时间")
    exit_at: datetime | None = Field(default=None, description="离场时间，空表示会话未结束")
    calculated_fee: int | None = Field(default=None, description="离场时冻结的费用（最小货币单位）")
    technician_id: str | None = Field(default=None, description="操作员ID")


class RateSchedule(BaseModel):
    """停车计费配置，金额均为最小货币单位（如分）。"""

    model_config = ConfigDict(from_attributes=True)

    hourly_rate: int = Field(default=500, ge=0, description="小时费率")
    first_hour_rate: int | None = Field(default=None, ge=0, description="首小时费率，空表示使用小时费率")
    daily_max_rate: int = Field(default=3000, ge=0, description="每24小时封顶金额")
    grace_period_minutes: int = Field(default=15, ge=0, description="免费宽限分钟数")
    night_rate: int | None = Field(default=None, ge=0, description="夜间首小时费率")
    night_start_hour: int | None = Field(default=None, ge=0, le=23, description="夜间开始小时（包含）")
    night_end_hour: int | None = Field(default=None, ge=0, le=23, description="夜间结束小时（不包含）")
    weekend_rate: int | None = Field(default=None, ge=0, description="周末首小时费率")
    timezone: str = Field(default="UTC", description="判定夜间/周末所用时区")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value


class BusinessSettingsRecord(BaseModel):
    """商户级配置：税率、币种、区域。"""

    model_config = ConfigDict(from_attributes=True)

    tax_rate: int = Field(default=0, ge=0, description="税率，基点表示（1500 = 15.00%）")
    tax_label: str = Field(default="Tax", description="税项名称")
    currency: str = Field(default="USD", min_length=3, max_length=3, description="币种代码")
    locale: str = Field(default="en-US", description="区域设置")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        return value.upper()


class FrequentParkerRecord(BaseModel):
    """常客档案，按归一化车牌关联。"""

    model_config = ConfigDict(from_attributes=True)

    plate_normalized: str = Field(default="", description="归一化车牌")
    customer_name: str | None = Field(default=None, description="客户姓名")
    is_vip: bool = Field(default=False, description="是否VIP（享受10%折扣）")
    visit_count: int = Field(default=0, ge=0, description="到访次数")
    monthly_pass_expiry: datetime | None = Field(default=None, description="月卡到期时间")


class ParkingValidationRecord(BaseModel):
    """第三方停车验证优惠。"""

    model_config = ConfigDict(from_attributes=True)

    validator_name: str = Field(description="验证方名称")
    discount_percent: int = Field(default=0, ge=0, le=100, description="折扣百分比")
    discount_amount: int = Field(default=0, ge=0, description="固定减免金额（最小货币单位）")


class ParkingEntryRequest(BaseModel):
    """车辆入场请求。"""

    tenant_id: str = Field(description="租户ID")
    plate_display: str = Field(min_length=1, description="车牌")
    country_hint: CountryHint = Field(default="OTHER", description="国家提示")
    technician_id: str | None = Field(default=None, description="操作员ID")

    @field_validator("plate_display")
    @classmethod
    def validate_plate(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Plate is required")
        return value


class ParkingExitRequest(BaseModel):
    """车辆离场请求。"""

    tenant_id: str = Field(description="租户ID")
    plate_display: str = Field(min_length=1, description="车牌")


class ParkingSessionResponse(ParkingSessionRecord):
    """停车会话响应。"""

    id: str = Field(description="会话ID")
    tenant_id: str = Field(description="租户ID")
    fee_line_items: list[dict] | None = Field(default=None, description="离场时冻结的费用明细")


class ParkingSettingsUpsertRequest(RateSchedule):
    """停车计费配置更新请求。"""

    tenant_id: str = Field(description="租户ID")


class BusinessSettingsUpsertRequest(BusinessSettingsRecord):
    """商户配置更新请求。"""

    tenant_id: str = Field(description="租户ID")


class FrequentParkerUpsertRequest(BaseModel):
    """常客档案新增或更新请求。"""

    tenant_id: str = Field(description="租户ID")
    plate_display: str = Field(min_length=1, description="车牌")
    customer_name: str | None = Field(default=None, description="客户姓名")
    is_vip: bool = Field(default=False, description="是否VIP")
    monthly_pass_expiry: datetime | None = Field(default=None, description="月卡到期时间")


class ParkingValidationCreateRequest(ParkingValidationRecord):
    """为停车会话添加验证优惠。"""
