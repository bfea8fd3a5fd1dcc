from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from parksuite_fee_api.schemas.parking import (
    BusinessSettingsRecord,
    FrequentParkerRecord,
    ParkingSessionRecord,
    ParkingSessionResponse,
    ParkingValidationRecord,
    RateSchedule,
)


class ResolvedPricingContext(BaseModel):
    """已补齐默认值的计费上下文，计费引擎只读取该对象。"""

    model_config = ConfigDict(frozen=True)

    hourly_rate: int = Field(ge=0, description="小时费率")
    first_hour_rate: int = Field(ge=0, description="首小时费率（已回落到小时费率）")
    daily_max_rate: int = Field(ge=0, description="每24小时封顶金额")
    grace_period_minutes: int = Field(ge=0, description="免费宽限分钟数")
    night_rate: int | None = Field(default=None, ge=0, description="夜间首小时费率，空表示未配置")
    night_start_hour: int = Field(ge=0, le=23, description="夜间开始小时")
    night_end_hour: int = Field(ge=0, le=23, description="夜间结束小时")
    weekend_rate: int | None = Field(default=None, ge=0, description="周末首小时费率，空表示未配置")
    timezone: str = Field(description="判定夜间/周末所用时区")
    tax_rate: int = Field(ge=0, description="税率（基点）")
    tax_label: str = Field(description="税项名称")
    currency: str = Field(description="币种代码")
    locale: str = Field(description="区域设置")


class BaseLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(description="明细名称")
    type: str = Field(description="明细类型")
    amount: int = Field(description="金额（正数为收费，负数为优惠）")


class ChargeLineItem(BaseLineItem):
    type: Literal["charge"] = "charge"
    amount: int = Field(ge=0, description="收费金额")


class DiscountLineItem(BaseLineItem):
    type: Literal["discount"] = "discount"
    amount: int = Field(le=0, description="优惠金额（负数）")


class TaxLineItem(BaseLineItem):
    type: Literal["tax"] = "tax"
    amount: int = Field(ge=0, description="税额")


FeeLineItem = Annotated[ChargeLineItem | DiscountLineItem | TaxLineItem, Field(discriminator="type")]
FeeLineItemListAdapter = TypeAdapter(list[FeeLineItem])


class LineItemTotals(BaseModel):
    """按类型重新汇总的明细金额，用于审计。"""

    charges: int = Field(description="收费合计")
    discounts: int = Field(description="优惠合计（正数）")
    tax: int = Field(description="税额合计")

    @property
    def subtotal(self) -> int:
        return self.charges - self.discounts

    @property
    def total(self) -> int:
        return self.subtotal + self.tax


class FeeResult(BaseModel):
    """计费结果（含分项明细）。"""

    duration_minutes: int = Field(description="停车时长（分钟）")
    duration_formatted: str = Field(description="停车时长（展示文本）")
    line_items: list[FeeLineItem] = Field(default_factory=list, description="费用明细")
    base_fee: int = Field(default=0, description="封顶后的基础费用")
    subtotal: int = Field(default=0, description="税前小计")
    discount: int = Field(default=0, description="优惠合计（含封顶节省）")
    tax: int = Field(default=0, description="税额")
    final_fee: int = Field(default=0, description="应付金额")
    currency: str = Field(description="币种代码")
    currency_symbol: str = Field(description="币种符号")
    locale: str = Field(description="区域设置")
    is_grace_period: bool = Field(default=False, description="是否处于免费宽限期")
    has_monthly_pass: bool = Field(default=False, description="是否持有有效月卡")
    breakdown: str = Field(default="", description="费用说明文本")


class ParkerInfo(BaseModel):
    customer_name: str | None = Field(default=None, description="客户姓名")
    is_vip: bool = Field(default=False, description="是否VIP")
    visit_count: int = Field(default=0, description="到访次数")


class EnrichedSession(ParkingSessionRecord):
    """附带实时费用估算的停车会话（仅用于展示）。"""

    duration_minutes: int = Field(description="停车时长（分钟）")
    duration_formatted: str = Field(description="停车时长（展示文本）")
    estimated_fee: int = Field(description="预估费用（不含税）")
    is_grace_period: bool = Field(description="是否处于免费宽限期")
    has_monthly_pass: bool = Field(description="是否持有有效月卡")
    fee_breakdown: str = Field(description="费用说明文本")
    currency: str = Field(description="币种代码")
    currency_symbol: str = Field(description="币种符号")
    parker_info: ParkerInfo | None = Field(default=None, description="常客信息")


class FeeSimulateRequest(BaseModel):
    """计费模拟请求（不读写存储）。"""

    entry_at: datetime = Field(description="入场时间")
    exit_at: datetime | None = Field(default=None, description="离场时间，空表示按当前时间估算")
    schedule: RateSchedule | None = Field(default=None, description="计费配置，空表示使用默认值")
    business: BusinessSettingsRecord | None = Field(default=None, description="商户配置，空表示不计税")
    parker: FrequentParkerRecord | None = Field(default=None, description="常客档案")
    validations: list[ParkingValidationRecord] = Field(default_factory=list, description="验证优惠列表（按顺序应用）")
    now: datetime | None = Field(default=None, description="计算基准时间，空表示当前时间")

    @field_validator("entry_at", "exit_at", "now")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        # 未带时区的时间按UTC处理，避免与带时区时间混合比较
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class ParkingExitResponse(BaseModel):
    """车辆离场响应。"""

    session: ParkingSessionResponse = Field(description="已关闭的停车会话")
    fee: FeeResult = Field(description="离场计费结果")
