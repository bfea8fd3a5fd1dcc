from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import assert_never
from zoneinfo import ZoneInfo

from loguru import logger

from parksuite_fee_api.schemas.fee import (
    ChargeLineItem,
    DiscountLineItem,
    FeeLineItem,
    FeeResult,
    LineItemTotals,
    ResolvedPricingContext,
    TaxLineItem,
)
from parksuite_fee_api.schemas.parking import (
    FrequentParkerRecord,
    ParkingSessionRecord,
    ParkingValidationRecord,
)
from parksuite_fee_api.services.currency import CurrencyFormatter
from parksuite_fee_api.services.duration import ParkingDuration, align_awareness, calculate_duration, now_like

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * 60
VIP_DISCOUNT_PERCENT = 10
BASIS_POINTS = 10000
WEEKEND_ISO_DAYS = (6, 7)


@lru_cache(maxsize=32)
def _load_timezone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def _to_named_timezone(ts: datetime, tz_name: str) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(_load_timezone(tz_name))


def _ceil_div(value: int, divisor: int) -> int:
    return -(-value // divisor)


def _in_night_window(hour: int, start_hour: int, end_hour: int) -> bool:
    if start_hour == end_hour:
        return False
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


def _pass_is_active(expiry: datetime, now: datetime) -> bool:
    expiry, now = align_awareness(expiry, now)
    return expiry > now


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def format_basis_points(rate: int) -> str:
    percent = (Decimal(rate) / 100).normalize()
    return f"{percent:f}%"


class _FeeLedger:
    """Collects line items and the human breakdown in application order."""

    def __init__(self, context: ResolvedPricingContext, formatter: CurrencyFormatter) -> None:
        self.context = context
        self.formatter = formatter
        self.line_items: list[FeeLineItem] = []
        self.parts: list[str] = []

    def money(self, amount: int) -> str:
        return self.formatter.format(amount, self.context.currency, self.context.locale)

    def _record(self, item: FeeLineItem) -> None:
        self.line_items.append(item)
        self.parts.append(f"{item.label}: {self.money(item.amount)}")

    def charge(self, label: str, amount: int) -> int:
        self._record(ChargeLineItem(label=label, amount=amount))
        return amount

    def discount(self, label: str, amount: int) -> int:
        self._record(DiscountLineItem(label=label, amount=-amount))
        return amount

    def tax(self, label: str, amount: int) -> int:
        self._record(TaxLineItem(label=label, amount=amount))
        return amount

    def breakdown(self, final_fee: int) -> str:
        return " | ".join([*self.parts, f"Total: {self.money(final_fee)}"])


def audit_line_items(line_items: Sequence[FeeLineItem]) -> LineItemTotals:
    charges = discounts = tax = 0
    for item in line_items:
        if isinstance(item, ChargeLineItem):
            charges += item.amount
        elif isinstance(item, DiscountLineItem):
            discounts += -item.amount
        elif isinstance(item, TaxLineItem):
            tax += item.amount
        else:
            assert_never(item)
    return LineItemTotals(charges=charges, discounts=discounts, tax=tax)


def _first_hour_charge(entry_at: datetime, context: ResolvedPricingContext) -> tuple[str, int]:
    local_entry = _to_named_timezone(entry_at, context.timezone)
    if context.night_rate is not None and _in_night_window(
        local_entry.hour, context.night_start_hour, context.night_end_hour
    ):
        return "First hour (night rate)", context.night_rate
    if context.weekend_rate is not None and local_entry.isoweekday() in WEEKEND_ISO_DAYS:
        return "First hour (weekend rate)", context.weekend_rate
    return "First hour", context.first_hour_rate


def _free_result(
    duration: ParkingDuration,
    ledger: _FeeLedger,
    *,
    is_grace_period: bool = False,
    has_monthly_pass: bool = False,
    note: str | None = None,
) -> FeeResult:
    context = ledger.context
    breakdown = ledger.breakdown(0)
    if note:
        breakdown = f"{note} | {breakdown}"
    return FeeResult(
        duration_minutes=duration.minutes,
        duration_formatted=duration.formatted,
        line_items=ledger.line_items,
        currency=context.currency,
        currency_symbol=ledger.formatter.symbol(context.currency, context.locale),
        locale=context.locale,
        is_grace_period=is_grace_period,
        has_monthly_pass=has_monthly_pass,
        breakdown=breakdown,
    )


def calculate_fee(
    session: ParkingSessionRecord,
    context: ResolvedPricingContext,
    parker: FrequentParkerRecord | None = None,
    validations: Sequence[ParkingValidationRecord] = (),
    *,
    formatter: CurrencyFormatter,
    now: datetime | None = None,
) -> FeeResult:
    """Price one parking stay and return the itemized result.

    Steps run in a fixed order: grace period, monthly pass, first hour,
    additional hours, daily cap, validations (in list order), VIP, tax.
    All amounts are integer minor units and every division floors, so the
    charged total never exceeds the exact value.

    Callers must make sure the fee of a closed session is frozen exactly once;
    this function holds no state and performs no I/O.
    """
    now = now or now_like(session.entry_at)
    duration = calculate_duration(session.entry_at, session.exit_at, now=now)
    minutes = duration.minutes
    ledger = _FeeLedger(context, formatter)

    if minutes <= context.grace_period_minutes:
        return _free_result(
            duration,
            ledger,
            is_grace_period=True,
            note=f"Grace period ({context.grace_period_minutes} min)",
        )

    if parker and parker.monthly_pass_expiry and _pass_is_active(parker.monthly_pass_expiry, now):
        ledger.charge(f"Monthly pass (valid until {parker.monthly_pass_expiry.date().isoformat()})", 0)
        return _free_result(duration, ledger, has_monthly_pass=True)

    total_hours = _ceil_div(minutes, MINUTES_PER_HOUR)
    base_fee = 0
    if total_hours >= 1:
        label, rate = _first_hour_charge(session.entry_at, context)
        base_fee += ledger.charge(label, rate)
    if total_hours > 1:
        extra_hours = total_hours - 1
        base_fee += ledger.charge(
            f"{_plural(extra_hours, 'additional hour')} @ {ledger.money(context.hourly_rate)}/hr",
            extra_hours * context.hourly_rate,
        )

    days = _ceil_div(minutes, MINUTES_PER_DAY)
    max_fee = days * context.daily_max_rate
    subtotal = base_fee
    if base_fee > max_fee:
        ledger.discount(
            f"Daily maximum ({_plural(days, 'day')} @ {ledger.money(context.daily_max_rate)})",
            base_fee - max_fee,
        )
        subtotal = max_fee
    capped_base_fee = subtotal

    for validation in validations:
        if validation.discount_percent > 0:
            subtotal -= ledger.discount(
                f"Validation: {validation.validator_name} ({validation.discount_percent}%)",
                subtotal * validation.discount_percent // 100,
            )
        if validation.discount_amount > 0:
            subtotal -= ledger.discount(
                f"Validation: {validation.validator_name}",
                min(validation.discount_amount, subtotal),
            )

    if parker and parker.is_vip:
        subtotal -= ledger.discount(
            f"VIP discount ({VIP_DISCOUNT_PERCENT}%)",
            subtotal * VIP_DISCOUNT_PERCENT // 100,
        )

    tax = 0
    if context.tax_rate > 0 and subtotal > 0:
        tax = ledger.tax(
            f"{context.tax_label} ({format_basis_points(context.tax_rate)})",
            subtotal * context.tax_rate // BASIS_POINTS,
        )

    final_fee = max(0, subtotal + tax)
    result = FeeResult(
        duration_minutes=minutes,
        duration_formatted=duration.formatted,
        line_items=ledger.line_items,
        base_fee=capped_base_fee,
        subtotal=subtotal,
        discount=audit_line_items(ledger.line_items).discounts,
        tax=tax,
        final_fee=final_fee,
        currency=context.currency,
        currency_symbol=formatter.symbol(context.currency, context.locale),
        locale=context.locale,
        breakdown=ledger.breakdown(final_fee),
    )
    logger.debug(
        "calculate_fee.result session_id={} minutes={} subtotal={} discount={} tax={} final_fee={}",
        session.id,
        minutes,
        result.subtotal,
        result.discount,
        result.tax,
        result.final_fee,
    )
    return result
