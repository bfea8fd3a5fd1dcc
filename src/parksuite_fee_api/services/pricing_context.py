from __future__ import annotations

from parksuite_fee_api.schemas.fee import ResolvedPricingContext
from parksuite_fee_api.schemas.parking import BusinessSettingsRecord, RateSchedule

DEFAULT_NIGHT_START_HOUR = 22
DEFAULT_NIGHT_END_HOUR = 6
DEFAULT_TAX_LABEL = "Tax"


def resolve_pricing_context(
    schedule: RateSchedule | None,
    business: BusinessSettingsRecord | None,
    *,
    default_currency: str = "USD",
    default_locale: str = "en-US",
) -> ResolvedPricingContext:
    """Merge rate schedule and business settings into one context with defaults applied.

    A missing schedule prices with ``RateSchedule()`` defaults
    (500/hour, 3000/day cap, 15 minute grace). Missing business settings mean no tax.
    """
    schedule = schedule or RateSchedule()
    tax_rate = business.tax_rate if business else 0
    return ResolvedPricingContext(
        hourly_rate=schedule.hourly_rate,
        first_hour_rate=(
            schedule.first_hour_rate if schedule.first_hour_rate is not None else schedule.hourly_rate
        ),
        daily_max_rate=schedule.daily_max_rate,
        grace_period_minutes=schedule.grace_period_minutes,
        night_rate=schedule.night_rate,
        night_start_hour=(
            schedule.night_start_hour if schedule.night_start_hour is not None else DEFAULT_NIGHT_START_HOUR
        ),
        night_end_hour=schedule.night_end_hour if schedule.night_end_hour is not None else DEFAULT_NIGHT_END_HOUR,
        weekend_rate=schedule.weekend_rate,
        timezone=schedule.timezone,
        tax_rate=tax_rate,
        tax_label=(business.tax_label if business and business.tax_label else DEFAULT_TAX_LABEL),
        currency=business.currency if business else default_currency,
        locale=business.locale if business else default_locale,
    )


def without_tax(context: ResolvedPricingContext) -> ResolvedPricingContext:
    return context.model_copy(update={"tax_rate": 0})
