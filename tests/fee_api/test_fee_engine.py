from datetime import UTC, datetime, timedelta

from parksuite_fee_api.schemas.fee import ChargeLineItem, DiscountLineItem, TaxLineItem
from parksuite_fee_api.schemas.parking import (
    BusinessSettingsRecord,
    FrequentParkerRecord,
    ParkingSessionRecord,
    ParkingValidationRecord,
    RateSchedule,
)
from parksuite_fee_api.services.currency import CurrencyFormatter
from parksuite_fee_api.services.fee_engine import audit_line_items, calculate_fee, format_basis_points
from parksuite_fee_api.services.pricing_context import resolve_pricing_context

# 2026-02-02 is a Monday, 2026-02-07 a Saturday.
MONDAY = datetime(2026, 2, 2)
SATURDAY = datetime(2026, 2, 7)

STANDARD = RateSchedule(hourly_rate=500, first_hour_rate=500, daily_max_rate=3000, grace_period_minutes=15)
VAT_15 = BusinessSettingsRecord(tax_rate=1500, tax_label="VAT", currency="USD", locale="en-US")


def _session(entry_at: datetime, minutes: int) -> ParkingSessionRecord:
    return ParkingSessionRecord(
        id="sess-1",
        plate_normalized="AB123CD",
        entry_at=entry_at,
        exit_at=entry_at + timedelta(minutes=minutes),
    )


def _fee(
    formatter: CurrencyFormatter,
    minutes: int,
    *,
    entry_at: datetime = MONDAY.replace(hour=9),
    schedule: RateSchedule | None = STANDARD,
    business: BusinessSettingsRecord | None = None,
    parker: FrequentParkerRecord | None = None,
    validations: list[ParkingValidationRecord] | None = None,
):
    session = _session(entry_at, minutes)
    context = resolve_pricing_context(schedule, business)
    return calculate_fee(
        session,
        context,
        parker,
        validations or [],
        formatter=formatter,
        now=session.exit_at,
    )


def test_within_grace_period_is_free(formatter: CurrencyFormatter) -> None:
    result = _fee(formatter, 10)
    assert result.final_fee == 0
    assert result.is_grace_period is True
    assert result.line_items == []
    assert result.breakdown == "Grace period (15 min) | Total: $0.00"


def test_grace_period_boundary_is_inclusive(formatter: CurrencyFormatter) -> None:
    assert _fee(formatter, 15).is_grace_period is True
    result = _fee(formatter, 16)
    assert result.is_grace_period is False
    assert result.final_fee == 500


def test_ninety_minutes_charges_two_hours(formatter: CurrencyFormatter) -> None:
    result = _fee(formatter, 90)
    assert result.duration_minutes == 90
    assert result.duration_formatted == "1h 30m"
    assert [(item.label, item.amount) for item in result.line_items] == [
        ("First hour", 500),
        ("1 additional hour @ $5.00/hr", 500),
    ]
    assert result.base_fee == 1000
    assert result.subtotal == 1000
    assert result.discount == 0
    assert result.tax == 0
    assert result.final_fee == 1000
    assert result.currency == "USD"
    assert result.currency_symbol == "$"
    assert result.locale == "en-US"
    assert result.breakdown == "First hour: $5.00 | 1 additional hour @ $5.00/hr: $5.00 | Total: $10.00"


def test_first_hour_rate_overrides_hourly_rate_for_first_unit_only(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(hourly_rate=400, first_hour_rate=700, daily_max_rate=10000)
    result = _fee(formatter, 180, schedule=schedule)
    assert [item.amount for item in result.line_items] == [700, 800]
    assert result.final_fee == 1500


def test_active_monthly_pass_is_free(formatter: CurrencyFormatter) -> None:
    entry_at = MONDAY.replace(hour=9)
    parker = FrequentParkerRecord(monthly_pass_expiry=entry_at + timedelta(days=7))
    result = _fee(formatter, 90, entry_at=entry_at, parker=parker)
    assert result.final_fee == 0
    assert result.has_monthly_pass is True
    assert result.is_grace_period is False
    assert len(result.line_items) == 1
    assert isinstance(result.line_items[0], ChargeLineItem)
    assert result.line_items[0].amount == 0
    assert result.line_items[0].label == "Monthly pass (valid until 2026-02-09)"


def test_monthly_pass_dominates_discounts_and_tax(formatter: CurrencyFormatter) -> None:
    entry_at = MONDAY.replace(hour=9)
    parker = FrequentParkerRecord(is_vip=True, monthly_pass_expiry=entry_at + timedelta(days=30))
    result = _fee(
        formatter,
        3000,
        entry_at=entry_at,
        business=VAT_15,
        parker=parker,
        validations=[ParkingValidationRecord(validator_name="Mall", discount_percent=50)],
    )
    assert result.has_monthly_pass is True
    assert result.final_fee == 0
    assert result.tax == 0


def test_expired_monthly_pass_is_ignored(formatter: CurrencyFormatter) -> None:
    entry_at = MONDAY.replace(hour=9)
    parker = FrequentParkerRecord(monthly_pass_expiry=entry_at - timedelta(days=1))
    result = _fee(formatter, 90, entry_at=entry_at, parker=parker)
    assert result.has_monthly_pass is False
    assert result.final_fee == 1000


def test_aware_pass_expiry_compared_with_naive_session(formatter: CurrencyFormatter) -> None:
    parker = FrequentParkerRecord(monthly_pass_expiry=datetime(2026, 3, 1, tzinfo=UTC))
    result = _fee(formatter, 90, parker=parker)
    assert result.has_monthly_pass is True


def test_naive_pass_expiry_compared_with_aware_session(formatter: CurrencyFormatter) -> None:
    entry_at = MONDAY.replace(hour=9, tzinfo=UTC)
    active = FrequentParkerRecord(monthly_pass_expiry=datetime(2026, 2, 2, 10, 0))
    assert _fee(formatter, 30, entry_at=entry_at, parker=active).has_monthly_pass is True
    lapsed = FrequentParkerRecord(monthly_pass_expiry=datetime(2026, 2, 2, 9, 20))
    result = _fee(formatter, 30, entry_at=entry_at, parker=lapsed)
    assert result.has_monthly_pass is False
    assert result.final_fee == 500


def test_naive_session_with_aware_now_is_priced(formatter: CurrencyFormatter) -> None:
    session = ParkingSessionRecord(entry_at=MONDAY.replace(hour=9))
    context = resolve_pricing_context(STANDARD, None)
    now = MONDAY.replace(hour=10, minute=30, tzinfo=UTC)
    result = calculate_fee(session, context, formatter=formatter, now=now)
    assert result.duration_minutes == 90
    assert result.final_fee == 1000


def test_percent_validation_then_tax(formatter: CurrencyFormatter) -> None:
    result = _fee(
        formatter,
        90,
        business=VAT_15,
        validations=[ParkingValidationRecord(validator_name="Mall", discount_percent=50)],
    )
    assert result.discount == 500
    assert result.subtotal == 500
    assert result.tax == 75
    assert result.final_fee == 575
    tax_item = result.line_items[-1]
    assert isinstance(tax_item, TaxLineItem)
    assert tax_item.label == "VAT (15%)"
    assert result.breakdown.endswith("VAT (15%): $0.75 | Total: $5.75")


def test_vip_discount_applies_after_validations(formatter: CurrencyFormatter) -> None:
    result = _fee(
        formatter,
        90,
        business=VAT_15,
        parker=FrequentParkerRecord(is_vip=True),
        validations=[ParkingValidationRecord(validator_name="Mall", discount_percent=50)],
    )
    assert [(item.type, item.amount) for item in result.line_items] == [
        ("charge", 500),
        ("charge", 500),
        ("discount", -500),
        ("discount", -50),
        ("tax", 67),
    ]
    assert result.line_items[3].label == "VIP discount (10%)"
    assert result.subtotal == 450
    assert result.tax == 67
    assert result.discount == 550
    assert result.final_fee == 517


def test_daily_cap_applies_per_started_day(formatter: CurrencyFormatter) -> None:
    result = _fee(formatter, 1800, entry_at=MONDAY)
    assert result.duration_formatted == "1d 6h 0m"
    assert [item.amount for item in result.line_items] == [500, 14500, -9000]
    cap_item = result.line_items[-1]
    assert isinstance(cap_item, DiscountLineItem)
    assert cap_item.label == "Daily maximum (2 days @ $30.00)"
    assert result.base_fee == 6000
    assert result.discount == 9000
    assert result.final_fee == 6000


def test_cap_is_applied_before_validation_discounts(formatter: CurrencyFormatter) -> None:
    result = _fee(
        formatter,
        1800,
        entry_at=MONDAY,
        validations=[ParkingValidationRecord(validator_name="Hotel", discount_percent=50)],
    )
    assert result.subtotal == 3000
    assert result.discount == 9000 + 3000


def test_validations_apply_in_list_order(formatter: CurrencyFormatter) -> None:
    percent_first = _fee(
        formatter,
        90,
        validations=[
            ParkingValidationRecord(validator_name="Cinema", discount_percent=50),
            ParkingValidationRecord(validator_name="Cafe", discount_amount=100),
        ],
    )
    fixed_first = _fee(
        formatter,
        90,
        validations=[
            ParkingValidationRecord(validator_name="Cafe", discount_amount=100),
            ParkingValidationRecord(validator_name="Cinema", discount_percent=50),
        ],
    )
    assert percent_first.final_fee == 400
    assert fixed_first.final_fee == 450


def test_single_validation_with_percent_and_amount(formatter: CurrencyFormatter) -> None:
    result = _fee(
        formatter,
        90,
        validations=[ParkingValidationRecord(validator_name="Mall", discount_percent=20, discount_amount=150)],
    )
    assert [(item.label, item.amount) for item in result.line_items[2:]] == [
        ("Validation: Mall (20%)", -200),
        ("Validation: Mall", -150),
    ]
    assert result.final_fee == 650


def test_percent_discount_floors(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(hourly_rate=350, daily_max_rate=10000)
    result = _fee(
        formatter,
        120,
        schedule=schedule,
        validations=[ParkingValidationRecord(validator_name="Gym", discount_percent=33)],
    )
    assert result.line_items[-1].amount == -231
    assert result.final_fee == 469


def test_fixed_validation_larger_than_subtotal_never_goes_negative(formatter: CurrencyFormatter) -> None:
    result = _fee(
        formatter,
        90,
        business=VAT_15,
        validations=[ParkingValidationRecord(validator_name="Owner", discount_amount=5000)],
    )
    assert result.line_items[-1].amount == -1000
    assert result.subtotal == 0
    assert result.tax == 0
    assert result.final_fee == 0
    assert all(item.type != "tax" for item in result.line_items)


def test_night_rate_applies_to_first_hour_only(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(
        hourly_rate=500,
        daily_max_rate=10000,
        night_rate=300,
        night_start_hour=22,
        night_end_hour=6,
    )
    result = _fee(formatter, 150, entry_at=MONDAY.replace(hour=23), schedule=schedule)
    assert [(item.label, item.amount) for item in result.line_items] == [
        ("First hour (night rate)", 300),
        ("2 additional hours @ $5.00/hr", 1000),
    ]
    assert result.final_fee == 1300


def test_night_window_wraps_past_midnight(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(night_rate=300, night_start_hour=22, night_end_hour=6)
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=5, minute=59), schedule=schedule).final_fee == 300
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=6), schedule=schedule).final_fee == 500


def test_night_window_without_wrap(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(night_rate=250, night_start_hour=1, night_end_hour=5)
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=1), schedule=schedule).final_fee == 250
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=5), schedule=schedule).final_fee == 500
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=0), schedule=schedule).final_fee == 500


def test_weekend_rate(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(hourly_rate=500, weekend_rate=400)
    result = _fee(formatter, 30, entry_at=SATURDAY.replace(hour=12), schedule=schedule)
    assert result.line_items[0].label == "First hour (weekend rate)"
    assert result.final_fee == 400
    assert _fee(formatter, 30, entry_at=MONDAY.replace(hour=12), schedule=schedule).final_fee == 500


def test_night_rate_takes_precedence_over_weekend(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(night_rate=300, night_start_hour=22, night_end_hour=6, weekend_rate=400)
    result = _fee(formatter, 30, entry_at=SATURDAY.replace(hour=23), schedule=schedule)
    assert result.line_items[0].label == "First hour (night rate)"
    assert result.final_fee == 300


def test_night_window_uses_schedule_timezone(formatter: CurrencyFormatter) -> None:
    schedule = RateSchedule(night_rate=300, night_start_hour=22, night_end_hour=6, timezone="Asia/Shanghai")
    # 14:00 UTC is 22:00 in Asia/Shanghai.
    entry_at = datetime(2026, 2, 2, 14, 0, tzinfo=UTC)
    result = _fee(formatter, 30, entry_at=entry_at, schedule=schedule)
    assert result.line_items[0].label == "First hour (night rate)"


def test_missing_schedule_uses_defaults(formatter: CurrencyFormatter) -> None:
    result = _fee(formatter, 15, schedule=None)
    assert result.is_grace_period is True
    result = _fee(formatter, 600, schedule=None)
    assert result.final_fee == 3000


def test_unsupported_locale_falls_back_to_plain_format(formatter: CurrencyFormatter) -> None:
    business = BusinessSettingsRecord(currency="EUR", locale="zz-ZZ")
    result = _fee(formatter, 90, business=business)
    assert result.final_fee == 1000
    assert result.currency_symbol == "€"
    assert result.breakdown.endswith("Total: €10.00")


def test_format_basis_points() -> None:
    assert format_basis_points(1500) == "15%"
    assert format_basis_points(1000) == "10%"
    assert format_basis_points(1250) == "12.5%"
    assert format_basis_points(825) == "8.25%"


def test_line_items_reconstruct_totals(formatter: CurrencyFormatter) -> None:
    schedules = [
        STANDARD,
        RateSchedule(hourly_rate=275, first_hour_rate=900, daily_max_rate=1999, grace_period_minutes=0),
        RateSchedule(hourly_rate=800, daily_max_rate=2500, night_rate=100, night_start_hour=20, night_end_hour=8),
    ]
    validation_sets = [
        [],
        [ParkingValidationRecord(validator_name="A", discount_percent=15)],
        [
            ParkingValidationRecord(validator_name="A", discount_percent=33, discount_amount=120),
            ParkingValidationRecord(validator_name="B", discount_amount=75),
        ],
    ]
    for schedule in schedules:
        for validations in validation_sets:
            for is_vip in (False, True):
                for minutes in (0, 1, 59, 61, 119, 721, 1439, 1441, 4000):
                    result = _fee(
                        formatter,
                        minutes,
                        entry_at=MONDAY.replace(hour=19),
                        schedule=schedule,
                        business=VAT_15,
                        parker=FrequentParkerRecord(is_vip=is_vip),
                        validations=validations,
                    )
                    totals = audit_line_items(result.line_items)
                    assert totals.subtotal == result.subtotal
                    assert totals.tax == result.tax
                    assert totals.total == result.final_fee
                    assert totals.discounts == result.discount
                    assert result.final_fee >= 0
                    assert result.tax >= 0


def test_cap_bounds_the_pre_tax_total(formatter: CurrencyFormatter) -> None:
    for minutes in range(16, 6000, 37):
        result = _fee(formatter, minutes, business=VAT_15)
        days = -(-minutes // 1440)
        assert result.final_fee - result.tax <= days * STANDARD.daily_max_rate


def test_grace_period_is_always_free(formatter: CurrencyFormatter) -> None:
    for minutes in range(0, 16):
        result = _fee(formatter, minutes, business=VAT_15, parker=FrequentParkerRecord(is_vip=True))
        assert result.final_fee == 0
        assert result.is_grace_period is True


def test_same_inputs_give_identical_output(formatter: CurrencyFormatter) -> None:
    kwargs = {
        "business": VAT_15,
        "parker": FrequentParkerRecord(is_vip=True),
        "validations": [ParkingValidationRecord(validator_name="Mall", discount_percent=25, discount_amount=30)],
    }
    first = _fee(formatter, 1000, **kwargs)
    second = _fee(formatter, 1000, **kwargs)
    assert first.model_dump_json() == second.model_dump_json()


def test_open_session_uses_now(formatter: CurrencyFormatter) -> None:
    entry_at = MONDAY.replace(hour=9)
    session = ParkingSessionRecord(entry_at=entry_at)
    context = resolve_pricing_context(STANDARD, None)
    result = calculate_fee(session, context, formatter=formatter, now=entry_at + timedelta(minutes=45))
    assert result.duration_minutes == 45
    assert result.final_fee == 500
