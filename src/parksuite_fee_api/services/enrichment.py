from __future__ import annotations

from datetime import datetime

from parksuite_fee_api.schemas.fee import EnrichedSession, ParkerInfo, ResolvedPricingContext
from parksuite_fee_api.schemas.parking import FrequentParkerRecord, ParkingSessionRecord
from parksuite_fee_api.services.currency import CurrencyFormatter
from parksuite_fee_api.services.fee_engine import calculate_fee
from parksuite_fee_api.services.pricing_context import without_tax


def enrich_session(
    session: ParkingSessionRecord,
    context: ResolvedPricingContext,
    parker: FrequentParkerRecord | None = None,
    *,
    formatter: CurrencyFormatter,
    now: datetime | None = None,
) -> EnrichedSession:
    """Attach a live, tax-free fee estimate to a session for display. Nothing is persisted."""
    fee = calculate_fee(session, without_tax(context), parker, formatter=formatter, now=now)
    parker_info = None
    if parker:
        parker_info = ParkerInfo(
            customer_name=parker.customer_name,
            is_vip=parker.is_vip,
            visit_count=parker.visit_count,
        )
    return EnrichedSession(
        **session.model_dump(),
        duration_minutes=fee.duration_minutes,
        duration_formatted=fee.duration_formatted,
        estimated_fee=fee.final_fee,
        is_grace_period=fee.is_grace_period,
        has_monthly_pass=fee.has_monthly_pass,
        fee_breakdown=fee.breakdown,
        currency=fee.currency,
        currency_symbol=fee.currency_symbol,
        parker_info=parker_info,
    )
