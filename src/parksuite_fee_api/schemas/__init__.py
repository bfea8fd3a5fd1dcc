from parksuite_fee_api.schemas.fee import (
    ChargeLineItem,
    DiscountLineItem,
    EnrichedSession,
    FeeLineItem,
    FeeResult,
    FeeSimulateRequest,
    LineItemTotals,
    ParkerInfo,
    ParkingExitResponse,
    ResolvedPricingContext,
    TaxLineItem,
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

__all__ = [
    "ParkingSessionRecord",
    "ParkingSessionResponse",
    "RateSchedule",
    "BusinessSettingsRecord",
    "FrequentParkerRecord",
    "ParkingValidationRecord",
    "ParkingEntryRequest",
    "ParkingExitRequest",
    "ParkingSettingsUpsertRequest",
    "BusinessSettingsUpsertRequest",
    "FrequentParkerUpsertRequest",
    "ParkingValidationCreateRequest",
    "ResolvedPricingContext",
    "ChargeLineItem",
    "DiscountLineItem",
    "TaxLineItem",
    "FeeLineItem",
    "LineItemTotals",
    "FeeResult",
    "ParkerInfo",
    "EnrichedSession",
    "FeeSimulateRequest",
    "ParkingExitResponse",
]
