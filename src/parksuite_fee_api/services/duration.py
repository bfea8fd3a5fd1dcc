from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger


@dataclass(frozen=True)
class ParkingDuration:
    minutes: int
    formatted: str


def now_like(reference: datetime) -> datetime:
    """Current instant with the same tz-awareness as ``reference``; naive means UTC."""
    current = datetime.now(UTC)
    if reference.tzinfo is None:
        return current.replace(tzinfo=None)
    return current


def align_awareness(first: datetime, second: datetime) -> tuple[datetime, datetime]:
    """Make two instants comparable; a naive one is read as UTC when the other is aware."""
    if (first.tzinfo is None) == (second.tzinfo is None):
        return first, second
    if first.tzinfo is None:
        return first.replace(tzinfo=UTC), second
    return first, second.replace(tzinfo=UTC)


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours >= 24:
        days, remaining_hours = divmod(hours, 24)
        return f"{days}d {remaining_hours}h {mins}m"
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def calculate_duration(
    entry_at: datetime,
    exit_at: datetime | None = None,
    *,
    now: datetime | None = None,
) -> ParkingDuration:
    end = exit_at or now or now_like(entry_at)
    entry_at, end = align_awareness(entry_at, end)
    minutes = (end - entry_at) // timedelta(minutes=1)
    if minutes < 0:
        # exit before entry is a caller error; never let it leak into pricing
        logger.warning(
            "calculate_duration.negative entry_at={} end={} minutes={}",
            entry_at.isoformat(),
            end.isoformat(),
            minutes,
        )
        minutes = 0
    return ParkingDuration(minutes=minutes, formatted=format_duration(minutes))
