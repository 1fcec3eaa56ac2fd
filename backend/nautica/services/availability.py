from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from nautica.models import Boat
from nautica.services.db_service import DBService


DEFAULT_HORIZON_DAYS = 60


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class AvailabilityWindow:
    """Bookable and blocked days for one boat over a fixed horizon.

    The two lists are disjoint and together cover every day of the
    horizon exactly once.
    """

    start: date
    end: date
    available: List[date] = field(default_factory=list)
    blocked: List[date] = field(default_factory=list)

    def as_iso(self) -> dict[str, list[str]]:
        return {
            "availableDates": [d.isoformat() for d in self.available],
            "blockedDates": [d.isoformat() for d in self.blocked],
        }


def compute_availability(
    start: date,
    horizon_days: int,
    blocked_dates: Iterable[date],
    booked_dates: Iterable[date],
) -> AvailabilityWindow:
    if horizon_days < 1:
        raise ValueError("horizon_days must be at least 1")

    end = start + timedelta(days=horizon_days - 1)
    unavailable = {d for d in blocked_dates if start <= d <= end}
    unavailable.update(d for d in booked_dates if start <= d <= end)

    window = AvailabilityWindow(start=start, end=end)
    for offset in range(horizon_days):
        day = start + timedelta(days=offset)
        if day in unavailable:
            window.blocked.append(day)
        else:
            window.available.append(day)
    return window


class AvailabilityCalculator:
    """Recomputes a boat's calendar per request from blocks and active bookings."""

    def __init__(self, db: DBService, horizon_days: int = DEFAULT_HORIZON_DAYS):
        self.db = db
        self.horizon_days = horizon_days

    async def for_boat(self, boat: Boat, start: Optional[date] = None) -> AvailabilityWindow:
        start = start or utc_today()
        end = start + timedelta(days=self.horizon_days - 1)

        blocked = await self.db.get_blocked_dates(boat.id, start, end)
        booked = await self.db.get_booked_dates(boat.id, start, end)
        return compute_availability(start, self.horizon_days, blocked, booked)
