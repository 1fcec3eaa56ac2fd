from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from nautica.models import (
    AvailabilityBlock,
    Boat,
    Booking,
    BookingStatus,
    Holiday,
    Owner,
    Payment,
    PricingRule,
    Profile,
)
from typing import Any, Iterable, Optional, List
from datetime import date
from decimal import Decimal
import uuid


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class DBService:
    """
    Typed predicate queries over the marketplace tables.

    Status mutations go through the ``*_if_status`` helpers, which apply
    the update only while the row still holds one of the expected prior
    statuses and report whether a row changed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== BOATS ====================

    async def get_boat(self, boat_id: Any) -> Optional[Boat]:
        """Get boat by ID"""
        b_uuid = _as_uuid(boat_id)
        if b_uuid is None:
            return None

        result = await self.session.execute(
            select(Boat)
            .where(Boat.id == b_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def search_boats(
        self,
        boat_type: Optional[str] = None,
        owner_id: Any = None,
        limit: int = 6,
    ) -> List[Boat]:
        """Active boats, optionally filtered by type and owner."""
        query = select(Boat).where(Boat.is_active.is_(True))
        if boat_type:
            query = query.where(Boat.type == boat_type)
        if owner_id is not None:
            o_uuid = _as_uuid(owner_id)
            if o_uuid is None:
                return []
            query = query.where(Boat.owner_id == o_uuid)

        result = await self.session.execute(
            query.order_by(Boat.base_price.asc(), Boat.name.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_owner_commission_rate(self, boat_id: uuid.UUID) -> Optional[Decimal]:
        """Commission percent configured on the boat's owner, if any."""
        result = await self.session.execute(
            select(Owner.commission_rate)
            .join(Boat, Boat.owner_id == Owner.id)
            .where(Boat.id == boat_id)
        )
        return result.scalar_one_or_none()

    # ==================== PRICING ====================

    async def get_active_pricing_rules(self, boat_id: uuid.UUID) -> List[PricingRule]:
        result = await self.session.execute(
            select(PricingRule).where(
                PricingRule.boat_id == boat_id,
                PricingRule.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def is_holiday(self, target: date) -> bool:
        result = await self.session.execute(
            select(Holiday.id).where(Holiday.date == target).limit(1)
        )
        return result.first() is not None

    async def get_total_rentals(self, user_id: Any) -> int:
        """Completed rentals for a renter; 0 when no profile exists."""
        u_uuid = _as_uuid(user_id)
        if u_uuid is None:
            return 0

        result = await self.session.execute(
            select(Profile.total_rentals).where(Profile.user_id == u_uuid)
        )
        value = result.scalar_one_or_none()
        return int(value or 0)

    # ==================== AVAILABILITY ====================

    async def get_blocked_dates(self, boat_id: uuid.UUID, start: date, end: date) -> List[date]:
        """Dates explicitly flagged unavailable within [start, end]."""
        result = await self.session.execute(
            select(AvailabilityBlock.date).where(
                AvailabilityBlock.boat_id == boat_id,
                AvailabilityBlock.is_available.is_(False),
                AvailabilityBlock.date >= start,
                AvailabilityBlock.date <= end,
            )
        )
        return list(result.scalars().all())

    async def get_booked_dates(self, boat_id: uuid.UUID, start: date, end: date) -> List[date]:
        """Dates occupied by active bookings within [start, end]."""
        result = await self.session.execute(
            select(Booking.booking_date).where(
                Booking.boat_id == boat_id,
                Booking.status.in_(BookingStatus.ACTIVE),
                Booking.booking_date >= start,
                Booking.booking_date <= end,
            )
        )
        return list(result.scalars().all())

    # ==================== BOOKINGS ====================

    async def create_booking(self, data: dict) -> Booking:
        """Create new booking"""
        booking = Booking(**data)
        self.session.add(booking)
        await self.session.commit()
        await self.session.refresh(booking)
        return booking

    async def get_booking(self, booking_id: Any) -> Optional[Booking]:
        """Get booking by ID"""
        b_uuid = _as_uuid(booking_id)
        if b_uuid is None:
            return None

        result = await self.session.execute(
            select(Booking)
            .where(Booking.id == b_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_user_booking(self, booking_id: Any, user_id: Any) -> Optional[Booking]:
        """Get a booking only if it belongs to the given renter."""
        b_uuid = _as_uuid(booking_id)
        u_uuid = _as_uuid(user_id)
        if b_uuid is None or u_uuid is None:
            return None

        result = await self.session.execute(
            select(Booking)
            .where(Booking.id == b_uuid, Booking.user_id == u_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_booking(
        self,
        user_id: uuid.UUID,
        boat_id: uuid.UUID,
        booking_date: date,
    ) -> Optional[Booking]:
        """Existing pending/confirmed/in-progress booking for the same slot."""
        result = await self.session.execute(
            select(Booking)
            .where(
                Booking.user_id == user_id,
                Booking.boat_id == boat_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(BookingStatus.ACTIVE),
            )
            .order_by(Booking.created_at.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def update_booking_if_status(
        self,
        booking_id: Any,
        expected: Iterable[str],
        data: dict,
    ) -> bool:
        """Conditional update; True when the booking was still in ``expected``."""
        booking_id = _as_uuid(booking_id)
        if booking_id is None:
            return False
        result = await self.session.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_(list(expected)))
            .values(**data)
        )
        await self.session.commit()
        return result.rowcount == 1

    # ==================== PAYMENTS ====================

    async def create_payment(self, data: dict) -> Payment:
        """Create new payment record"""
        payment = Payment(**data)
        self.session.add(payment)
        await self.session.commit()
        await self.session.refresh(payment)
        return payment

    async def get_latest_payment(self, booking_id: uuid.UUID) -> Optional[Payment]:
        """Most recent payment row for a booking."""
        result = await self.session.execute(
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_payments_for_booking(
        self,
        booking_id: uuid.UUID,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Payment]:
        query = select(Payment).where(Payment.booking_id == booking_id)
        if statuses is not None:
            query = query.where(Payment.status.in_(list(statuses)))
        result = await self.session.execute(
            query.order_by(Payment.created_at.desc()).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_payment(self, payment_id: Any) -> Optional[Payment]:
        payment_id = _as_uuid(payment_id)
        if payment_id is None:
            return None
        result = await self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_payment_by_intent(self, payment_intent_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            select(Payment)
            .where(Payment.stripe_payment_intent_id == payment_intent_id)
            .order_by(Payment.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def update_payment_if_status(
        self,
        payment_id: Any,
        expected: Iterable[str],
        data: dict,
    ) -> bool:
        """Conditional update of a single payment row by id."""
        payment_id = _as_uuid(payment_id)
        if payment_id is None:
            return False
        result = await self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(list(expected)))
            .values(**data)
        )
        await self.session.commit()
        return result.rowcount == 1

    async def update_booking_payments_if_status(
        self,
        booking_id: Any,
        expected: Iterable[str],
        data: dict,
    ) -> int:
        """Conditional update of every payment for a booking; returns rows changed."""
        booking_id = _as_uuid(booking_id)
        if booking_id is None:
            return 0
        result = await self.session.execute(
            update(Payment)
            .where(Payment.booking_id == booking_id, Payment.status.in_(list(expected)))
            .values(**data)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def update_session_payments_if_status(
        self,
        session_id: str,
        expected: Iterable[str],
        data: dict,
    ) -> int:
        """Conditional update of the payment opened by a checkout session."""
        result = await self.session.execute(
            update(Payment)
            .where(
                Payment.stripe_checkout_session_id == session_id,
                Payment.status.in_(list(expected)),
            )
            .values(**data)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def update_intent_payments_if_status(
        self,
        payment_intent_id: str,
        expected: Iterable[str],
        data: dict,
    ) -> int:
        """Conditional update of payments correlated by processor intent id."""
        result = await self.session.execute(
            update(Payment)
            .where(
                Payment.stripe_payment_intent_id == payment_intent_id,
                Payment.status.in_(list(expected)),
            )
            .values(**data)
        )
        await self.session.commit()
        return result.rowcount or 0
