"""
Booking Lifecycle

pending -> confirmed -> in_progress -> completed, with pending/confirmed
-> cancelled and any active status -> refunded from the payment side.
Each move is a conditional update on the expected prior status.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from nautica.core.exceptions import BoatInactive, InvalidState, NotFound, Unauthenticated
from nautica.models import Boat, Booking, BookingStatus, PaymentStatus
from nautica.models.owner import utcnow
from nautica.services.availability import utc_today
from nautica.services.db_service import DBService, _as_uuid
from nautica.services.escrow import PaymentEscrowManager
from nautica.services.pricing import PriceQuote, loyalty_discount_pct, resolve_price, round2, to_decimal

logger = logging.getLogger(__name__)


BOOKING_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.REFUNDED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

CompletionListener = Callable[[Booking], Awaitable[None]]


@dataclass
class BookingResult:
    booking_id: str
    duplicate: bool = False
    booking: Optional[Booking] = None


@dataclass
class CheckInResult:
    booking_id: str
    already: bool = False


class BookingLifecycleManager:
    def __init__(self, db: DBService, escrow: Optional[PaymentEscrowManager] = None):
        self.db = db
        self.escrow = escrow
        self._completion_listeners: List[CompletionListener] = []

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    async def _move(
        self,
        booking_id: Any,
        target: str,
        expected: Iterable[str],
        **values: Any,
    ) -> bool:
        expected = list(expected)
        for source in expected:
            if target not in BOOKING_TRANSITIONS[source]:
                raise ValueError(f"Illegal booking transition {source} -> {target}")
        values.update(status=target, updated_at=utcnow())
        return await self.db.update_booking_if_status(booking_id, expected, values)

    # ==================== PRICING ====================

    async def quote(self, boat: Boat, target: date, subject_id: Any = None) -> PriceQuote:
        rules = await self.db.get_active_pricing_rules(boat.id)
        is_holiday = await self.db.is_holiday(target)
        total_rentals = await self.db.get_total_rentals(subject_id) if subject_id else 0
        return resolve_price(
            boat.base_price,
            target,
            is_holiday,
            rules,
            discount_pct=loyalty_discount_pct(total_rentals),
        )

    # ==================== CREATE ====================

    async def get_bookable_boat(self, boat_id: Any) -> Boat:
        boat = await self.db.get_boat(boat_id)
        if boat is None:
            raise NotFound("Embarcação não encontrada.")
        if not boat.is_active:
            raise BoatInactive()
        return boat

    async def create_booking(
        self,
        subject_id: Any,
        boat_id: Any,
        booking_date: date,
        passengers: int = 1,
        today: Optional[date] = None,
    ) -> BookingResult:
        """Price and persist a pending booking, or return the existing one.

        The active-booking lookup is check-then-act: two truly concurrent
        requests for the same slot can both pass it.
        """
        user_uuid = _as_uuid(subject_id)
        if user_uuid is None:
            raise Unauthenticated()

        boat = await self.get_bookable_boat(boat_id)

        if booking_date < (today or utc_today()):
            raise InvalidState("Escolha uma data de hoje em diante.")
        if passengers < 1 or (boat.capacity and passengers > boat.capacity):
            raise InvalidState(f"Esta embarcação comporta até {boat.capacity} passageiros.")

        existing = await self.db.find_active_booking(user_uuid, boat.id, booking_date)
        if existing is not None:
            logger.info(
                "Duplicate booking request; returning existing booking",
                extra={"booking_id": str(existing.id), "boat_id": str(boat.id)},
            )
            return BookingResult(booking_id=str(existing.id), duplicate=True, booking=existing)

        quote = await self.quote(boat, booking_date, user_uuid)
        deposit = to_decimal(boat.deposit_amount or 0)

        booking = await self.db.create_booking({
            "user_id": user_uuid,
            "boat_id": boat.id,
            "booking_date": booking_date,
            "passengers": passengers,
            "base_price": quote.price_before_discount,
            "discount_amount": quote.discount_amount,
            "total_price": quote.total_price,
            "deposit_amount": round2(deposit) if deposit > 0 else None,
            "status": BookingStatus.PENDING,
        })

        logger.info(
            "✅ Booking created",
            extra={"booking_id": str(booking.id), "boat_id": str(boat.id), "total": str(quote.total_price)},
        )
        return BookingResult(booking_id=str(booking.id), booking=booking)

    # ==================== TRANSITIONS ====================

    async def confirm_booking(self, booking_id: Any) -> bool:
        return await self._move(booking_id, BookingStatus.CONFIRMED, [BookingStatus.PENDING])

    async def check_in(self, subject_id: Any, booking_id: Any) -> CheckInResult:
        """Capture the held payment and start the rental.

        Safe to repeat: a booking that is already checked in answers with
        ``already=True`` and never reaches the processor again.
        """
        if _as_uuid(subject_id) is None:
            raise Unauthenticated()

        booking = await self.db.get_user_booking(booking_id, subject_id)
        if booking is None:
            raise NotFound("Reserva não encontrada.")

        if booking.check_in_at is not None or booking.status == BookingStatus.IN_PROGRESS:
            return CheckInResult(booking_id=str(booking.id), already=True)

        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidState("Check-in disponível apenas para reservas confirmadas.")

        if self.escrow is None:
            raise InvalidState("Pagamento indisponível para esta reserva.")

        payment = await self.escrow.get_held_payment(booking.id)
        capture = await self.escrow.capture_on_checkin(payment)
        if not capture.released:
            current_payment = await self.db.get_payment(payment.id)
            # A concurrent check-in may have released it first
            if current_payment is None or current_payment.status != PaymentStatus.RELEASED:
                logger.error(
                    "Payment captured but moved out of 'held' concurrently",
                    extra={
                        "booking_id": str(booking.id),
                        "payment_id": str(payment.id),
                        "payment_status": current_payment.status if current_payment else None,
                    },
                )
                raise InvalidState("O pagamento desta reserva mudou durante o check-in. Fale com o atendimento.")

        moved = await self._move(
            booking.id,
            BookingStatus.IN_PROGRESS,
            [BookingStatus.CONFIRMED],
            check_in_at=utcnow(),
        )
        if not moved:
            current = await self.db.get_booking(booking.id)
            if current is not None and current.status == BookingStatus.IN_PROGRESS:
                return CheckInResult(booking_id=str(booking.id), already=True)
            logger.error(
                "Payment captured but booking left 'confirmed' concurrently",
                extra={"booking_id": str(booking.id), "payment_id": str(payment.id)},
            )
            raise InvalidState()

        logger.info(
            "⚓ Check-in complete",
            extra={"booking_id": str(booking.id), "payment_id": str(payment.id)},
        )
        return CheckInResult(booking_id=str(booking.id))

    async def cancel_booking(self, booking_id: Any, reason: Optional[str] = None) -> bool:
        booking = await self.db.get_booking(booking_id)
        if booking is None:
            raise NotFound("Reserva não encontrada.")
        if booking.status == BookingStatus.CANCELLED:
            return False
        if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise InvalidState("Esta reserva não pode mais ser cancelada.")

        return await self._move(
            booking.id,
            BookingStatus.CANCELLED,
            [BookingStatus.PENDING, BookingStatus.CONFIRMED],
            cancelled_at=utcnow(),
            cancellation_reason=reason,
        )

    async def complete_booking(self, booking_id: Any) -> bool:
        """End an in-progress rental and notify completion listeners."""
        b_uuid = _as_uuid(booking_id)
        if b_uuid is None:
            raise NotFound("Reserva não encontrada.")

        moved = await self._move(
            b_uuid,
            BookingStatus.COMPLETED,
            [BookingStatus.IN_PROGRESS],
            check_out_at=utcnow(),
        )
        if not moved:
            return False

        booking = await self.db.get_booking(b_uuid)
        for listener in self._completion_listeners:
            await listener(booking)
        return True

    async def mark_refunded(self, booking_id: Any) -> bool:
        return await self._move(booking_id, BookingStatus.REFUNDED, BookingStatus.ACTIVE)
