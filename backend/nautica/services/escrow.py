"""
Payment Escrow

Manual-capture checkout modelled as a two-phase hold: the renter's card is
authorized when checkout completes (``held``) and captured only once the
renter checks in on the dock (``released``).

Local payment status mirrors the processor. Every status change goes
through ``PaymentStateMachine.transition*`` which applies it as a
conditional update against the expected prior statuses, so redelivered
webhooks and retried check-ins never move a payment twice.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from nautica.core.config import Settings
from nautica.core.exceptions import InvalidState, PaymentNotReady
from nautica.integrations.payments import CaptureResult, PaymentGateway
from nautica.models import Booking, BookingStatus, Payment, PaymentStatus
from nautica.models.owner import utcnow
from nautica.services.db_service import DBService
from nautica.services.pricing import round2, to_decimal

logger = logging.getLogger(__name__)


class PaymentStateMachine:
    """Allowed Payment.status moves and the guarded writes that apply them."""

    TRANSITIONS: dict[str, frozenset[str]] = {
        PaymentStatus.PENDING: frozenset({PaymentStatus.HELD, PaymentStatus.FAILED}),
        PaymentStatus.HELD: frozenset(
            {PaymentStatus.RELEASED, PaymentStatus.FAILED, PaymentStatus.REFUNDED}
        ),
        PaymentStatus.RELEASED: frozenset({PaymentStatus.REFUNDED}),
        PaymentStatus.FAILED: frozenset(),
        PaymentStatus.REFUNDED: frozenset(),
    }

    # Timestamp stamped when a payment enters the status
    STAMPS = {
        PaymentStatus.HELD: "held_at",
        PaymentStatus.RELEASED: "released_at",
        PaymentStatus.REFUNDED: "refunded_at",
    }

    def __init__(self, db: DBService):
        self.db = db

    @classmethod
    def can_transition(cls, current: Optional[str], target: str) -> bool:
        return target in cls.TRANSITIONS.get(current or "", frozenset())

    @classmethod
    def sources_for(cls, target: str) -> frozenset[str]:
        """Every status a payment may leave to reach ``target``."""
        return frozenset(src for src, dests in cls.TRANSITIONS.items() if target in dests)

    def _guard(self, target: str, expected: Optional[Iterable[str]]) -> list[str]:
        allowed = self.sources_for(target)
        if expected is None:
            return sorted(allowed)
        requested = set(expected)
        illegal = requested - allowed
        if illegal:
            raise ValueError(f"Illegal payment transition {sorted(illegal)} -> {target}")
        return sorted(requested)

    def _values(self, target: str, extra: Optional[dict[str, Any]]) -> dict[str, Any]:
        values: dict[str, Any] = {"status": target, "updated_at": utcnow()}
        stamp = self.STAMPS.get(target)
        if stamp:
            values[stamp] = utcnow()
        if extra:
            values.update(extra)
        return values

    async def transition(
        self,
        payment: Payment,
        target: str,
        expected: Optional[Iterable[str]] = None,
        **extra: Any,
    ) -> bool:
        guard = self._guard(target, expected)
        return await self.db.update_payment_if_status(payment.id, guard, self._values(target, extra))

    async def transition_for_booking(
        self,
        booking_id: Any,
        target: str,
        expected: Optional[Iterable[str]] = None,
        **extra: Any,
    ) -> int:
        guard = self._guard(target, expected)
        return await self.db.update_booking_payments_if_status(
            booking_id, guard, self._values(target, extra)
        )

    async def transition_for_session(
        self,
        session_id: str,
        target: str,
        expected: Optional[Iterable[str]] = None,
        **extra: Any,
    ) -> int:
        guard = self._guard(target, expected)
        return await self.db.update_session_payments_if_status(
            session_id, guard, self._values(target, extra)
        )

    async def transition_for_intent(
        self,
        payment_intent_id: str,
        target: str,
        expected: Optional[Iterable[str]] = None,
        **extra: Any,
    ) -> int:
        guard = self._guard(target, expected)
        return await self.db.update_intent_payments_if_status(
            payment_intent_id, guard, self._values(target, extra)
        )


@dataclass
class CheckoutLink:
    booking_id: str
    payment_id: str
    url: str
    amount: Decimal


@dataclass
class CheckinCapture:
    result: CaptureResult
    released: bool


def to_cents(amount: Decimal) -> int:
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def charge_amount(booking: Booking) -> Decimal:
    """Deposit when the booking carries a positive one, else the full total."""
    deposit = to_decimal(booking.deposit_amount or 0)
    if deposit > 0:
        return round2(deposit)
    return round2(booking.total_price or 0)


def split_amount(amount: Decimal, commission_rate: Decimal) -> tuple[Decimal, Decimal]:
    """(platform_fee, owner_amount); the two always sum to ``amount``."""
    platform_fee = round2(amount * to_decimal(commission_rate) / Decimal("100"))
    return platform_fee, amount - platform_fee


class PaymentEscrowManager:
    def __init__(self, db: DBService, gateway: PaymentGateway, settings: Settings):
        self.db = db
        self.gateway = gateway
        self.settings = settings
        self.machine = PaymentStateMachine(db)

    async def _commission_rate(self, booking: Booking) -> Decimal:
        rate = await self.db.get_owner_commission_rate(booking.boat_id)
        if rate is None:
            return to_decimal(self.settings.default_commission_rate)
        return to_decimal(rate)

    async def create_checkout_session(self, booking: Booking, boat_name: Optional[str] = None) -> CheckoutLink:
        """Open a manual-capture checkout for ``booking`` and record it as pending."""
        if booking.status != BookingStatus.PENDING:
            raise InvalidState("Esta reserva não está aguardando pagamento.")

        amount = charge_amount(booking)
        if amount <= 0:
            raise InvalidState("Valor da reserva inválido para pagamento.")

        # Fail before touching the processor when the key is missing.
        self.settings.require_stripe_secret_key()

        outstanding = await self.db.get_payments_for_booking(booking.id, PaymentStatus.OUTSTANDING)
        if outstanding:
            # TODO: reject with a conflict once the frontend can resume an open session
            logger.warning(
                "⚠️ Creating checkout while another payment is outstanding",
                extra={"booking_id": str(booking.id), "payment_id": str(outstanding[0].id)},
            )

        platform_fee, owner_amount = split_amount(amount, await self._commission_rate(booking))
        booking_ref = str(booking.id)
        base_url = self.settings.public_app_url.rstrip("/")

        session = await self.gateway.create_checkout_session(
            booking_id=booking_ref,
            amount_cents=to_cents(amount),
            currency=self.settings.stripe_currency,
            description=f"Reserva {boat_name or 'embarcação'} - {booking.booking_date.isoformat()}",
            success_url=f"{base_url}/conta?payment=success&booking={booking_ref}",
            cancel_url=f"{base_url}/conta?payment=cancelled&booking={booking_ref}",
        )

        # Only recorded once the processor has confirmed the session exists.
        payment = await self.db.create_payment({
            "booking_id": booking.id,
            "stripe_checkout_session_id": session.session_id,
            "amount": amount,
            "platform_fee": platform_fee,
            "owner_amount": owner_amount,
            "status": PaymentStatus.PENDING,
        })

        logger.info(
            "💳 Checkout session created",
            extra={"booking_id": booking_ref, "payment_id": str(payment.id)},
        )
        return CheckoutLink(booking_id=booking_ref, payment_id=str(payment.id), url=session.url, amount=amount)

    async def get_held_payment(self, booking_id: Any) -> Payment:
        payments = await self.db.get_payments_for_booking(booking_id, [PaymentStatus.HELD])
        for payment in payments:
            if payment.stripe_payment_intent_id:
                return payment
        raise PaymentNotReady()

    async def capture_on_checkin(self, payment: Payment) -> CheckinCapture:
        """Capture a held payment at the processor, then mark it released.

        Processor failures propagate without touching local state so the
        caller can retry; an already-captured intent counts as success.
        ``released`` is False when the payment left ``held`` while the
        capture was in flight.
        """
        if payment.status != PaymentStatus.HELD or not payment.stripe_payment_intent_id:
            raise PaymentNotReady()

        result = await self.gateway.capture_payment_intent(payment.stripe_payment_intent_id)

        released = await self.machine.transition(payment, PaymentStatus.RELEASED)
        if not released:
            logger.warning(
                "Payment left 'held' before capture was recorded",
                extra={"booking_id": str(payment.booking_id), "payment_id": str(payment.id)},
            )
        return CheckinCapture(result=result, released=released)

    async def mark_held(
        self,
        booking_id: Any,
        payment_intent_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> int:
        """Hold the payment opened by ``session_id``.

        Events that name no session fall back to the booking's pending payments.
        """
        extra = {"stripe_payment_intent_id": payment_intent_id} if payment_intent_id else {}
        if session_id:
            return await self.machine.transition_for_session(
                session_id, PaymentStatus.HELD, [PaymentStatus.PENDING], **extra
            )
        return await self.machine.transition_for_booking(
            booking_id, PaymentStatus.HELD, [PaymentStatus.PENDING], **extra
        )

    async def mark_failed_for_session(self, session_id: str) -> int:
        return await self.machine.transition_for_session(session_id, PaymentStatus.FAILED)

    async def mark_failed_for_booking(self, booking_id: Any) -> int:
        return await self.machine.transition_for_booking(booking_id, PaymentStatus.FAILED)

    async def mark_failed_for_intent(self, payment_intent_id: str) -> int:
        return await self.machine.transition_for_intent(payment_intent_id, PaymentStatus.FAILED)

    async def mark_refunded(self, payment_intent_id: str) -> int:
        return await self.machine.transition_for_intent(payment_intent_id, PaymentStatus.REFUNDED)
