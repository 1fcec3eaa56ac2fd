"""
Stripe webhook verification and event dispatch.

Signatures are checked by the Stripe SDK over the exact bytes received,
before the body is parsed. Handlers are looked up by event type; anything
without a handler is acknowledged and ignored so the processor never keeps
redelivering it.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe

from nautica.core.exceptions import InvalidPayload, SignatureInvalid
from nautica.services.booking_service import BookingLifecycleManager
from nautica.services.escrow import PaymentEscrowManager

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


def header_timestamp(header: str) -> int:
    """The ``t=`` field of a ``Stripe-Signature`` header."""
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            return int(value)
    raise ValueError("Stripe-Signature header has no timestamp")


def verify_signature(
    raw_body: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> int:
    """Raise SignatureInvalid unless ``header`` signs ``raw_body``; return its timestamp.

    The SDK rejects stale timestamps; timestamps too far in the future are
    rejected here so the window holds in both directions.
    """
    if not secret or not header:
        raise SignatureInvalid()

    try:
        stripe.WebhookSignature.verify_header(raw_body.decode("utf-8"), header, secret, tolerance)
        timestamp = header_timestamp(header)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.info(f"Stripe signature rejected: {type(e).__name__}")
        raise SignatureInvalid() from e

    if timestamp - time.time() > tolerance:
        raise SignatureInvalid()
    return timestamp


@dataclass
class WebhookEvent:
    id: Optional[str]
    type: str
    data_object: Dict[str, Any] = field(default_factory=dict)


def parse_event(raw_body: bytes) -> WebhookEvent:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise InvalidPayload()
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise InvalidPayload()

    data = payload.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    return WebhookEvent(
        id=payload.get("id"),
        type=payload["type"],
        data_object=obj if isinstance(obj, dict) else {},
    )


def _booking_ref(obj: Dict[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    return obj.get("client_reference_id") or metadata.get("booking_id")


def _intent_ref(obj: Dict[str, Any]) -> Optional[str]:
    intent = obj.get("payment_intent")
    if isinstance(intent, dict):
        return intent.get("id")
    return intent


Handler = Callable[[WebhookEvent], Awaitable[None]]


class WebhookProcessor:
    """Applies verified processor events to payments and bookings."""

    def __init__(self, bookings: BookingLifecycleManager, escrow: PaymentEscrowManager):
        self.bookings = bookings
        self.escrow = escrow
        self.handlers: Dict[str, Handler] = {
            "checkout.session.completed": self._on_checkout_completed,
            "checkout.session.expired": self._on_checkout_expired,
            "payment_intent.payment_failed": self._on_payment_failed,
            "charge.refunded": self._on_charge_refunded,
        }

    async def process(self, event: WebhookEvent) -> bool:
        """Dispatch ``event``; False when its type is acknowledged but ignored."""
        handler = self.handlers.get(event.type)
        if handler is None:
            logger.info(f"Ignoring webhook event type {event.type}", extra={"event_id": event.id})
            return False
        await handler(event)
        return True

    async def _on_checkout_completed(self, event: WebhookEvent) -> None:
        obj = event.data_object
        booking_id = _booking_ref(obj)
        if not booking_id:
            logger.warning("checkout.session.completed missing booking id", extra={"event_id": event.id})
            return

        session_id = obj.get("id")
        held = await self.escrow.mark_held(booking_id, _intent_ref(obj), session_id=session_id)
        confirmed = await self.bookings.confirm_booking(booking_id)
        logger.info(
            "🔒 Checkout completed",
            extra={
                "event_id": event.id,
                "booking_id": booking_id,
                "checkout_session_id": session_id,
                "payments_held": held,
                "booking_confirmed": confirmed,
            },
        )

    async def _on_checkout_expired(self, event: WebhookEvent) -> None:
        obj = event.data_object
        booking_id = _booking_ref(obj)
        session_id = obj.get("id")
        if not booking_id and not session_id:
            return
        # Booking stays pending so the renter can pay again.
        if session_id:
            failed = await self.escrow.mark_failed_for_session(session_id)
        else:
            failed = await self.escrow.mark_failed_for_booking(booking_id)
        logger.info(
            "Checkout expired",
            extra={
                "event_id": event.id,
                "booking_id": booking_id,
                "checkout_session_id": session_id,
                "payments_failed": failed,
            },
        )

    async def _on_payment_failed(self, event: WebhookEvent) -> None:
        intent_id = event.data_object.get("id")
        if not intent_id:
            return
        failed = await self.escrow.mark_failed_for_intent(intent_id)
        logger.info(
            "Payment intent failed",
            extra={"event_id": event.id, "payment_intent_id": intent_id, "payments_failed": failed},
        )

    async def _on_charge_refunded(self, event: WebhookEvent) -> None:
        intent_id = _intent_ref(event.data_object)
        if not intent_id:
            return
        refunded = await self.escrow.mark_refunded(intent_id)
        if not refunded:
            return

        payment = await self.escrow.db.get_payment_by_intent(intent_id)
        if payment is not None:
            await self.bookings.mark_refunded(payment.booking_id)
        logger.info(
            "Charge refunded",
            extra={"event_id": event.id, "payment_intent_id": intent_id},
        )
