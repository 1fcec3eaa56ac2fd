from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, NoReturn, Optional, Protocol

import stripe

from nautica.core.config import Settings
from nautica.core.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

# Stripe answers a second capture of the same intent with this code.
UNEXPECTED_STATE_CODE = "payment_intent_unexpected_state"


@dataclass
class CheckoutSession:
    session_id: str
    url: str


@dataclass
class CaptureResult:
    payment_intent_id: str
    status: str
    already_captured: bool = False


class PaymentGateway(Protocol):
    """The three processor operations the escrow flow depends on."""

    async def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        ...

    async def capture_payment_intent(self, payment_intent_id: str) -> CaptureResult:
        ...


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _raise_for_stripe_error(exc: stripe.StripeError, operation: str, **context: Any) -> NoReturn:
    """Log a sanitized summary and map onto the service taxonomy."""
    logger.error(
        f"Stripe {operation} failed: {type(exc).__name__}",
        extra={
            "stripe_code": getattr(exc, "code", None),
            "http_status": getattr(exc, "http_status", None),
            **context,
        },
    )
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        logger.error("❌ Stripe credentials are invalid or unauthorized")
        raise ConfigurationError() from exc
    raise UpstreamError() from exc


class StripeGateway:
    """Manual-capture Checkout on top of the Stripe SDK's async client."""

    def __init__(self, settings: Settings, client: Optional[stripe.StripeClient] = None):
        self.settings = settings
        self._client = client

    def _get_client(self) -> stripe.StripeClient:
        if self._client is None:
            api_key = self.settings.require_stripe_secret_key()
            self._client = stripe.StripeClient(
                api_key,
                http_client=stripe.HTTPXClient(timeout=self.settings.processor_timeout_seconds),
                max_network_retries=1,
            )
        return self._client

    async def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        if amount_cents <= 0:
            raise ValueError("amount_cents must be positive")

        client = self._get_client()
        params = {
            "mode": "payment",
            "client_reference_id": booking_id,
            "metadata": {"booking_id": booking_id},
            "payment_intent_data": {
                # Authorize now, capture at check-in
                "capture_method": "manual",
                "metadata": {"booking_id": booking_id},
            },
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
        }

        try:
            session = await client.v1.checkout.sessions.create_async(params)
        except stripe.StripeError as exc:
            _raise_for_stripe_error(exc, "checkout.session.create", booking_id=booking_id)

        session_id = _field(session, "id")
        url = _field(session, "url")
        if not session_id or not url:
            logger.error(
                "Stripe checkout session response missing id/url",
                extra={"booking_id": booking_id},
            )
            raise UpstreamError()

        return CheckoutSession(session_id=session_id, url=url)

    async def capture_payment_intent(self, payment_intent_id: str) -> CaptureResult:
        client = self._get_client()
        try:
            intent = await client.v1.payment_intents.capture_async(
                payment_intent_id,
                options={"idempotency_key": f"capture-{payment_intent_id}"},
            )
            return CaptureResult(
                payment_intent_id=payment_intent_id,
                status=_field(intent, "status") or "succeeded",
            )
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", None) != UNEXPECTED_STATE_CODE:
                _raise_for_stripe_error(exc, "payment_intent.capture", payment_intent_id=payment_intent_id)
            # Possibly captured by an earlier attempt; confirm before trusting it.
            return await self._confirm_already_captured(client, payment_intent_id, exc)
        except stripe.StripeError as exc:
            _raise_for_stripe_error(exc, "payment_intent.capture", payment_intent_id=payment_intent_id)

    async def _confirm_already_captured(
        self,
        client: stripe.StripeClient,
        payment_intent_id: str,
        original: stripe.StripeError,
    ) -> CaptureResult:
        try:
            intent = await client.v1.payment_intents.retrieve_async(payment_intent_id)
        except stripe.StripeError as exc:
            _raise_for_stripe_error(exc, "payment_intent.retrieve", payment_intent_id=payment_intent_id)

        status = _field(intent, "status")
        if status == "succeeded":
            logger.info(
                "Payment intent already captured; treating as success",
                extra={"payment_intent_id": payment_intent_id},
            )
            return CaptureResult(payment_intent_id=payment_intent_id, status=status, already_captured=True)

        _raise_for_stripe_error(original, "payment_intent.capture", payment_intent_id=payment_intent_id, intent_status=status)
