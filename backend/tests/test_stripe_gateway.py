"""Tests for the Stripe gateway using a stand-in SDK client."""
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import stripe

from nautica.core.exceptions import ConfigurationError, UpstreamError
from nautica.integrations.payments import StripeGateway


def fake_client():
    return SimpleNamespace(
        v1=SimpleNamespace(
            checkout=SimpleNamespace(sessions=SimpleNamespace(create_async=AsyncMock())),
            payment_intents=SimpleNamespace(capture_async=AsyncMock(), retrieve_async=AsyncMock()),
        )
    )


async def create(gateway):
    return await gateway.create_checkout_session(
        booking_id="b-1",
        amount_cents=30000,
        currency="brl",
        description="Reserva Azimut 55 - 2025-06-07",
        success_url="https://nautica.test/ok",
        cancel_url="https://nautica.test/cancel",
    )


class TestCreateCheckoutSession:
    async def test_builds_manual_capture_session(self, settings):
        client = fake_client()
        client.v1.checkout.sessions.create_async.return_value = SimpleNamespace(id="cs_1", url="https://pay/cs_1")

        session = await create(StripeGateway(settings, client=client))

        assert session.session_id == "cs_1"
        assert session.url == "https://pay/cs_1"
        params = client.v1.checkout.sessions.create_async.call_args.args[0]
        assert params["payment_intent_data"]["capture_method"] == "manual"
        assert params["client_reference_id"] == "b-1"
        assert params["metadata"] == {"booking_id": "b-1"}
        assert params["line_items"][0]["price_data"]["unit_amount"] == 30000

    async def test_missing_url_is_upstream_error(self, settings):
        client = fake_client()
        client.v1.checkout.sessions.create_async.return_value = {"id": "cs_1", "url": None}

        with pytest.raises(UpstreamError):
            await create(StripeGateway(settings, client=client))

    async def test_auth_error_maps_to_configuration_error(self, settings):
        client = fake_client()
        client.v1.checkout.sessions.create_async.side_effect = stripe.AuthenticationError("Invalid API Key")

        with pytest.raises(ConfigurationError) as exc_info:
            await create(StripeGateway(settings, client=client))
        assert exc_info.value.message == ConfigurationError.default_message

    async def test_processor_error_is_sanitized(self, settings):
        client = fake_client()
        client.v1.checkout.sessions.create_async.side_effect = stripe.APIConnectionError("raw details")

        with pytest.raises(UpstreamError) as exc_info:
            await create(StripeGateway(settings, client=client))
        assert "raw details" not in exc_info.value.message

    async def test_missing_secret_key(self, settings):
        gateway = StripeGateway(replace(settings, stripe_secret_key=None))
        with pytest.raises(ConfigurationError):
            await create(gateway)

    async def test_rejects_non_positive_amount(self, settings):
        gateway = StripeGateway(settings, client=fake_client())
        with pytest.raises(ValueError):
            await gateway.create_checkout_session(
                booking_id="b-1",
                amount_cents=0,
                currency="brl",
                description="x",
                success_url="https://a",
                cancel_url="https://b",
            )


class TestCapturePaymentIntent:
    async def test_capture_uses_idempotency_key(self, settings):
        client = fake_client()
        client.v1.payment_intents.capture_async.return_value = SimpleNamespace(status="succeeded")

        result = await StripeGateway(settings, client=client).capture_payment_intent("pi_1")

        assert result.status == "succeeded"
        assert result.already_captured is False
        kwargs = client.v1.payment_intents.capture_async.call_args.kwargs
        assert kwargs["options"] == {"idempotency_key": "capture-pi_1"}

    async def test_already_captured_counts_as_success(self, settings):
        client = fake_client()
        client.v1.payment_intents.capture_async.side_effect = stripe.InvalidRequestError(
            "This PaymentIntent could not be captured", "intent", code="payment_intent_unexpected_state"
        )
        client.v1.payment_intents.retrieve_async.return_value = SimpleNamespace(status="succeeded")

        result = await StripeGateway(settings, client=client).capture_payment_intent("pi_1")

        assert result.already_captured is True
        client.v1.payment_intents.retrieve_async.assert_awaited_once_with("pi_1")

    async def test_unexpected_state_that_is_not_captured_fails(self, settings):
        client = fake_client()
        client.v1.payment_intents.capture_async.side_effect = stripe.InvalidRequestError(
            "could not be captured", "intent", code="payment_intent_unexpected_state"
        )
        client.v1.payment_intents.retrieve_async.return_value = SimpleNamespace(status="canceled")

        with pytest.raises(UpstreamError):
            await StripeGateway(settings, client=client).capture_payment_intent("pi_1")

    async def test_other_invalid_requests_fail(self, settings):
        client = fake_client()
        client.v1.payment_intents.capture_async.side_effect = stripe.InvalidRequestError(
            "No such payment_intent", "id", code="resource_missing"
        )

        with pytest.raises(UpstreamError):
            await StripeGateway(settings, client=client).capture_payment_intent("pi_missing")
        client.v1.payment_intents.retrieve_async.assert_not_awaited()
