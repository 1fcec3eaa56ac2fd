import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from nautica.api.deps import get_settings, get_webhook_processor
from nautica.core.config import Settings
from nautica.core.exceptions import ConfigurationError, InvalidPayload, SignatureInvalid
from nautica.services.webhook_verifier import WebhookProcessor, parse_event, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Stripe event deliveries.

    The body is read as raw bytes and verified before it is parsed.
    Non-2xx responses make Stripe retry, so only real failures return one.
    """
    raw_body = await request.body()

    try:
        secret = settings.require_webhook_secret()
    except ConfigurationError:
        logger.error("❌ STRIPE_WEBHOOK_SECRET is not configured; rejecting delivery")
        return JSONResponse(status_code=500, content={"error": "Webhook not configured"})

    try:
        verify_signature(
            raw_body,
            request.headers.get("stripe-signature"),
            secret,
            tolerance=settings.webhook_tolerance_seconds,
        )
        event = parse_event(raw_body)
    except (SignatureInvalid, InvalidPayload) as e:
        logger.warning(f"⚠️ Stripe webhook rejected: {e.message}")
        return JSONResponse(status_code=400, content={"error": e.message})

    try:
        await processor.process(event)
    except Exception:
        logger.exception("❌ Stripe webhook handler failed", extra={"event_id": event.id, "event_type": event.type})
        return JSONResponse(status_code=500, content={"error": "Webhook handler failed"})

    return {"received": True}
