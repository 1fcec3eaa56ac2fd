"""Per-request wiring of the services from collaborators kept on ``app.state``."""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from nautica.core.config import Settings
from nautica.core.database import get_db
from nautica.core.exceptions import Unauthenticated
from nautica.integrations.identity import bearer_token
from nautica.services.availability import AvailabilityCalculator
from nautica.services.booking_service import BookingLifecycleManager
from nautica.services.conversation_engine import ConversationOrchestrator
from nautica.services.db_service import DBService
from nautica.services.escrow import PaymentEscrowManager
from nautica.services.webhook_verifier import WebhookProcessor
import logging

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db_service(db: AsyncSession = Depends(get_db)) -> DBService:
    return DBService(db)


def get_escrow(request: Request, db: DBService = Depends(get_db_service)) -> PaymentEscrowManager:
    return PaymentEscrowManager(db, request.app.state.payment_gateway, request.app.state.settings)


def get_booking_manager(
    request: Request,
    db: DBService = Depends(get_db_service),
    escrow: PaymentEscrowManager = Depends(get_escrow),
) -> BookingLifecycleManager:
    manager = BookingLifecycleManager(db, escrow)
    for listener in request.app.state.completion_listeners:
        manager.add_completion_listener(listener)
    return manager


def get_orchestrator(
    request: Request,
    db: DBService = Depends(get_db_service),
    escrow: PaymentEscrowManager = Depends(get_escrow),
    bookings: BookingLifecycleManager = Depends(get_booking_manager),
) -> ConversationOrchestrator:
    state = request.app.state
    return ConversationOrchestrator(
        db=db,
        bookings=bookings,
        escrow=escrow,
        availability=AvailabilityCalculator(db, state.settings.availability_horizon_days),
        extractor=state.intent_extractor,
        ai=state.ai_service,
    )


def get_webhook_processor(
    escrow: PaymentEscrowManager = Depends(get_escrow),
    bookings: BookingLifecycleManager = Depends(get_booking_manager),
) -> WebhookProcessor:
    return WebhookProcessor(bookings, escrow)


async def require_subject(request: Request) -> str:
    """Verified subject id; raises Unauthenticated."""
    token = bearer_token(request.headers.get("authorization"))
    return await request.app.state.identity_verifier.verify(token)


async def optional_subject(request: Request) -> Optional[str]:
    """Verified subject id, or None for anonymous chat."""
    token = bearer_token(request.headers.get("authorization"))
    if not token:
        return None
    try:
        return await request.app.state.identity_verifier.verify(token)
    except Unauthenticated as e:
        logger.info(f"Chat credential not accepted: {type(e).__name__}")
        return None
