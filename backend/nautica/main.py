# nautica/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from nautica.core.config import Settings, load_settings
from nautica.core.database import create_engine_from_settings, create_session_factory
from nautica.core.exceptions import NauticaError, UpstreamError
from nautica.integrations.identity import IdentityVerifier, SupabaseAuthVerifier
from nautica.integrations.llm import AIService, CompletionClient
from nautica.integrations.payments import PaymentGateway, StripeGateway
from nautica.services.category_profiles import load_category_table
from nautica.services.intent_detector import KeywordIntentExtractor

#Import Routers
from nautica.api.v1 import booking_actions, chat, stripe_webhook

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[AsyncEngine] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    identity_verifier: Optional[IdentityVerifier] = None,
    ai_service: Optional[CompletionClient] = None,
) -> FastAPI:
    """Build the API with every collaborator constructed once from ``settings``."""
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = engine or create_engine_from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await engine.dispose()

    app = FastAPI(
        title="Nautica Marketplace API",
        description="Chat booking and escrow payments for boat rentals",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.payment_gateway = payment_gateway or StripeGateway(settings)
    app.state.identity_verifier = identity_verifier or SupabaseAuthVerifier(settings)
    app.state.ai_service = ai_service or AIService(settings)
    app.state.intent_extractor = KeywordIntentExtractor(load_category_table(settings.category_map_path))
    app.state.completion_listeners = []

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NauticaError)
    async def nautica_error_handler(request: Request, exc: NauticaError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def data_store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"❌ Data store failure on {request.url.path}: {type(exc).__name__}")
        error = UpstreamError()
        return JSONResponse(status_code=error.status_code, content={"error": error.message})

    #Include routers
    app.include_router(chat.router, prefix="/api", tags=["chat"])
    app.include_router(booking_actions.router, prefix="/api", tags=["bookings"])
    app.include_router(stripe_webhook.router, prefix="/api", tags=["payments"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Nautica Marketplace API",
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    logger.info("🚤 Nautica API ready")
    return app
