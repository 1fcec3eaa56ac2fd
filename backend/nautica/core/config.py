from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from nautica.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_MAP_PATH = Path(__file__).resolve().parents[1] / "data" / "boat_categories.csv"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and injected.

    Only ``database_url`` is required to boot. Processor, webhook and
    identity credentials are validated lazily by the component that needs
    them so a misconfigured deployment fails loudly on first use.
    """

    database_url: str
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_currency: str = "brl"
    webhook_tolerance_seconds: int = 300
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    public_app_url: str = "http://localhost:5173"
    default_commission_rate: Decimal = Decimal("10")
    availability_horizon_days: int = 60
    processor_timeout_seconds: float = 15.0
    llm_timeout_seconds: float = 20.0
    category_map_path: Path = DEFAULT_CATEGORY_MAP_PATH
    log_level: str = "INFO"
    sql_echo: bool = False

    def require_stripe_secret_key(self) -> str:
        if not self.stripe_secret_key:
            logger.error("❌ STRIPE_SECRET_KEY is not configured")
            raise ConfigurationError()
        return self.stripe_secret_key

    def require_webhook_secret(self) -> str:
        if not self.stripe_webhook_secret:
            logger.error("❌ STRIPE_WEBHOOK_SECRET is not configured")
            raise ConfigurationError()
        return self.stripe_webhook_secret


def _async_database_url(url: str) -> str:
    # Supabase/Heroku style URLs come without an async driver.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return url.replace("postgresql", "postgresql+asyncpg", 1)
    return url


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def load_settings() -> Settings:
    """Load settings from the environment (and ``.env`` when present)."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not configured")

    category_map = os.getenv("BOAT_CATEGORY_MAP_PATH")

    return Settings(
        database_url=_async_database_url(database_url.strip()),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        stripe_currency=os.getenv("STRIPE_CURRENCY", "brl").lower(),
        webhook_tolerance_seconds=int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", 300)),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
        llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or None,
        llm_base_url=os.getenv("LLM_BASE_URL") or None,
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        public_app_url=os.getenv("PUBLIC_APP_URL", "http://localhost:5173").rstrip("/"),
        default_commission_rate=Decimal(os.getenv("DEFAULT_COMMISSION_RATE", "10")),
        availability_horizon_days=int(os.getenv("AVAILABILITY_HORIZON_DAYS", 60)),
        processor_timeout_seconds=float(os.getenv("PROCESSOR_TIMEOUT_SECONDS", 15)),
        llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", 20)),
        category_map_path=Path(category_map) if category_map else DEFAULT_CATEGORY_MAP_PATH,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        sql_echo=_env_flag("SQL_ECHO"),
    )
