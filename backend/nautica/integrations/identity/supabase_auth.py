from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import httpx
from supabase import AuthError, AuthRetryableError, Client, create_client

from nautica.core.config import Settings
from nautica.core.exceptions import ConfigurationError, Unauthenticated, UpstreamError

logger = logging.getLogger(__name__)


class IdentityVerifier(Protocol):
    async def verify(self, token: Optional[str]) -> str:
        """Return the verified subject id for ``token`` or raise Unauthenticated."""
        ...


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the credential from an ``Authorization: Bearer ...`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class SupabaseAuthVerifier:
    """Resolves Supabase access tokens to user ids."""

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        """Keep settings; the Supabase client is created on first use."""
        self.settings = settings
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            if not self.settings.supabase_url or not self.settings.supabase_anon_key:
                logger.error("❌ SUPABASE_URL / SUPABASE_ANON_KEY are not configured")
                raise ConfigurationError()
            self._client = create_client(self.settings.supabase_url, self.settings.supabase_anon_key)
        return self._client

    async def verify(self, token: Optional[str]) -> str:
        """Return the user id behind ``token``."""
        if not token:
            raise Unauthenticated()

        client = self._get_client()
        try:
            # supabase-py auth is synchronous
            response = await asyncio.to_thread(client.auth.get_user, token)
        except (AuthRetryableError, httpx.HTTPError) as exc:
            logger.error(f"❌ Supabase auth unreachable: {type(exc).__name__}")
            raise UpstreamError() from exc
        except AuthError as exc:
            logger.info(f"Supabase rejected credential: {type(exc).__name__}")
            raise Unauthenticated() from exc

        user = getattr(response, "user", None)
        user_id = getattr(user, "id", None)
        if not user_id:
            raise Unauthenticated()
        return str(user_id)
