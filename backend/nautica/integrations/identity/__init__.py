from nautica.integrations.identity.supabase_auth import (
    IdentityVerifier,
    SupabaseAuthVerifier,
    bearer_token,
)

__all__ = ["IdentityVerifier", "SupabaseAuthVerifier", "bearer_token"]
