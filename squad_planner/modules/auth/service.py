import logging
from supabase import Client
from squad_planner.core.errors import TransportError
from squad_planner.database.rows import TRANSPORT_EXCEPTIONS
from squad_planner.modules.auth.schemas import Identity
from typing import Optional

logger = logging.getLogger(__name__)


def _is_transport_failure(error: Exception) -> bool:
    # supabase-auth wraps network failures in AuthRetryableError
    return isinstance(error, TRANSPORT_EXCEPTIONS) or type(error).__name__ == "AuthRetryableError"


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_current_user(self, token: Optional[str]) -> Optional[Identity]:
        """Resolve the caller from a Supabase access token. None means no (valid) identity."""
        if not token:
            return None
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            if _is_transport_failure(e):
                logger.error(f"Identity check failed to reach Supabase Auth: {e}")
                raise TransportError()
            logger.info(f"Rejected access token: {e}")
            return None
        if not user_response or not user_response.user:
            return None
        user = user_response.user
        metadata = user.user_metadata or {}
        return Identity(
            id=user.id,
            email=user.email,
            username=metadata.get("username") or metadata.get("full_name"),
        )
