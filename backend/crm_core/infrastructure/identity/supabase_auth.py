"""
Supabase Session Provider
Validates access tokens against Supabase Auth
"""
import logging
from typing import Optional

from supabase import Client

from crm_core.core.exceptions import AuthenticationError
from crm_core.domain.interfaces.session_provider import SessionProvider

logger = logging.getLogger(__name__)


class SupabaseSessionProvider(SessionProvider):
    """Asks Supabase Auth who owns the token (one round trip per request)"""

    def __init__(self, client: Client):
        self._client = client

    async def get_session_user_id(self, token: Optional[str]) -> str:
        if not token:
            raise AuthenticationError()

        try:
            user_response = self._client.auth.get_user(token)
        except Exception as e:
            logger.debug(f"Token validation failed: {e}")
            raise AuthenticationError() from e

        if not user_response or not user_response.user:
            raise AuthenticationError()

        return str(user_response.user.id)
