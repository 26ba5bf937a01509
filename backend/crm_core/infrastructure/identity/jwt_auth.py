"""
JWT Session Provider
Verifies Supabase-issued access tokens locally with the project JWT secret
"""
from typing import Optional

import jwt

from crm_core.core.exceptions import AuthenticationError
from crm_core.domain.interfaces.session_provider import SessionProvider

SUPABASE_AUDIENCE = "authenticated"


class JWTSessionProvider(SessionProvider):
    """
    Offline token verification (HS256).

    Unlike SupabaseSessionProvider this does not see sessions revoked
    before the token expires.
    """

    def __init__(
        self,
        secret: str,
        audience: str = SUPABASE_AUDIENCE,
        algorithms: tuple = ("HS256",),
    ):
        if not secret:
            raise ValueError("JWT secret is required")
        self._secret = secret
        self._audience = audience
        self._algorithms = list(algorithms)

    async def get_session_user_id(self, token: Optional[str]) -> str:
        if not token:
            raise AuthenticationError()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Session expired, please sign in again") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError() from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError()
        return str(user_id)
