"""
Session Provider Interface
Turns a bearer token into the authenticated user id
"""
from abc import ABC, abstractmethod
from typing import Optional


class SessionProvider(ABC):
    """Abstract base class for identity/session providers"""

    @abstractmethod
    async def get_session_user_id(self, token: Optional[str]) -> str:
        """
        Validate a session token.

        Args:
            token: Raw bearer token (without the "Bearer " prefix)

        Returns:
            user_id of the authenticated user

        Raises:
            AuthenticationError: If the token is missing, invalid or expired
        """
        pass
