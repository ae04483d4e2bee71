"""
Base Email Provider - Abstract interface for mailbox readers

Providers receive a stored TokenRecord and the OAuth client that can
refresh it; they do not query any database themselves. After a refresh
the ``on_token_refreshed`` coroutine is awaited with the updated record so
the caller can persist it.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from taxassist.errors import Unauthorized
from taxassist.models import EmailRecord, TokenRecord
from taxassist.oauth.google_oauth import GoogleOAuth

logger = logging.getLogger(__name__)

TokenCallback = Callable[[TokenRecord], Awaitable[None]]

# Refresh when the access token has less than this left
REFRESH_MARGIN = timedelta(minutes=5)


class BaseEmailProvider(ABC):

    def __init__(
        self,
        token: TokenRecord,
        oauth: GoogleOAuth,
        on_token_refreshed: Optional[TokenCallback] = None,
    ):
        self.token = token
        self.oauth = oauth
        self._on_token_refreshed = on_token_refreshed

    @property
    def email(self) -> str:
        return self.token.email

    @property
    def access_token(self) -> str:
        return self.token.access_token

    @abstractmethod
    async def list_recent_messages(self, max_results: int = 100) -> List[EmailRecord]:
        """Return metadata for the mailbox's recent messages."""

    async def ensure_valid_token(self, force_refresh: bool = False) -> None:
        """Refresh the access token if forced or close to expiry."""
        if force_refresh:
            logger.info(f"Forcing token refresh for {self.email}")
            await self._do_refresh()
            return

        expiry = self.token.expires_at
        if expiry is None:
            return
        if isinstance(expiry, str):
            from dateutil import parser
            expiry = parser.parse(expiry)
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        self.token.expires_at = expiry

        if expiry <= datetime.now(timezone.utc) + REFRESH_MARGIN:
            logger.info(f"Token expiring soon for {self.email}, refreshing")
            await self._do_refresh()

    async def _do_refresh(self) -> None:
        if not self.token.refresh_token:
            raise Unauthorized("Email access has expired. Please reconnect your email.")

        tokens = await self.oauth.refresh_access_token(self.token.refresh_token)
        self.token.access_token = tokens.access_token
        self.token.expires_at = tokens.expires_at

        if self._on_token_refreshed:
            await self._on_token_refreshed(self.token)
        logger.info(f"Token refreshed for {self.email}")

    def __repr__(self):
        return f"<{self.__class__.__name__} email={self.email}>"
