"""
EmailConnector - OAuth consent start and callback for mailbox connections.

``connect`` persists a pending state and returns the consent URL.
``complete`` validates the callback, exchanges the code and stores tokens.
The state row is consumed only after the code exchange succeeds, so a
failed exchange leaves it in place; the consume itself is atomic, so a
state yields at most one stored token.
"""

import logging
from typing import Dict, Optional

import httpx

from taxassist.credentials import AuthStateStore, TokenStore
from taxassist.errors import (
    InternalError,
    InvalidInput,
    InvalidState,
    MissingParameter,
    TaxAssistError,
)
from taxassist.models import TokenRecord
from .google_oauth import GoogleOAuth

logger = logging.getLogger(__name__)


class EmailConnector:

    def __init__(
        self,
        state_store: AuthStateStore,
        token_store: TokenStore,
        oauth_clients: Dict[str, GoogleOAuth],
    ):
        self._states = state_store
        self._tokens = token_store
        self._oauth = oauth_clients

    def _client_for(self, provider: str) -> GoogleOAuth:
        client = self._oauth.get(provider)
        if client is None:
            raise InvalidInput(f"Unsupported email provider: {provider}")
        return client

    async def connect(self, user_id: str, email: str, provider: str = "gmail") -> str:
        """Start the consent flow. Returns the URL to open in a popup."""
        if not email:
            raise MissingParameter("Missing email")
        oauth = self._client_for(provider)
        # Check configuration before a state row is written
        oauth.require_configured()

        auth_state = await self._states.create(user_id, provider, email)
        logger.info(f"Started {provider} OAuth for user {user_id}")
        return oauth.build_authorize_url(auth_state.state)

    async def complete(self, code: Optional[str], state: Optional[str]) -> TokenRecord:
        """Finish the consent flow and persist the mailbox tokens."""
        if not code or not state:
            raise MissingParameter("Missing code or state")

        pending = await self._states.peek(state)
        if pending is None:
            raise InvalidState()

        oauth = self._client_for(pending.provider)
        try:
            tokens = await oauth.exchange_code(code)
        except TaxAssistError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"OAuth code exchange failed: {e}")
            raise InternalError("Internal server error") from e
        except Exception as e:
            logger.error(f"OAuth code exchange returned an unusable response: {e}", exc_info=True)
            raise InternalError("Internal server error") from e

        consumed = await self._states.consume(state)
        if consumed is None:
            # Another callback used this state between peek and consume
            raise InvalidState()

        record = TokenRecord(
            user_id=consumed.user_id,
            provider=consumed.provider,
            email=consumed.email,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
        )
        try:
            await self._tokens.upsert(record)
        except TaxAssistError:
            raise
        except Exception as e:
            logger.error(f"Failed to store tokens: {e}", exc_info=True)
            raise InternalError("Internal server error") from e
        return record
