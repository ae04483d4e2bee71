"""Google OAuth 2.0 Authorization Code Flow."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from urllib.parse import urlencode

import httpx

from taxassist.errors import NotConfigured, UpstreamUnavailable, classify_http_status

logger = logging.getLogger(__name__)

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
]


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str
    expires_at: datetime
    scope: str = ""


def _expiry(expires_in) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in or 3600))


class GoogleOAuth:
    """Google OAuth 2.0 client for one registered OAuth app.

    ``transport`` is passed through to ``httpx.AsyncClient`` so tests can
    answer the token endpoint with ``httpx.MockTransport``.
    """

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: str,
        scopes: Optional[List[str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id or ""
        self.client_secret = client_secret or ""
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(GMAIL_SCOPES)
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def require_configured(self) -> None:
        if not self.is_configured:
            raise NotConfigured(
                "Gmail API credentials are not configured. "
                "Set GMAIL_CLIENT_ID and GMAIL_CLIENT_SECRET."
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def build_authorize_url(self, state: str) -> str:
        """Build the Google consent URL."""
        self.require_configured()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens.

        Raises httpx.HTTPError on transport or HTTP failure.
        """
        self.require_configured()
        async with self._client() as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
            response.raise_for_status()
            data = response.json()

        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_at=_expiry(data.get("expires_in")),
            scope=data.get("scope", ""),
        )

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """Trade a refresh token for a new access token.

        Failures are raised as typed errors (Unauthorized for a revoked
        refresh token, UpstreamUnavailable for network trouble).
        """
        self.require_configured()
        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"Google token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Token refresh failed: HTTP {response.status_code}")
            # Google answers 400 invalid_grant for revoked or expired refresh tokens
            status = 401 if response.status_code == 400 else response.status_code
            raise classify_http_status(
                status, "Email access has expired. Please reconnect your email."
            )

        data = response.json()
        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_at=_expiry(data.get("expires_in")),
            scope=data.get("scope", ""),
        )
