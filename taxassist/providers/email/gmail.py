"""
Gmail Provider - Gmail API v1 message metadata reader

Requires OAuth scope: gmail.readonly
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from taxassist.errors import UpstreamUnavailable, classify_http_status
from taxassist.models import EmailRecord
from .base import BaseEmailProvider

logger = logging.getLogger(__name__)

# Gmail search operator for "the last six months"
LOOKBACK_QUERY = "newer_than:6m"
METADATA_HEADERS = ["Subject", "From", "Date"]


def _normalize_date(value: Optional[str]) -> str:
    """RFC 2822 header date to UTC ISO-8601; now when missing or unparseable."""
    if not value:
        return datetime.now(timezone.utc).isoformat()
    from dateutil import parser

    try:
        parsed = parser.parse(value)
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable Date header: {value!r}")
        return datetime.now(timezone.utc).isoformat()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def message_to_record(msg_data: Dict[str, Any]) -> EmailRecord:
    """Map a ``format=metadata`` Gmail message to an EmailRecord."""
    headers = {
        h["name"].lower(): h["value"]
        for h in msg_data.get("payload", {}).get("headers", [])
    }
    labels = msg_data.get("labelIds", [])
    return EmailRecord(
        id=msg_data["id"],
        from_address=headers.get("from") or "Unknown Sender",
        subject=headers.get("subject") or "No Subject",
        date=_normalize_date(headers.get("date")),
        preview=msg_data.get("snippet", ""),
        read="UNREAD" not in labels,
        starred="STARRED" in labels,
        has_tax_document=False,
        document_type=None,
    )


class GmailProvider(BaseEmailProvider):
    """Gmail reader using Gmail API v1."""

    api_base_url = "https://gmail.googleapis.com/gmail/v1"

    def __init__(self, *args, timeout: float = 30.0, transport=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.timeout = timeout
        self._transport = transport
        self._refresh_lock = asyncio.Lock()

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        """GET with one refresh-and-retry on 401. Raises typed errors."""
        url = f"{self.api_base_url}{path}"
        used_token = self.access_token
        try:
            response = await client.get(
                url,
                headers={"Authorization": f"Bearer {used_token}"},
                params=params,
            )
            if response.status_code == 401:
                async with self._refresh_lock:
                    # Concurrent requests share one refresh
                    if self.access_token == used_token:
                        logger.warning(f"401 Unauthorized - refreshing token for {self.email}")
                        await self.ensure_valid_token(force_refresh=True)
                response = await client.get(
                    url,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                    params=params,
                )
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"Gmail API unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Gmail API error {response.status_code} for {path}")
            raise classify_http_status(
                response.status_code, f"Gmail API error: {response.status_code}"
            )
        return response.json()

    async def list_recent_messages(self, max_results: int = 100) -> List[EmailRecord]:
        """Fetch metadata for messages newer than six months."""
        await self.ensure_valid_token()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            listing = await self._get(
                client,
                "/users/me/messages",
                {"q": LOOKBACK_QUERY, "maxResults": max_results},
            )
            ids = [m["id"] for m in listing.get("messages", [])][:max_results]
            tasks = [
                asyncio.create_task(self._get(
                    client,
                    f"/users/me/messages/{msg_id}",
                    {"format": "metadata", "metadataHeaders": METADATA_HEADERS},
                ))
                for msg_id in ids
            ]
            try:
                details = await asyncio.gather(*tasks)
            except BaseException:
                # Stop sibling fetches before the client closes
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        records = [message_to_record(d) for d in details]
        logger.info(f"Fetched {len(records)} Gmail messages for {self.email}")
        return records
