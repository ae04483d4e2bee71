"""
TokenStore - OAuth tokens per connected mailbox in ``email_tokens``.

One row per (user_id, provider, email). Reconnecting overwrites the row;
a re-consent that comes back without a refresh token keeps the stored one.
"""

import logging
from datetime import datetime
from typing import Optional

from taxassist.db.repository import Repository
from taxassist.models import TokenRecord

logger = logging.getLogger(__name__)


def _to_record(row) -> TokenRecord:
    return TokenRecord(
        user_id=row["user_id"],
        provider=row["provider"],
        email=row["email"],
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        expires_at=row["expires_at"],
    )


class TokenStore(Repository):
    TABLE_NAME = "email_tokens"

    async def upsert(self, record: TokenRecord) -> None:
        await self.db.execute(
            f"""
            INSERT INTO {self.TABLE_NAME}
                (user_id, provider, email, access_token, refresh_token, expires_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (user_id, provider, email)
            DO UPDATE SET
                access_token = EXCLUDED.access_token,
                refresh_token = COALESCE(NULLIF(EXCLUDED.refresh_token, ''), {self.TABLE_NAME}.refresh_token),
                expires_at = EXCLUDED.expires_at,
                updated_at = NOW()
            """,
            record.user_id, record.provider, record.email,
            record.access_token, record.refresh_token, record.expires_at,
        )
        logger.info(f"Saved {record.provider} tokens for user {record.user_id}")

    async def get(
        self,
        user_id: str,
        provider: str,
        email: Optional[str] = None,
    ) -> Optional[TokenRecord]:
        """Return the tokens for one mailbox, or the most recently updated one."""
        if email:
            row = await self.db.fetchrow(
                f"SELECT * FROM {self.TABLE_NAME} "
                "WHERE user_id = $1 AND provider = $2 AND email = $3",
                user_id, provider, email,
            )
        else:
            row = await self.db.fetchrow(
                f"SELECT * FROM {self.TABLE_NAME} "
                "WHERE user_id = $1 AND provider = $2 "
                "ORDER BY updated_at DESC LIMIT 1",
                user_id, provider,
            )
        return _to_record(row) if row else None

    async def update_access_token(
        self,
        user_id: str,
        provider: str,
        email: str,
        access_token: str,
        expires_at: Optional[datetime],
    ) -> None:
        await self.db.execute(
            f"""
            UPDATE {self.TABLE_NAME}
            SET access_token = $4, expires_at = $5, updated_at = NOW()
            WHERE user_id = $1 AND provider = $2 AND email = $3
            """,
            user_id, provider, email, access_token, expires_at,
        )
