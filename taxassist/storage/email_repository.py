"""
EmailRepository - Data access for the emails table.

Rows are keyed by (user_id, provider message id). Re-syncing a mailbox
refreshes message metadata but never clears scan results.
"""

import logging
from typing import Any, Dict, List, Optional

from taxassist.db.repository import Repository
from taxassist.models import EmailRecord

logger = logging.getLogger(__name__)


class EmailRepository(Repository):
    TABLE_NAME = "emails"

    async def save_many(self, user_id: str, emails: List[EmailRecord]) -> int:
        """Upsert fetched messages. Returns the number written."""
        if not emails:
            return 0
        async with self.db.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    f"""
                    INSERT INTO {self.TABLE_NAME}
                        (id, user_id, from_address, subject, date, preview, read, starred)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    ON CONFLICT (user_id, id) DO UPDATE SET
                        from_address = EXCLUDED.from_address,
                        subject = EXCLUDED.subject,
                        date = EXCLUDED.date,
                        preview = EXCLUDED.preview,
                        read = EXCLUDED.read,
                        starred = EXCLUDED.starred
                    """,
                    [
                        (e.id, user_id, e.from_address, e.subject, e.date,
                         e.preview, e.read, e.starred)
                        for e in emails
                    ],
                )
        logger.info(f"Saved {len(emails)} emails for user {user_id}")
        return len(emails)

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[EmailRecord]:
        """Newest first."""
        rows = await self._fetch_owned(user_id, order_by="date DESC", limit=limit)
        return [EmailRecord.from_row(r) for r in rows]

    async def update_flags(
        self,
        user_id: str,
        email_id: str,
        read: Optional[bool] = None,
        starred: Optional[bool] = None,
    ) -> Optional[EmailRecord]:
        data: Dict[str, Any] = {}
        if read is not None:
            data["read"] = read
        if starred is not None:
            data["starred"] = starred
        if not data:
            return None
        row = await self._update_owned(user_id, "id", email_id, data)
        return EmailRecord.from_row(row) if row else None

    async def mark_tax_documents(self, user_id: str, findings: Dict[str, str]) -> int:
        """Flag emails as carrying a tax document. ``findings`` maps id -> type."""
        if not findings:
            return 0
        async with self.db.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    f"""
                    UPDATE {self.TABLE_NAME}
                    SET has_tax_document = TRUE, document_type = $3
                    WHERE user_id = $1 AND id = $2
                    """,
                    [(user_id, email_id, doc_type) for email_id, doc_type in findings.items()],
                )
        return len(findings)

    async def delete_many(self, user_id: str, email_ids: List[str]) -> int:
        if not email_ids:
            return 0
        result = await self.db.execute(
            f"DELETE FROM {self.TABLE_NAME} WHERE user_id = $1 AND id = ANY($2::text[])",
            user_id, list(email_ids),
        )
        # asyncpg status string, e.g. "DELETE 3"
        return int(result.split()[-1])
