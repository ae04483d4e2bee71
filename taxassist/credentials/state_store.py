"""
AuthStateStore - Pending OAuth consents in ``email_auth_states``.

A state token is random and opaque; the user/provider/email it stands for
lives only in this table. States expire after ``ttl_minutes`` and are
consumed at most once: ``consume`` deletes the row in the same statement
that reads it, so two callbacks racing on one state cannot both win.
"""

import logging
import secrets
from typing import Optional

from taxassist.db.repository import Repository
from taxassist.models import AuthState

logger = logging.getLogger(__name__)

_COLUMNS = "state, user_id, provider, email, created_at, expires_at"


def _to_state(row) -> AuthState:
    return AuthState(
        state=row["state"],
        user_id=row["user_id"],
        provider=row["provider"],
        email=row["email"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
    )


class AuthStateStore(Repository):
    TABLE_NAME = "email_auth_states"

    def __init__(self, db: "Database", ttl_minutes: int = 10):
        super().__init__(db)
        self.ttl_minutes = ttl_minutes

    async def create(self, user_id: str, provider: str, email: str) -> AuthState:
        """Generate and persist a new state token."""
        state = secrets.token_urlsafe(32)
        row = await self.db.fetchrow(
            f"""
            INSERT INTO {self.TABLE_NAME} (state, user_id, provider, email, expires_at)
            VALUES ($1, $2, $3, $4, NOW() + make_interval(mins => $5))
            RETURNING {_COLUMNS}
            """,
            state, user_id, provider, email, self.ttl_minutes,
        )
        # Garbage-collect expired states
        await self.db.execute(
            f"DELETE FROM {self.TABLE_NAME} WHERE expires_at < NOW()"
        )
        return _to_state(row)

    async def peek(self, state: str) -> Optional[AuthState]:
        """Return the live state without consuming it, or None if unknown/expired."""
        row = await self.db.fetchrow(
            f"SELECT {_COLUMNS} FROM {self.TABLE_NAME} "
            "WHERE state = $1 AND expires_at > NOW()",
            state,
        )
        return _to_state(row) if row else None

    async def consume(self, state: str) -> Optional[AuthState]:
        """Delete and return the state. None if unknown, expired or already used."""
        row = await self.db.fetchrow(
            f"DELETE FROM {self.TABLE_NAME} "
            "WHERE state = $1 AND expires_at > NOW() "
            f"RETURNING {_COLUMNS}",
            state,
        )
        if not row:
            logger.info("OAuth state rejected (unknown, expired or already consumed)")
            return None
        return _to_state(row)
