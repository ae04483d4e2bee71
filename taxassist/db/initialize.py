"""
TaxAssist Database Schema Management.

Migrations are an append-only list of (version, description, SQL) tuples.
Applied versions are recorded in ``schema_version``; a Postgres advisory
lock keeps concurrent workers from migrating at the same time.

Usage:
    db = Database(dsn="postgresql://...")
    await db.initialize()
    await ensure_schema(db)
"""

import logging
from typing import List, Tuple

from .database import Database

logger = logging.getLogger(__name__)

# Append-only. Never modify or delete existing entries.
MIGRATIONS: List[Tuple[int, str, str]] = [
    (
        1,
        "Create email_auth_states table",
        """
        CREATE TABLE IF NOT EXISTS email_auth_states (
            state       TEXT PRIMARY KEY,
            user_id     TEXT NOT NULL,
            provider    TEXT NOT NULL,
            email       TEXT NOT NULL,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at  TIMESTAMPTZ NOT NULL DEFAULT NOW() + INTERVAL '10 minutes'
        );
        """,
    ),
    (
        2,
        "Create email_tokens table",
        """
        CREATE TABLE IF NOT EXISTS email_tokens (
            user_id       TEXT NOT NULL,
            provider      TEXT NOT NULL,
            email         TEXT NOT NULL,
            access_token  TEXT NOT NULL,
            refresh_token TEXT,
            expires_at    TIMESTAMPTZ,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, provider, email)
        );
        """,
    ),
    (
        3,
        "Create emails table",
        """
        CREATE TABLE IF NOT EXISTS emails (
            id               TEXT NOT NULL,
            user_id          TEXT NOT NULL,
            from_address     TEXT NOT NULL,
            subject          TEXT NOT NULL,
            date             TEXT NOT NULL,
            preview          TEXT NOT NULL DEFAULT '',
            read             BOOLEAN NOT NULL DEFAULT FALSE,
            starred          BOOLEAN NOT NULL DEFAULT FALSE,
            has_tax_document BOOLEAN NOT NULL DEFAULT FALSE,
            document_type    TEXT,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, id)
        );
        """,
    ),
    (
        4,
        "Create tax_documents table",
        """
        CREATE TABLE IF NOT EXISTS tax_documents (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         TEXT NOT NULL,
            document_type   TEXT NOT NULL,
            issuer          TEXT NOT NULL,
            tax_year        TEXT NOT NULL,
            financial_data  JSONB NOT NULL DEFAULT '{}',
            source_email_id TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        5,
        "Index tax_documents by user",
        "CREATE INDEX IF NOT EXISTS idx_tax_documents_user ON tax_documents (user_id, created_at DESC)",
    ),
]

_BOOTSTRAP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

# Advisory lock ID, unique to this app
_LOCK_ID = 8_2930_0417


async def ensure_schema(db: Database) -> None:
    """Apply any pending migrations, each in its own transaction."""
    async with db.pool.acquire() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", _LOCK_ID)
        try:
            await conn.execute(_BOOTSTRAP_SQL)
            current = await conn.fetchval(
                "SELECT COALESCE(MAX(version), 0) FROM schema_version"
            )

            pending = [(v, d, s) for v, d, s in MIGRATIONS if v > current]
            if not pending:
                logger.debug(f"Schema up to date (version {current})")
                return

            for version, description, sql in pending:
                async with conn.transaction():
                    await conn.execute(sql)
                    await conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES ($1, $2)",
                        version,
                        description,
                    )
                logger.info(f"Migration {version}: {description}")

            logger.info(f"Schema migrated {current} -> {pending[-1][0]}")
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", _LOCK_ID)
