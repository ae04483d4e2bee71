"""
TaxAssist Models - Persisted records shared across components.

Model-output record types (findings, extracted documents, transactions)
live in ``taxassist.extraction.models`` because they are validated with
pydantic; these are the plain rows the stores and repositories exchange.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class AuthState:
    """A pending OAuth consent, keyed by an opaque random state token."""
    state: str
    user_id: str
    provider: str
    email: str
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or datetime.now(timezone.utc))


@dataclass
class TokenRecord:
    """OAuth tokens for one connected mailbox."""
    user_id: str
    provider: str
    email: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        # Tokens are secrets; keep them out of logs and tracebacks
        return (
            f"TokenRecord(user_id={self.user_id!r}, provider={self.provider!r}, "
            f"email={self.email!r}, expires_at={self.expires_at!r})"
        )


@dataclass
class EmailRecord:
    """Metadata for one provider message, as stored in the ``emails`` table."""
    id: str
    from_address: str
    subject: str
    date: str
    preview: str = ""
    read: bool = False
    starred: bool = False
    has_tax_document: bool = False
    document_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "EmailRecord":
        return cls(
            id=row["id"],
            from_address=row["from_address"],
            subject=row["subject"],
            date=row["date"],
            preview=row.get("preview") or "",
            read=bool(row.get("read")),
            starred=bool(row.get("starred")),
            has_tax_document=bool(row.get("has_tax_document")),
            document_type=row.get("document_type"),
        )
