"""
TaxDocumentRepository - Data access for the tax_documents table.

Documents are written once by the extraction flows and never updated.
"""

import logging
from typing import List, Optional

from taxassist.db.repository import Repository
from taxassist.extraction.models import ExtractedDocument

logger = logging.getLogger(__name__)


class TaxDocumentRepository(Repository):
    TABLE_NAME = "tax_documents"

    async def save(
        self,
        user_id: str,
        document: ExtractedDocument,
        source_email_id: Optional[str] = None,
    ) -> dict:
        """Insert an extracted document and return the created row."""
        return await self._insert({
            "user_id": user_id,
            "document_type": document.document_type,
            "issuer": document.issuer,
            "tax_year": document.tax_year,
            "financial_data": document.financial_data,
            "source_email_id": source_email_id,
        })

    async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[dict]:
        """Newest first."""
        return await self._fetch_owned(user_id, order_by="created_at DESC", limit=limit)
