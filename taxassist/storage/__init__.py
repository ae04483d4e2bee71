from .email_repository import EmailRepository
from .document_repository import TaxDocumentRepository

__all__ = ["EmailRepository", "TaxDocumentRepository"]
