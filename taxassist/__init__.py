"""
TaxAssist - Tax document assistant backend

Connects a user's Gmail account over OAuth, pulls recent message metadata,
and uses a text-generation model to find tax documents, extract their key
figures, classify expense statements and answer filing-requirement
questions.

Quick Start:
    from taxassist import TaxAssist

    app = TaxAssist("config.yaml")
    url = await app.connect_email_provider("user-1", "me@gmail.com")
"""

__version__ = "0.1.0"

from .app import DocumentResult, TaxAssist
from .errors import TaxAssistError

__all__ = ["TaxAssist", "DocumentResult", "TaxAssistError", "__version__"]
