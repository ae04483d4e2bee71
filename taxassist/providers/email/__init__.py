"""
Email providers - mailbox readers behind a common interface.
"""

from .base import BaseEmailProvider
from .gmail import GmailProvider

__all__ = ["BaseEmailProvider", "GmailProvider"]
