from .google_oauth import GMAIL_SCOPES, GoogleOAuth, OAuthTokens
from .connector import EmailConnector

__all__ = ["GMAIL_SCOPES", "GoogleOAuth", "OAuthTokens", "EmailConnector"]
