"""Email OAuth connect + callback routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ...errors import TaxAssistError
from ..app import oauth_success_html, require_app, require_user, verify_api_key
from ..models import ConnectEmailRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/email/connect", dependencies=[Depends(verify_api_key)])
async def connect_email(req: ConnectEmailRequest, user_id: str = Depends(require_user)):
    """Initiate the OAuth flow. Returns the URL to open in a popup."""
    app = require_app()
    url = await app.connect_email_provider(user_id, req.email, req.provider)
    return {"authorize_url": url}


@router.get("/api/auth/callback/gmail/test-env", dependencies=[Depends(verify_api_key)])
async def oauth_settings_status():
    """Report which Gmail OAuth settings are present (never their values)."""
    app = require_app()
    return app.oauth_settings_status()


@router.get("/api/auth/callback/gmail")
async def gmail_oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Google redirects here after consent. Answers with a popup-closing page."""
    if error:
        logger.info(f"Gmail consent not granted: {error}")
        return PlainTextResponse("Authorization was not granted", status_code=400)

    app = require_app()
    try:
        token = await app.handle_oauth_callback(code, state)
    except TaxAssistError as e:
        if e.status_code >= 500:
            return PlainTextResponse("Internal server error", status_code=500)
        return PlainTextResponse(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Gmail OAuth callback failed: {e}", exc_info=True)
        return PlainTextResponse("Internal server error", status_code=500)

    logger.info(f"Gmail connected for user {token.user_id}")
    return oauth_success_html(app.app_url)
