"""FastAPI app creation, CORS, global state, and helper functions."""

import json
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import APIKeyHeader

from ..app import TaxAssist
from ..errors import InternalError, TaxAssistError, Unauthenticated

logger = logging.getLogger(__name__)

_config_path = os.getenv("TAXASSIST_CONFIG", "config.yaml")

_app: Optional[TaxAssist] = None


def _try_load_app():
    """Attempt to load TaxAssist from config. Silent if config missing."""
    global _app
    try:
        if os.path.exists(_config_path):
            _app = TaxAssist(_config_path)
            logger.info(f"TaxAssist loaded from {_config_path}")
        else:
            logger.warning(f"Config not found: {_config_path}")
    except Exception as e:
        logger.warning(f"Failed to load config: {e}")
        _app = None


def require_app() -> TaxAssist:
    """Raise 503 if app is not configured. Lazy-loads on first call."""
    global _app
    if _app is None:
        _try_load_app()
    if _app is None:
        raise HTTPException(503, "Not configured. Provide a config file via TAXASSIST_CONFIG.")
    return _app


def set_app(new_app: Optional[TaxAssist]):
    """Replace the global TaxAssist instance."""
    global _app
    _app = new_app


# ── Optional API key authentication ──

_API_KEY = os.getenv("TAXASSIST_API_KEY")
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    request: Request,
    api_key_header_value: Optional[str] = Security(_api_key_header),
):
    """Verify API key from Authorization: Bearer <key> or X-API-Key header.

    When TAXASSIST_API_KEY is not set, all requests are allowed (dev mode).
    """
    if _API_KEY is None:
        return None

    if api_key_header_value and api_key_header_value == _API_KEY:
        return api_key_header_value

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer ") and auth_header[7:] == _API_KEY:
        return auth_header[7:]

    raise HTTPException(401, "Invalid or missing API key")


async def require_user(request: Request) -> str:
    """Caller identity, set by the auth gateway in front of the service."""
    user_id = request.headers.get("x-user-id", "").strip()
    if not user_id:
        raise Unauthenticated()
    return user_id


def oauth_success_html(app_url: str) -> HTMLResponse:
    """Popup page that notifies its opener and closes itself."""
    origin = json.dumps(app_url)
    return HTMLResponse(
        "<html><body style='font-family:sans-serif;text-align:center;padding:60px'>"
        "<h2>Email connected</h2>"
        "<p>You can close this window.</p>"
        "<script>"
        f"if(window.opener){{window.opener.postMessage({{type:'EMAIL_AUTH_SUCCESS'}},{origin});}}"
        "window.close();"
        "</script></body></html>"
    )


def error_body(error: TaxAssistError) -> dict:
    return {"error": error.kind, "detail": error.message}


async def _handle_taxassist_error(request: Request, exc: TaxAssistError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def _handle_unexpected_error(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} crashed: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=error_body(InternalError()))


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    from .. import __version__

    _api = FastAPI(title="TaxAssist", version=__version__)

    allowed_origins_str = os.getenv("TAXASSIST_ALLOWED_ORIGINS", "http://localhost:3000")
    allowed_origins = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _api.add_exception_handler(TaxAssistError, _handle_taxassist_error)
    _api.add_exception_handler(Exception, _handle_unexpected_error)

    if _API_KEY is None:
        logger.warning(
            "TAXASSIST_API_KEY is not set. API endpoints are unauthenticated. "
            "Set TAXASSIST_API_KEY environment variable to enable authentication."
        )

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
