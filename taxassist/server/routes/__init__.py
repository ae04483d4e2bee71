"""Route registration for the TaxAssist API."""

from fastapi import FastAPI

from .documents import router as documents_router
from .emails import router as emails_router
from .expenses import router as expenses_router
from .health import router as health_router
from .irs import router as irs_router
from .oauth import router as oauth_router


def register_routes(app: FastAPI):
    app.include_router(health_router)
    app.include_router(oauth_router)
    app.include_router(emails_router)
    app.include_router(documents_router)
    app.include_router(expenses_router)
    app.include_router(irs_router)
