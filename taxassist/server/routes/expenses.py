"""Expense statement classification route."""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ...errors import InvalidInput
from ..app import require_app, require_user, verify_api_key
from .documents import read_upload

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/api/expenses/classify")
async def classify_expenses(
    file: Optional[UploadFile] = File(default=None),
    user_id: str = Depends(require_user),
):
    """Classify the transactions in a PDF or CSV statement."""
    if file is None:
        raise InvalidInput("No file provided")
    app = require_app()
    result = await app.classify_expenses(await read_upload(file))
    return result.model_dump(by_alias=True)
