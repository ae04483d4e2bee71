"""Tax document upload, pasted-email analysis and listing routes."""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from ...extraction import UploadedFile
from ..app import require_app, require_user, verify_api_key
from ..models import AnalyzeEmailRequest

router = APIRouter(dependencies=[Depends(verify_api_key)])


async def read_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        file_name=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=await upload.read(),
    )


@router.post("/api/documents")
async def process_documents(
    files: List[UploadFile] = File(default=[]),
    user_id: str = Depends(require_user),
):
    """Extract each uploaded file; results are reported per file."""
    app = require_app()
    uploads = [await read_upload(f) for f in files]
    results = await app.process_tax_documents(user_id, uploads)
    return [r.to_dict() for r in results]


@router.post("/api/documents/analyze-email")
async def analyze_email(req: AnalyzeEmailRequest, user_id: str = Depends(require_user)):
    app = require_app()
    result = await app.analyze_email_content(user_id, req.content, source_email_id=req.email_id)
    return result.to_dict()


@router.get("/api/documents")
async def list_documents(user_id: str = Depends(require_user)):
    app = require_app()
    rows = await app.list_tax_documents(user_id)
    return [
        {
            "id": str(r["id"]),
            "documentType": r["document_type"],
            "issuer": r["issuer"],
            "taxYear": r["tax_year"],
            "financialData": r["financial_data"],
            "sourceEmailId": r.get("source_email_id"),
            "createdAt": r["created_at"].isoformat() if r.get("created_at") else None,
        }
        for r in rows
    ]
