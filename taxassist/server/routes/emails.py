"""Email sync, listing, flag updates, deletion and tax scan routes."""

from fastapi import APIRouter, Depends

from ..app import require_app, require_user, verify_api_key
from ..models import DeleteEmailsRequest, EmailUpdateRequest, SyncEmailsRequest

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/api/email/sync")
async def sync_emails(req: SyncEmailsRequest, user_id: str = Depends(require_user)):
    """Pull the last six months of Gmail metadata into storage."""
    app = require_app()
    records = await app.sync_emails(user_id, email=req.email)
    return {"count": len(records), "emails": [r.to_dict() for r in records]}


@router.get("/api/emails")
async def list_emails(user_id: str = Depends(require_user)):
    app = require_app()
    return [r.to_dict() for r in await app.list_emails(user_id)]


@router.patch("/api/emails/{email_id}")
async def update_email(email_id: str, req: EmailUpdateRequest, user_id: str = Depends(require_user)):
    app = require_app()
    record = await app.update_email(user_id, email_id, read=req.read, starred=req.starred)
    return record.to_dict()


@router.post("/api/emails/delete")
async def delete_emails(req: DeleteEmailsRequest, user_id: str = Depends(require_user)):
    app = require_app()
    deleted = await app.delete_emails(user_id, req.ids)
    return {"deleted": deleted}


@router.post("/api/email/scan")
async def scan_emails(user_id: str = Depends(require_user)):
    """Identify stored emails that carry tax documents."""
    app = require_app()
    findings = await app.scan_emails(user_id)
    return [f.model_dump(by_alias=True) for f in findings]
