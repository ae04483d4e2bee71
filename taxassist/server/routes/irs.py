"""Filing requirement guidance route."""

from fastapi import APIRouter, Depends

from ..app import require_app, require_user, verify_api_key
from ..models import IrsRequirementsRequest

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("/api/irs-requirements")
async def irs_requirements(req: IrsRequirementsRequest, user_id: str = Depends(require_user)):
    app = require_app()
    result = await app.check_irs_requirements(
        state=req.state,
        age=req.age,
        income=req.income,
        filing_status=req.filing_status,
    )
    return result.model_dump(by_alias=True)
