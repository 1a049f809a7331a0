from fastapi import APIRouter, Depends

from api.auth import get_context
from schemas.prequalification import PrequalificationInput
from services.access import RequestContext
from services.prequalification import score_prequalification

router = APIRouter(prefix="/api/prequalification", tags=["prequalification"])


@router.post("")
async def prequalify(body: PrequalificationInput, ctx: RequestContext = Depends(get_context)):
    """
    Score a prospective deal for any signed-in user. Advisory only: nothing
    is stored, and every verdict allows proceeding to a full application.
    """
    result = score_prequalification(body)
    return {
        "score": result.verdict,
        "title": result.title,
        "message": result.message,
        "factors": result.factors,
        "canProceed": result.can_proceed,
        "prequalData": {
            "customerName": result.customer_name,
            "equipmentType": result.equipment_type,
            "dealAmount": float(result.deal_amount) if result.deal_amount is not None else None,
            "ficoScore": body.fico_score,
            "annualRevenue": float(body.annual_revenue),
            "yearsInBusiness": body.years_in_business,
        },
    }
