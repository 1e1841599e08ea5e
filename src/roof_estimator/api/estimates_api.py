"""
Estimates API - price intakes and generate estimates for leads.
"""
from fastapi import APIRouter, Depends, HTTPException

from ..engine import PricingInput
from ..services.estimate_service import EstimateNotAllowed, EstimateService, LeadNotFound
from .deps import get_estimate_service, rate_limited
from .schemas import EstimateRequest

router = APIRouter(tags=["estimates"])


@router.post("/api/estimates/calculate", dependencies=[Depends(rate_limited('estimate_calculation'))])
def calculate_estimate(request: EstimateRequest, service: EstimateService = Depends(get_estimate_service)):
    """Price an intake without saving anything."""
    pricing_input = PricingInput.from_dict(request.model_dump(mode='json'))
    return service.calculate(pricing_input).to_dict()


@router.post(
    "/api/leads/{lead_id}/estimate",
    status_code=201,
    dependencies=[Depends(rate_limited('estimate_calculation'))],
)
def generate_lead_estimate(lead_id: str, service: EstimateService = Depends(get_estimate_service)):
    """Calculate and store a fresh estimate for a lead."""
    try:
        estimate = service.generate_for_lead(lead_id)
    except LeadNotFound:
        raise HTTPException(status_code=404, detail="Lead not found")
    except EstimateNotAllowed as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"estimate": estimate}


@router.get("/api/leads/{lead_id}/estimate", dependencies=[Depends(rate_limited('general'))])
def get_lead_estimate(lead_id: str, service: EstimateService = Depends(get_estimate_service)):
    """Latest estimate that has not been superseded."""
    estimate = service.latest_for_lead(lead_id)
    if not estimate:
        raise HTTPException(status_code=404, detail="Estimate not found")
    return {"estimate": estimate}
