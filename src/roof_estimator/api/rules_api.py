"""
Rules API - FastAPI router for pricing rule management.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..engine import PricingEngine, PricingInput, PricingRule
from ..services.rules_service import DuplicateRuleKey, RuleNotFound, RulesService
from .deps import get_rules_service, rate_limited, require_admin
from .schemas import PricingRuleCreate, PricingRuleUpdate, RulePreviewRequest

router = APIRouter(
    prefix="/api/pricing",
    tags=["pricing"],
    dependencies=[Depends(rate_limited('general')), Depends(require_admin)],
)


def _rule_errors(errors: list[str]) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "Invalid rule", "details": errors})


@router.get("")
def list_rules(
    active: bool = True,
    category: Optional[str] = None,
    service: RulesService = Depends(get_rules_service),
):
    """List pricing rules, active ones only unless ``active=false``."""
    return {"rules": service.list_rules(active_only=active, category=category)}


@router.get("/stats")
def get_stats(service: RulesService = Depends(get_rules_service)):
    """Get rule statistics."""
    return service.get_stats()


@router.post("", status_code=201)
def create_rule(rule_data: PricingRuleCreate, service: RulesService = Depends(get_rules_service)):
    """Create a new pricing rule."""
    data = rule_data.model_dump(exclude_none=True)

    validation = service.validate_rule(data)
    if not validation.valid:
        raise _rule_errors(validation.errors)

    try:
        created = service.create_rule(data)
    except DuplicateRuleKey as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"rule": created, "warnings": validation.warnings}


@router.patch("")
def update_rule(updates: PricingRuleUpdate, service: RulesService = Depends(get_rules_service)):
    """Update an existing rule; only fields present in the body are written."""
    # exclude_unset keeps explicit nulls so optional columns can be cleared
    update_dict = updates.model_dump(exclude_unset=True)
    rule_id = update_dict.pop('id', None)
    if not rule_id:
        raise HTTPException(status_code=400, detail="Rule id is required")

    existing = service.get_rule(rule_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Rule with ID '{rule_id}' not found")

    validation = service.validate_rule({**existing, **update_dict})
    if not validation.valid:
        raise _rule_errors(validation.errors)

    try:
        updated = service.update_rule(rule_id, update_dict)
    except RuleNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateRuleKey as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"rule": updated, "warnings": validation.warnings}


@router.post("/preview")
def preview_rule(request: RulePreviewRequest, service: RulesService = Depends(get_rules_service)):
    """Price an intake with and without an unsaved candidate rule."""
    candidate = request.candidate.model_dump(exclude_none=True)
    validation = service.validate_rule(candidate)
    if not validation.valid:
        raise _rule_errors(validation.errors)

    pricing_input = PricingInput.from_dict(request.model_dump(mode='json', exclude={'candidate'}))
    loaded = service.load_active_rules()

    current = PricingEngine(loaded.rules).calculate(pricing_input)
    # A later rule with the same key replaces the stored one
    preview = PricingEngine([*loaded.rules, PricingRule.from_row(candidate)]).calculate(pricing_input)

    return {
        "source": loaded.source,
        "current": current.to_dict(),
        "preview": preview.to_dict(),
        "warnings": validation.warnings,
    }
