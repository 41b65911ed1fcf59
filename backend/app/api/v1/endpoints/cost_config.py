from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_cost_table
from app.schemas.guard import CostConfigRead, CostConfigUpsert
from app.services.cost import CostTable

router = APIRouter()


@router.get("", response_model=list[CostConfigRead])
def list_costs(costs: CostTable = Depends(get_cost_table)):
    return costs.all()


@router.post("", response_model=CostConfigRead, status_code=status.HTTP_201_CREATED)
def upsert_cost(body: CostConfigUpsert, costs: CostTable = Depends(get_cost_table)):
    """Create or replace the cost estimate for a domain (`*` is the catch-all)."""
    if not body.domain_pattern or body.cost_per_request is None:
        raise HTTPException(status_code=400, detail="domain_pattern and cost_per_request are required.")
    return costs.upsert(body.domain_pattern, body.cost_per_request, body.label)
