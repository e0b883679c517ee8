"""
Allocation API routes - finalization and allocation listings.
"""
from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_access_filter, get_allocation_engine, get_rfq_store
from app.api.rfqs import load_visible_rfq
from app.api.schemas import (
    AllocationResponse, FinalizeRequest, FinalizeResponse,
    allocation_to_response, finalize_to_response,
)
from app.core.rbac import Principal, get_current_principal, require_logistics
from app.services.access_control import AccessFilter
from app.services.allocation_engine import AllocationEntry, AllocationEngine
from app.services.rfq_store import RFQStore

router = APIRouter(prefix="/api", tags=["Allocations"])


# ============= ROUTES =============

@router.post("/rfqs/{rfq_id}/finalize", response_model=FinalizeResponse)
async def finalize_rfq(
    rfq_id: str,
    request: FinalizeRequest,
    principal: Principal = Depends(require_logistics),
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    """Commit the container distribution and close the RFQ."""
    distribution = [
        AllocationEntry(
            quote_id=entry.quote_id,
            containers_allotted_home=entry.containers_allotted_home,
            containers_allotted_moowr=entry.containers_allotted_moowr,
            reason=entry.reason,
        )
        for entry in request.distribution
    ]
    result = engine.finalize(rfq_id, distribution, actor=principal, reason=request.reason)
    return finalize_to_response(result)


@router.get("/rfqs/{rfq_id}/allocations", response_model=List[AllocationResponse])
async def list_rfq_allocations(
    rfq_id: str,
    principal: Principal = Depends(get_current_principal),
    rfqs: RFQStore = Depends(get_rfq_store),
    access: AccessFilter = Depends(get_access_filter),
):
    load_visible_rfq(rfq_id, principal, rfqs, access)
    return [allocation_to_response(a) for a in access.visible_allocations(principal, rfq_id)]


@router.get("/allocations", response_model=List[AllocationResponse])
async def list_allocations(
    principal: Principal = Depends(get_current_principal),
    access: AccessFilter = Depends(get_access_filter),
):
    """All allocation rows the caller may see."""
    return [allocation_to_response(a) for a in access.visible_allocations(principal)]
