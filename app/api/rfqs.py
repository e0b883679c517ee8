"""
RFQ API routes - creation, listing and status transitions.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_access_filter, get_allocation_engine, get_rfq_store
from app.api.schemas import (
    NextNumberResponse, RecommendationResponse, RFQCreate, RFQResponse,
    RFQStatusUpdate, recommendation_to_response, rfq_to_response,
)
from app.core.exceptions import NotFoundError
from app.core.rbac import Principal, get_current_principal, require_logistics
from app.db.models import RFQ
from app.services.access_control import AccessFilter
from app.services.allocation_engine import AllocationEngine
from app.services.rfq_store import RFQStore

router = APIRouter(prefix="/api/rfqs", tags=["RFQs"])


def load_visible_rfq(rfq_id: str, principal: Principal, rfqs: RFQStore, access: AccessFilter) -> RFQ:
    """Fetch an RFQ, reporting invisible ones as missing."""
    rfq = rfqs.get(rfq_id)
    if not access.can_view_rfq(principal, rfq):
        raise NotFoundError(f"RFQ {rfq_id} not found", rfqId=rfq_id)
    return rfq


# ============= ROUTES =============

@router.get("", response_model=List[RFQResponse])
async def list_rfqs(
    status: Optional[str] = Query(None, description="Filter by status"),
    principal: Principal = Depends(get_current_principal),
    access: AccessFilter = Depends(get_access_filter),
):
    """List the RFQs visible to the caller, newest number first."""
    return [rfq_to_response(rfq) for rfq in access.visible_rfqs(principal, status)]


@router.get("/next-number", response_model=NextNumberResponse)
async def preview_next_number(
    principal: Principal = Depends(require_logistics),
    rfqs: RFQStore = Depends(get_rfq_store),
):
    """Preview the number the next RFQ will get (nothing is reserved)."""
    return NextNumberResponse(rfq_number=rfqs.preview_next_number())


@router.post("", response_model=RFQResponse, status_code=201)
async def create_rfq(
    rfq_data: RFQCreate,
    principal: Principal = Depends(require_logistics),
    rfqs: RFQStore = Depends(get_rfq_store),
):
    """Create a new RFQ and invite its vendors."""
    rfq = rfqs.create(rfq_data.model_dump(), principal)
    return rfq_to_response(rfq)


@router.get("/{rfq_id}", response_model=RFQResponse)
async def get_rfq(
    rfq_id: str,
    principal: Principal = Depends(get_current_principal),
    rfqs: RFQStore = Depends(get_rfq_store),
    access: AccessFilter = Depends(get_access_filter),
):
    return rfq_to_response(load_visible_rfq(rfq_id, principal, rfqs, access))


@router.patch("/{rfq_id}/status", response_model=RFQResponse)
async def update_rfq_status(
    rfq_id: str,
    update: RFQStatusUpdate,
    principal: Principal = Depends(require_logistics),
    rfqs: RFQStore = Depends(get_rfq_store),
):
    """Move an RFQ forward through initial -> evaluation -> closed."""
    rfq = rfqs.update_status(rfq_id, update.status, actor=principal)
    return rfq_to_response(rfq)


@router.get("/{rfq_id}/recommendation", response_model=Optional[RecommendationResponse])
async def get_recommendation(
    rfq_id: str,
    principal: Principal = Depends(require_logistics),
    engine: AllocationEngine = Depends(get_allocation_engine),
):
    """Cheapest single-quote allocation; null until a quote exists."""
    return recommendation_to_response(engine.recommend(rfq_id))
