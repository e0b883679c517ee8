"""
Quote API routes - vendor submissions and quote listings.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_access_filter, get_quote_store, get_rfq_store
from app.api.rfqs import load_visible_rfq
from app.api.schemas import QuoteResponse, QuoteSubmit, quote_to_response
from app.core.rbac import Principal, get_current_principal, require_vendor
from app.services.access_control import AccessFilter
from app.services.quote_store import QuoteStore
from app.services.rfq_store import RFQStore

router = APIRouter(prefix="/api", tags=["Quotes"])


# ============= ROUTES =============

@router.get("/rfqs/{rfq_id}/quotes", response_model=List[QuoteResponse])
async def list_rfq_quotes(
    rfq_id: str,
    principal: Principal = Depends(get_current_principal),
    rfqs: RFQStore = Depends(get_rfq_store),
    access: AccessFilter = Depends(get_access_filter),
):
    """Quotes on an RFQ; vendors only ever get their own back."""
    load_visible_rfq(rfq_id, principal, rfqs, access)
    return [quote_to_response(q) for q in access.visible_quotes(principal, rfq_id)]


@router.post("/rfqs/{rfq_id}/quotes", response_model=QuoteResponse, status_code=201)
async def submit_quote(
    rfq_id: str,
    quote_data: QuoteSubmit,
    principal: Principal = Depends(require_vendor),
    quotes: QuoteStore = Depends(get_quote_store),
):
    """Submit or revise the caller's quote; the vendor is the caller's organization."""
    quote = quotes.submit(rfq_id, principal.organization, quote_data.model_dump(), actor=principal)
    return quote_to_response(quote)


@router.get("/rfqs/{rfq_id}/quotes/mine", response_model=Optional[QuoteResponse])
async def get_my_quote(
    rfq_id: str,
    principal: Principal = Depends(require_vendor),
    rfqs: RFQStore = Depends(get_rfq_store),
    quotes: QuoteStore = Depends(get_quote_store),
    access: AccessFilter = Depends(get_access_filter),
):
    """The caller's current quote on an RFQ, or null."""
    load_visible_rfq(rfq_id, principal, rfqs, access)
    quote = quotes.get_for_vendor(rfq_id, principal.organization)
    return quote_to_response(quote) if quote else None


@router.get("/quotes", response_model=List[QuoteResponse])
async def list_quotes(
    principal: Principal = Depends(get_current_principal),
    access: AccessFilter = Depends(get_access_filter),
):
    return [quote_to_response(q) for q in access.visible_quotes(principal)]
