"""
Request-scoped service dependencies.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.access_control import AccessFilter
from app.services.allocation_engine import AllocationEngine
from app.services.quote_store import QuoteStore
from app.services.rfq_store import RFQStore


def get_rfq_store(db: Session = Depends(get_db)) -> RFQStore:
    return RFQStore(db)


def get_quote_store(db: Session = Depends(get_db)) -> QuoteStore:
    return QuoteStore(db)


def get_allocation_engine(db: Session = Depends(get_db)) -> AllocationEngine:
    return AllocationEngine(db)


def get_access_filter(
    rfqs: RFQStore = Depends(get_rfq_store),
    quotes: QuoteStore = Depends(get_quote_store),
    allocations: AllocationEngine = Depends(get_allocation_engine),
) -> AccessFilter:
    return AccessFilter(rfqs, quotes, allocations)
