"""
Visibility rules: what a principal may see of RFQs, quotes and allocations.

Logistics and admin principals see everything. A vendor sees the RFQs it was
invited to or holds an allocation on, and only its own quotes and allocation
rows. Any other principal sees nothing.
"""
from typing import List, Optional

from app.core.rbac import Principal, Role
from app.db.models import RFQ, Allocation, QuoteItem
from app.services.allocation_engine import AllocationEngine
from app.services.quote_store import QuoteStore
from app.services.rfq_store import RFQStore


def _vendor_id(principal: Principal) -> Optional[str]:
    if principal.role != Role.VENDOR:
        return None
    return principal.organization or None


class AccessFilter:
    """Read-only views over the stores, scoped to one principal."""

    def __init__(self, rfqs: RFQStore, quotes: QuoteStore, allocations: AllocationEngine):
        self.rfqs = rfqs
        self.quotes = quotes
        self.allocations = allocations

    def visible_rfqs(self, principal: Principal, status: Optional[str] = None) -> List[RFQ]:
        if principal.sees_everything:
            return self.rfqs.list_all(status)

        vendor = _vendor_id(principal)
        if vendor is None:
            return []

        visible = {rfq.id: rfq for rfq in self.rfqs.list_for_vendor(vendor, status)}
        # Allocations keep an RFQ visible even if the vendor was later uninvited
        allotted = {a.rfq_id for a in self.allocations.list_allocations_for_vendor(vendor)}
        for rfq in self.rfqs.get_many(allotted - set(visible)):
            if status is None or rfq.status == status:
                visible[rfq.id] = rfq

        return sorted(visible.values(), key=lambda rfq: rfq.rfq_number, reverse=True)

    def can_view_rfq(self, principal: Principal, rfq: RFQ) -> bool:
        if principal.sees_everything:
            return True
        vendor = _vendor_id(principal)
        if vendor is None:
            return False
        if rfq.invites(vendor):
            return True
        return any(a.vendor_name == vendor for a in self.allocations.list_allocations(rfq.id))

    def visible_quotes(self, principal: Principal, rfq_id: Optional[str] = None) -> List[QuoteItem]:
        if principal.sees_everything:
            if rfq_id:
                return self.quotes.list_by_rfq(rfq_id)
            return self.quotes.list_all()

        vendor = _vendor_id(principal)
        if vendor is None:
            return []

        visible_ids = {rfq.id for rfq in self.visible_rfqs(principal)}
        return [
            q for q in self.quotes.list_by_vendor(vendor)
            if q.rfq_id in visible_ids and (rfq_id is None or q.rfq_id == rfq_id)
        ]

    def visible_allocations(self, principal: Principal, rfq_id: Optional[str] = None) -> List[Allocation]:
        if principal.sees_everything:
            return self.allocations.list_allocations(rfq_id)

        vendor = _vendor_id(principal)
        if vendor is None:
            return []

        return [
            a for a in self.allocations.list_allocations_for_vendor(vendor)
            if rfq_id is None or a.rfq_id == rfq_id
        ]
