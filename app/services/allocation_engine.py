"""
Allocation Engine: validates and commits the final container distribution.

Finalization is all-or-nothing. Allocation rows, derived quote totals and the
RFQ's move to ``closed`` are written in one transaction, and a concurrent
second finalize loses on the guarded status update.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AllocationMismatchError, AlreadyClosedError, DomainError, NegativeAllocationError,
    NotFoundError, ValidationError,
)
from app.core.locks import rfq_locks
from app.core.logging import get_logger
from app.core.rbac import Principal
from app.db.models import (
    RFQ, Allocation, OPEN_STATUSES, QuoteItem, RFQStatus, utcnow,
)
from app.services import costing
from app.services.audit import emit_audit, record_audit
from app.services.notifications import (
    ChangeEvent, ChangeNotifier, RFQ_FINALIZED, notifier as default_notifier,
)
from app.services.rfq_store import as_whole_number, rfq_lock_key

logger = get_logger(__name__)

_ENTRY_KEYS = {
    "quote_id": ("quote_id", "quoteId"),
    "containers_allotted_home": ("containers_allotted_home", "containersAllottedHome"),
    "containers_allotted_moowr": ("containers_allotted_moowr", "containersAllottedMOOWR"),
    "reason": ("reason",),
}


@dataclass
class AllocationEntry:
    quote_id: str
    containers_allotted_home: int = 0
    containers_allotted_moowr: int = 0
    reason: Optional[str] = None

    @property
    def total(self) -> int:
        return self.containers_allotted_home + self.containers_allotted_moowr

    @classmethod
    def coerce(cls, raw: Any) -> "AllocationEntry":
        """Accept an entry, or a mapping keyed in snake_case or camelCase."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, dict):
            raise ValidationError("Allocation entries must be objects", invalid=["distribution"])

        values = {}
        for attr, keys in _ENTRY_KEYS.items():
            for key in keys:
                if raw.get(key) is not None:
                    values[attr] = raw[key]
                    break

        if not values.get("quote_id"):
            raise ValidationError("Allocation entry without quote", missing=["quoteId"])

        for attr, wire in (
            ("containers_allotted_home", "containersAllottedHome"),
            ("containers_allotted_moowr", "containersAllottedMOOWR"),
        ):
            count = as_whole_number(values.get(attr, 0))
            if count is None:
                raise ValidationError(
                    f"Allotment for quote {values['quote_id']} must be a whole number",
                    invalid=[wire],
                    quoteId=values["quote_id"],
                )
            values[attr] = count

        return cls(**values)


@dataclass
class Recommendation:
    """Cheapest single-quote, single-path placement of every container."""
    quote_id: str
    vendor_name: str
    path: str
    per_container_cost: float
    containers_allotted_home: int
    containers_allotted_moowr: int

    @property
    def total_cost(self) -> float:
        return self.per_container_cost * (self.containers_allotted_home + self.containers_allotted_moowr)

    def matches(self, entries: Iterable[AllocationEntry]) -> bool:
        placed = [e for e in entries if e.total > 0]
        if len(placed) != 1:
            return False
        entry = placed[0]
        return (
            entry.quote_id == self.quote_id
            and entry.containers_allotted_home == self.containers_allotted_home
            and entry.containers_allotted_moowr == self.containers_allotted_moowr
        )


@dataclass
class FinalizeResult:
    rfq: RFQ
    allocations: List[Allocation] = field(default_factory=list)
    quotes: List[QuoteItem] = field(default_factory=list)
    recommendation: Optional[Recommendation] = None
    deviation: bool = False

    @property
    def total_allocated(self) -> int:
        return sum(a.total_containers for a in self.allocations)


def build_recommendation(rfq: RFQ, quotes: List[QuoteItem]) -> Optional[Recommendation]:
    best = costing.cheapest_path(quotes)
    if best is None:
        return None
    quote, path, cost = best
    containers = rfq.number_of_containers
    return Recommendation(
        quote_id=quote.id,
        vendor_name=quote.vendor_name,
        path=path,
        per_container_cost=cost,
        containers_allotted_home=containers if path == costing.HOME else 0,
        containers_allotted_moowr=containers if path == costing.MOOWR else 0,
    )


class AllocationEngine:
    """Finalizes RFQs and answers allocation queries."""

    def __init__(self, db: Session, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.notifier = notifier or default_notifier

    def _ordered_quotes(self, rfq_id: str, for_update: bool = False) -> List[QuoteItem]:
        query = (
            self.db.query(QuoteItem)
            .filter(QuoteItem.rfq_id == rfq_id)
            .order_by(QuoteItem.created_at, QuoteItem.id)
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.all()

    def recommend(self, rfq_id: str) -> Optional[Recommendation]:
        """Baseline suggestion for the current quotes; None when there are none."""
        rfq = self.db.query(RFQ).filter(RFQ.id == rfq_id).first()
        if rfq is None:
            raise NotFoundError(f"RFQ {rfq_id} not found", rfqId=rfq_id)
        return build_recommendation(rfq, self._ordered_quotes(rfq_id))

    def _check_distribution(
        self, rfq: RFQ, quotes: Dict[str, QuoteItem], entries: List[AllocationEntry]
    ):
        for entry in entries:
            if entry.quote_id not in quotes:
                raise NotFoundError(
                    f"Quote {entry.quote_id} does not belong to RFQ {rfq.rfq_number}",
                    rfqId=rfq.id,
                    quoteId=entry.quote_id,
                )

        if not rfq.is_open:
            raise AlreadyClosedError(
                f"RFQ {rfq.rfq_number} is already closed",
                rfqId=rfq.id,
            )

        seen = set()
        for entry in entries:
            if entry.quote_id in seen:
                raise ValidationError(
                    f"Quote {entry.quote_id} appears more than once",
                    invalid=["distribution"],
                    quoteId=entry.quote_id,
                )
            seen.add(entry.quote_id)

        for entry in entries:
            if entry.containers_allotted_home < 0 or entry.containers_allotted_moowr < 0:
                raise NegativeAllocationError(
                    entry.quote_id,
                    entry.containers_allotted_home,
                    entry.containers_allotted_moowr,
                )

        computed = sum(entry.total for entry in entries)
        if computed != rfq.number_of_containers:
            raise AllocationMismatchError(computed, rfq.number_of_containers)

    def finalize(
        self,
        rfq_id: str,
        distribution: Iterable[Any],
        actor: Optional[Principal] = None,
        reason: Optional[str] = None,
    ) -> FinalizeResult:
        """
        Commit a container distribution and close the RFQ.

        Each entry places containers on one quote via the home and/or MOOWR
        path. Entries with zero on both paths are accepted but write nothing.
        The RFQ must still be open and the allotments must add up to its
        ``number_of_containers``; any failure leaves every record untouched.
        """
        entries = [AllocationEntry.coerce(raw) for raw in distribution]
        creator = actor.principal_id if actor else None

        with rfq_locks.hold(rfq_lock_key(rfq_id)):
            try:
                rfq = (
                    self.db.query(RFQ)
                    .filter(RFQ.id == rfq_id)
                    .with_for_update()
                    .populate_existing()
                    .first()
                )
                if rfq is None:
                    raise NotFoundError(f"RFQ {rfq_id} not found", rfqId=rfq_id)

                ordered = self._ordered_quotes(rfq_id, for_update=True)
                quotes = {q.id: q for q in ordered}
                self._check_distribution(rfq, quotes, entries)

                recommendation = build_recommendation(rfq, ordered)
                deviation = recommendation is not None and not recommendation.matches(entries)
                placed = [e for e in entries if e.total > 0]

                if deviation and settings.REQUIRE_DEVIATION_REASON:
                    unexplained = [e.quote_id for e in placed if not (e.reason or reason)]
                    if unexplained:
                        raise ValidationError(
                            "A reason is required when deviating from the recommended allocation",
                            missing=["reason"],
                            quoteIds=unexplained,
                        )

                now = utcnow()
                rows: List[Allocation] = []
                touched: List[QuoteItem] = []
                for entry in placed:
                    quote = quotes[entry.quote_id]
                    if entry.total > quote.number_of_containers:
                        logger.warning(
                            f"Quote {quote.id} from {quote.vendor_name} allotted {entry.total} "
                            f"containers but offered {quote.number_of_containers}"
                        )
                    home_total, moowr_total = costing.derive_totals(
                        quote, entry.containers_allotted_home, entry.containers_allotted_moowr
                    )
                    quote.containers_allotted_home = entry.containers_allotted_home
                    quote.containers_allotted_moowr = entry.containers_allotted_moowr
                    quote.home_total = home_total
                    quote.moowr_total = moowr_total
                    touched.append(quote)

                    row = Allocation(
                        rfq_id=rfq_id,
                        quote_id=quote.id,
                        vendor_name=quote.vendor_name,
                        containers_allotted_home=entry.containers_allotted_home,
                        containers_allotted_moowr=entry.containers_allotted_moowr,
                        reason=entry.reason or reason,
                        created_by=creator,
                        created_at=now,
                    )
                    self.db.add(row)
                    rows.append(row)

                # Guarded close: only one finalize can move an open RFQ
                updated = (
                    self.db.query(RFQ)
                    .filter(
                        RFQ.id == rfq_id,
                        RFQ.status.in_([s.value for s in OPEN_STATUSES]),
                    )
                    .update(
                        {
                            "status": RFQStatus.CLOSED.value,
                            "closed_at": now,
                            "updated_at": now,
                        },
                        synchronize_session=False,
                    )
                )
                if updated != 1:
                    raise AlreadyClosedError(
                        f"RFQ {rfq.rfq_number} is already closed",
                        rfqId=rfq_id,
                    )

                details = {
                    "allocations": [
                        {
                            "quote_id": e.quote_id,
                            "home": e.containers_allotted_home,
                            "moowr": e.containers_allotted_moowr,
                        }
                        for e in placed
                    ],
                    "deviation": deviation,
                    "recommended_quote_id": recommendation.quote_id if recommendation else None,
                }
                record_audit(self.db, actor, "finalize_rfq", "rfq", rfq_id, details)
                self.db.commit()
            except DomainError as exc:
                self.db.rollback()
                logger.warning(f"Finalize rejected for RFQ {rfq_id} ({exc.code}): {exc.message}")
                raise
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(rfq)
        for row in rows:
            self.db.refresh(row)
        for quote in touched:
            self.db.refresh(quote)

        if deviation:
            logger.warning(
                f"RFQ {rfq.rfq_number} finalized away from recommended quote "
                f"{recommendation.quote_id} ({recommendation.path})"
            )
        logger.info(
            f"Finalized RFQ {rfq.rfq_number}: {len(rows)} allocations, "
            f"{rfq.number_of_containers} containers"
        )
        emit_audit(actor, "finalize_rfq", "rfq", rfq_id, details)
        self.notifier.publish(ChangeEvent(
            event_type=RFQ_FINALIZED,
            rfq_id=rfq_id,
            rfq_number=rfq.rfq_number,
            audience=sorted({row.vendor_name for row in rows}),
            payload={"deviation": deviation, "allocationCount": len(rows)},
        ))

        return FinalizeResult(
            rfq=rfq,
            allocations=rows,
            quotes=self._ordered_quotes(rfq_id),
            recommendation=recommendation,
            deviation=deviation,
        )

    def list_allocations(self, rfq_id: Optional[str] = None) -> List[Allocation]:
        query = self.db.query(Allocation)
        if rfq_id:
            query = query.filter(Allocation.rfq_id == rfq_id)
        return query.order_by(Allocation.created_at, Allocation.quote_id).all()

    def list_allocations_for_vendor(self, vendor_id: str) -> List[Allocation]:
        return (
            self.db.query(Allocation)
            .filter(Allocation.vendor_name == vendor_id)
            .order_by(Allocation.created_at.desc())
            .all()
        )
