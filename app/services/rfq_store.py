"""
RFQ Store: creation, sequential numbering and the forward-only status machine.
"""
import math
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from app.core.locks import rfq_locks
from app.core.logging import get_logger
from app.core.rbac import Principal
from app.db.models import RFQ, RFQNumberSequence, RFQStatus, utcnow
from app.services.audit import emit_audit, record_audit
from app.services.notifications import (
    ChangeEvent, ChangeNotifier, RFQ_CREATED, RFQ_STATUS_CHANGED, notifier as default_notifier,
)

logger = get_logger(__name__)

RFQ_NUMBER_SEQUENCE = "rfq_number"

# attribute -> wire name, in the order errors are reported
REQUIRED_TEXT_FIELDS = {
    "item_description": "itemDescription",
    "company_name": "companyName",
    "material_po_number": "materialPONumber",
    "supplier_name": "supplierName",
    "port_of_loading": "portOfLoading",
    "port_of_destination": "portOfDestination",
    "container_type": "containerType",
}

OPTIONAL_TEXT_FIELDS = {
    "incoterms": "incoterms",
    "description": "description",
}

OPTIONAL_DATE_FIELDS = {
    "cargo_readiness_to": "cargoReadinessTo",
    "initial_quote_end_time": "initialQuoteEndTime",
    "evaluation_end_time": "evaluationEndTime",
}


def rfq_lock_key(rfq_id: str) -> str:
    return f"rfq:{rfq_id}"


def is_number(value: Any) -> bool:
    """Finite int or float; bools, NaN and infinities are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return None


def as_whole_number(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def normalize_vendors(raw: Any) -> List[str]:
    """Trim, drop blanks and de-duplicate vendor identifiers, keeping order."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    seen = []
    for item in raw:
        code = str(item).strip() if item is not None else ""
        if code and code not in seen:
            seen.append(code)
    return seen


def not_before(later: datetime, earlier: datetime) -> bool:
    """True when ``later`` is not before ``earlier``; tolerates mixed tz-awareness."""
    if (later.tzinfo is None) != (earlier.tzinfo is None):
        later = later.replace(tzinfo=None)
        earlier = earlier.replace(tzinfo=None)
    return later >= earlier


class RFQStore:
    """Holds RFQ records and enforces status-transition rules."""

    def __init__(self, db: Session, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.notifier = notifier or default_notifier

    # ============= VALIDATION =============

    def _validate_spec(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        missing: List[str] = []
        invalid: List[str] = []
        clean: Dict[str, Any] = {}

        for attr, wire in REQUIRED_TEXT_FIELDS.items():
            value = spec.get(attr)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(wire)
            elif not isinstance(value, str):
                invalid.append(wire)
            else:
                clean[attr] = value.strip()

        containers = spec.get("number_of_containers")
        whole = as_whole_number(containers)
        if containers is None:
            missing.append("numberOfContainers")
        elif whole is None or whole <= 0:
            invalid.append("numberOfContainers")
        else:
            clean["number_of_containers"] = whole

        weight = spec.get("cargo_weight")
        if weight is None:
            missing.append("cargoWeight")
        elif not is_number(weight) or weight <= 0:
            invalid.append("cargoWeight")
        else:
            clean["cargo_weight"] = float(weight)

        readiness = spec.get("cargo_readiness_date")
        if readiness is None:
            missing.append("cargoReadinessDate")
        elif as_datetime(readiness) is None:
            invalid.append("cargoReadinessDate")
        else:
            clean["cargo_readiness_date"] = as_datetime(readiness)

        vendors = normalize_vendors(spec.get("vendors"))
        if not vendors:
            missing.append("vendors")
        else:
            clean["vendors"] = vendors

        for attr, wire in OPTIONAL_TEXT_FIELDS.items():
            value = spec.get(attr)
            if value is None:
                continue
            if not isinstance(value, str):
                invalid.append(wire)
            elif value.strip():
                clean[attr] = value.strip()

        for attr, wire in OPTIONAL_DATE_FIELDS.items():
            value = spec.get(attr)
            if value is None:
                continue
            if as_datetime(value) is None:
                invalid.append(wire)
            else:
                clean[attr] = as_datetime(value)

        if "cargo_readiness_to" in clean and "cargo_readiness_date" in clean:
            if not not_before(clean["cargo_readiness_to"], clean["cargo_readiness_date"]):
                invalid.append("cargoReadinessTo")

        if "evaluation_end_time" in clean and "initial_quote_end_time" in clean:
            if not not_before(clean["evaluation_end_time"], clean["initial_quote_end_time"]):
                invalid.append("evaluationEndTime")

        if missing or invalid:
            logger.info(f"Rejected RFQ payload: missing={missing} invalid={invalid}")
            raise ValidationError(
                "Missing/invalid required fields",
                missing=missing,
                invalid=invalid,
            )

        return clean

    # ============= NUMBERING =============

    def _locked_sequence(self) -> Optional[RFQNumberSequence]:
        return (
            self.db.query(RFQNumberSequence)
            .filter(RFQNumberSequence.name == RFQ_NUMBER_SEQUENCE)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def _sequence_floor(self) -> int:
        highest = self.db.query(func.max(RFQ.rfq_number)).scalar()
        return max(settings.RFQ_NUMBER_START - 1, highest or 0)

    def _allocate_number(self) -> int:
        """
        Reserve the next RFQ number and commit the reservation immediately.

        A create that fails afterwards leaves a gap; numbers are never reused.
        """
        with rfq_locks.hold(f"sequence:{RFQ_NUMBER_SEQUENCE}"):
            sequence = self._locked_sequence()
            if sequence is None:
                sequence = RFQNumberSequence(
                    name=RFQ_NUMBER_SEQUENCE,
                    current_value=self._sequence_floor(),
                )
                self.db.add(sequence)
                try:
                    self.db.flush()
                except IntegrityError:
                    # Counter row was created by another process first
                    self.db.rollback()
                    sequence = self._locked_sequence()

            sequence.current_value += 1
            number = sequence.current_value
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            return number

    def preview_next_number(self) -> int:
        """Number the next create would receive; nothing is reserved."""
        sequence = (
            self.db.query(RFQNumberSequence)
            .filter(RFQNumberSequence.name == RFQ_NUMBER_SEQUENCE)
            .first()
        )
        if sequence is not None:
            return sequence.current_value + 1
        return self._sequence_floor() + 1

    # ============= WRITES =============

    def create(self, spec: Dict[str, Any], creator: Principal) -> RFQ:
        """Validate, number and persist a new RFQ in status ``initial``."""
        clean = self._validate_spec(spec)
        number = self._allocate_number()

        rfq = RFQ(
            rfq_number=number,
            status=RFQStatus.INITIAL.value,
            created_by=creator.principal_id,
            created_at=utcnow(),
            **clean,
        )
        details = {
            "rfq_number": number,
            "vendors": clean["vendors"],
            "number_of_containers": clean["number_of_containers"],
        }
        try:
            self.db.add(rfq)
            self.db.flush()
            record_audit(self.db, creator, "create_rfq", "rfq", rfq.id, details)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"RFQ {number} could not be persisted; number left unused")
            raise
        self.db.refresh(rfq)

        logger.info(f"Created RFQ {rfq.rfq_number} ({rfq.id}) for {len(rfq.vendors)} vendors")
        emit_audit(creator, "create_rfq", "rfq", rfq.id, details)
        self.notifier.publish(ChangeEvent(
            event_type=RFQ_CREATED,
            rfq_id=rfq.id,
            rfq_number=rfq.rfq_number,
            audience=list(rfq.vendors),
            payload={
                "itemDescription": rfq.item_description,
                "materialPONumber": rfq.material_po_number,
                "numberOfContainers": rfq.number_of_containers,
            },
        ))
        return rfq

    def update_status(self, rfq_id: str, new_status: str, actor: Optional[Principal] = None) -> RFQ:
        """
        Move an RFQ forward (initial -> evaluation -> closed, or initial -> closed).

        Re-setting the current status is an idempotent no-op.
        """
        try:
            target = RFQStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown status '{new_status}'", invalid=["status"])

        with rfq_locks.hold(rfq_lock_key(rfq_id)):
            rfq = self._get_for_update(rfq_id)
            current = rfq.status_enum

            if target == current:
                self.db.rollback()
                return rfq

            if target.rank < current.rank:
                self.db.rollback()
                raise InvalidTransitionError(current.value, target.value)

            now = utcnow()
            values = {"status": target.value, "updated_at": now}
            if target == RFQStatus.CLOSED:
                values["closed_at"] = now

            # Guarded write: loses cleanly if another writer moved the status
            updated = (
                self.db.query(RFQ)
                .filter(RFQ.id == rfq_id, RFQ.status == current.value)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                self.db.rollback()
                raise InvalidTransitionError(current.value, target.value)

            details = {"from": current.value, "to": target.value}
            record_audit(self.db, actor, "update_rfq_status", "rfq", rfq_id, details)
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        self.db.refresh(rfq)
        logger.info(f"RFQ {rfq.rfq_number} moved {current.value} -> {target.value}")
        emit_audit(actor, "update_rfq_status", "rfq", rfq_id, details)
        self.notifier.publish(ChangeEvent(
            event_type=RFQ_STATUS_CHANGED,
            rfq_id=rfq.id,
            rfq_number=rfq.rfq_number,
            audience=list(rfq.vendors),
            payload=details,
        ))
        return rfq

    # ============= READS =============

    def _get_for_update(self, rfq_id: str) -> RFQ:
        rfq = (
            self.db.query(RFQ)
            .filter(RFQ.id == rfq_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if rfq is None:
            self.db.rollback()
            raise NotFoundError(f"RFQ {rfq_id} not found", rfqId=rfq_id)
        return rfq

    def find(self, rfq_id: str) -> Optional[RFQ]:
        return self.db.query(RFQ).filter(RFQ.id == rfq_id).first()

    def get(self, rfq_id: str) -> RFQ:
        rfq = self.find(rfq_id)
        if rfq is None:
            raise NotFoundError(f"RFQ {rfq_id} not found", rfqId=rfq_id)
        return rfq

    def get_many(self, rfq_ids) -> List[RFQ]:
        ids = list(rfq_ids)
        if not ids:
            return []
        return self.db.query(RFQ).filter(RFQ.id.in_(ids)).all()

    def list_all(self, status: Optional[str] = None) -> List[RFQ]:
        query = self.db.query(RFQ)
        if status:
            try:
                wanted = RFQStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'", invalid=["status"])
            query = query.filter(RFQ.status == wanted.value)
        return query.order_by(RFQ.rfq_number.desc()).all()

    def list_for_vendor(self, vendor_id: str, status: Optional[str] = None) -> List[RFQ]:
        """RFQs whose invitation list contains ``vendor_id``."""
        return [rfq for rfq in self.list_all(status) if rfq.invites(vendor_id)]
