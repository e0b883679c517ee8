"""
Quote Store: one cost sheet per (RFQ, vendor), replaced on resubmission.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ClosedRFQError, NotFoundError, NotInvitedError, ValidationError,
)
from app.core.locks import rfq_locks
from app.core.logging import get_logger
from app.core.rbac import Principal
from app.db.models import RFQ, QuoteItem, RoutingMode, utcnow
from app.services.audit import emit_audit, record_audit
from app.services.notifications import (
    ChangeEvent, ChangeNotifier, QUOTE_SUBMITTED, notifier as default_notifier,
)
from app.services.rfq_store import (
    as_datetime, as_whole_number, is_number, not_before, rfq_lock_key,
)

logger = get_logger(__name__)

COST_FIELDS = {
    "sea_freight_per_container": "seaFreightPerContainer",
    "house_delivery_order_per_bol": "houseDeliveryOrderPerBOL",
    "cfs_per_container": "cfsPerContainer",
    "transportation_per_container": "transportationPerContainer",
    "cha_charges_home": "chaChargesHome",
    "cha_charges_moowr": "chaChargesMOOWR",
    "edi_charges_per_boe": "ediChargesPerBOE",
    "moowr_reewarehousing_charges": "mooWRReeWarehousingCharges",
}

REQUIRED_TEXT_FIELDS = {
    "shipping_line_name": "shippingLineName",
    "vessel_name": "vesselName",
}

REQUIRED_DATE_FIELDS = {
    "vessel_etd": "vesselETD",
    "vessel_eta": "vesselETA",
    "quote_validity_date": "quoteValidityDate",
}


def validate_cost_sheet(sheet: Dict[str, Any]) -> Dict[str, Any]:
    """Check a cost sheet and return the writable quote attributes."""
    missing: List[str] = []
    invalid: List[str] = []
    clean: Dict[str, Any] = {}

    containers = sheet.get("number_of_containers")
    whole = as_whole_number(containers)
    if containers is None:
        missing.append("numberOfContainers")
    elif whole is None or whole <= 0:
        invalid.append("numberOfContainers")
    else:
        clean["number_of_containers"] = whole

    for attr, wire in REQUIRED_TEXT_FIELDS.items():
        value = sheet.get(attr)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(wire)
        elif not isinstance(value, str):
            invalid.append(wire)
        else:
            clean[attr] = value.strip()

    for attr, wire in REQUIRED_DATE_FIELDS.items():
        value = sheet.get(attr)
        if value is None:
            missing.append(wire)
        elif as_datetime(value) is None:
            invalid.append(wire)
        else:
            clean[attr] = as_datetime(value)

    if "vessel_etd" in clean and "vessel_eta" in clean:
        if not not_before(clean["vessel_eta"], clean["vessel_etd"]):
            invalid.append("vesselETA")

    for attr, wire in COST_FIELDS.items():
        value = sheet.get(attr)
        if value is None:
            missing.append(wire)
        elif not is_number(value) or value < 0:
            invalid.append(wire)
        else:
            clean[attr] = float(value)

    routing = sheet.get("transship_or_direct")
    if routing is None or routing == "":
        missing.append("transshipOrDirect")
    else:
        try:
            clean["transship_or_direct"] = RoutingMode(str(routing).strip().lower()).value
        except ValueError:
            invalid.append("transshipOrDirect")

    container_type = sheet.get("container_type")
    if container_type is not None:
        if not isinstance(container_type, str):
            invalid.append("containerType")
        else:
            clean["container_type"] = container_type.strip() or None

    message = sheet.get("message")
    if message is not None:
        if not isinstance(message, str):
            invalid.append("message")
        else:
            clean["message"] = message

    if missing or invalid:
        raise ValidationError(
            "Missing/invalid quote fields",
            missing=missing,
            invalid=invalid,
        )
    return clean


class QuoteStore:
    """Holds quote records; derived allocation fields are never written here."""

    def __init__(self, db: Session, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.notifier = notifier or default_notifier

    def _locked_rfq(self, rfq_id: str) -> RFQ:
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

    def _check_accepting(self, rfq: RFQ, vendor_id: str):
        if not rfq.is_open:
            self.db.rollback()
            raise ClosedRFQError(
                f"RFQ {rfq.rfq_number} is closed to quotes",
                rfqId=rfq.id,
                status=rfq.status,
            )
        if not rfq.invites(vendor_id):
            self.db.rollback()
            raise NotInvitedError(
                f"Vendor '{vendor_id}' is not invited to RFQ {rfq.rfq_number}",
                rfqId=rfq.id,
            )

    def _find(self, rfq_id: str, vendor_id: str) -> Optional[QuoteItem]:
        return (
            self.db.query(QuoteItem)
            .filter(QuoteItem.rfq_id == rfq_id, QuoteItem.vendor_name == vendor_id)
            .first()
        )

    @staticmethod
    def _apply_revision(quote: QuoteItem, clean: Dict[str, Any]):
        for attr, value in clean.items():
            setattr(quote, attr, value)
        quote.revision = (quote.revision or 1) + 1
        quote.created_at = utcnow()

    def submit(
        self,
        rfq_id: str,
        vendor_id: str,
        cost_sheet: Dict[str, Any],
        actor: Optional[Principal] = None,
    ) -> QuoteItem:
        """
        Record a vendor's quote for an open RFQ.

        A second submission by the same vendor replaces the cost sheet of the
        existing quote (same id, higher revision) instead of adding another.
        Submitting never changes the RFQ status.
        """
        vendor_id = (vendor_id or "").strip()
        if not vendor_id:
            raise ValidationError("Vendor identity is required", missing=["vendorName"])

        with rfq_locks.hold(rfq_lock_key(rfq_id)):
            rfq = self._locked_rfq(rfq_id)
            self._check_accepting(rfq, vendor_id)

            try:
                clean = validate_cost_sheet(cost_sheet)
            except ValidationError:
                self.db.rollback()
                raise

            quote = self._find(rfq_id, vendor_id)
            if quote is None:
                quote = QuoteItem(
                    rfq_id=rfq_id,
                    vendor_name=vendor_id,
                    revision=1,
                    created_at=utcnow(),
                    **clean,
                )
                self.db.add(quote)
            else:
                self._apply_revision(quote, clean)

            try:
                try:
                    self.db.flush()
                except IntegrityError:
                    # First submissions raced from another process; fold into theirs
                    self.db.rollback()
                    rfq = self._locked_rfq(rfq_id)
                    self._check_accepting(rfq, vendor_id)
                    quote = self._find(rfq_id, vendor_id)
                    if quote is None:
                        raise
                    self._apply_revision(quote, clean)
                    self.db.flush()

                details = {"vendor": vendor_id, "revision": quote.revision}
                record_audit(self.db, actor, "submit_quote", "quote", quote.id, details)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        self.db.refresh(quote)
        rfq_number = rfq.rfq_number
        logger.info(
            f"Quote {quote.id} from {vendor_id} on RFQ {rfq_number} (revision {quote.revision})"
        )
        emit_audit(actor, "submit_quote", "quote", quote.id, details)
        self.notifier.publish(ChangeEvent(
            event_type=QUOTE_SUBMITTED,
            rfq_id=rfq_id,
            rfq_number=rfq_number,
            payload={"quoteId": quote.id, "vendorName": vendor_id, "revision": quote.revision},
        ))
        return quote

    # ============= READS =============

    def get(self, quote_id: str) -> QuoteItem:
        quote = self.db.query(QuoteItem).filter(QuoteItem.id == quote_id).first()
        if quote is None:
            raise NotFoundError(f"Quote {quote_id} not found", quoteId=quote_id)
        return quote

    def list_by_rfq(self, rfq_id: str) -> List[QuoteItem]:
        return (
            self.db.query(QuoteItem)
            .filter(QuoteItem.rfq_id == rfq_id)
            .order_by(QuoteItem.created_at, QuoteItem.id)
            .all()
        )

    def list_by_vendor(self, vendor_id: str) -> List[QuoteItem]:
        return (
            self.db.query(QuoteItem)
            .filter(QuoteItem.vendor_name == vendor_id)
            .order_by(QuoteItem.created_at.desc())
            .all()
        )

    def list_all(self) -> List[QuoteItem]:
        return self.db.query(QuoteItem).order_by(QuoteItem.created_at.desc()).all()

    def get_for_vendor(self, rfq_id: str, vendor_id: str) -> Optional[QuoteItem]:
        """The vendor's current quote on an RFQ, or None."""
        return self._find(rfq_id, vendor_id)
