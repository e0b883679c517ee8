"""
SQLAlchemy ORM models for the freight RFQ workflow.

RFQs own their quotes and allocations. Attribute names are snake_case; the
camelCase wire names live on the API schemas.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Float,
    ForeignKey, Enum, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
import enum

from app.db.session import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============= ENUMS =============

class RFQStatus(str, enum.Enum):
    INITIAL = "initial"
    EVALUATION = "evaluation"
    CLOSED = "closed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {
    RFQStatus.INITIAL: 0,
    RFQStatus.EVALUATION: 1,
    RFQStatus.CLOSED: 2,
}

# Statuses during which vendors may submit quotes and logistics may finalize
OPEN_STATUSES = (RFQStatus.INITIAL, RFQStatus.EVALUATION)


class RoutingMode(str, enum.Enum):
    TRANSSHIP = "transship"
    DIRECT = "direct"


def enum_values(enum_cls):
    return [e.value for e in enum_cls]


# Stored as VARCHAR + CHECK so the same schema runs on PostgreSQL and SQLite
RFQStatusType = Enum(
    *enum_values(RFQStatus),
    name='rfqstatus',
    native_enum=False,
    create_constraint=True,
    length=20,
)
RoutingModeType = Enum(
    *enum_values(RoutingMode),
    name='routingmode',
    native_enum=False,
    create_constraint=True,
    length=20,
)


# ============= RFQ =============

class RFQ(Base):
    """Request for Quote for container shipping capacity."""
    __tablename__ = "rfqs"

    id = Column(String(36), primary_key=True, default=new_id)
    rfq_number = Column(Integer, unique=True, nullable=False, index=True)
    item_description = Column(String(500), nullable=False)
    company_name = Column(String(255), nullable=False)
    material_po_number = Column(String(150), nullable=False)
    supplier_name = Column(String(255), nullable=False)
    port_of_loading = Column(String(100), nullable=False, index=True)
    port_of_destination = Column(String(100), nullable=False)
    container_type = Column(String(50), nullable=False)
    incoterms = Column(String(50))
    number_of_containers = Column(Integer, nullable=False)
    cargo_weight = Column(Float, nullable=False)  # tons
    cargo_readiness_date = Column(DateTime(timezone=True), nullable=False)
    cargo_readiness_to = Column(DateTime(timezone=True))
    initial_quote_end_time = Column(DateTime(timezone=True))
    evaluation_end_time = Column(DateTime(timezone=True))
    description = Column(Text)
    vendors = Column(JSON, nullable=False, default=list)  # invited vendor identifiers
    status = Column(RFQStatusType, nullable=False, default=RFQStatus.INITIAL.value, index=True)
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
    closed_at = Column(DateTime(timezone=True))

    # Relationships
    quotes = relationship("QuoteItem", back_populates="rfq", order_by="QuoteItem.created_at")
    allocations = relationship("Allocation", back_populates="rfq")

    @property
    def status_enum(self) -> RFQStatus:
        return RFQStatus(self.status)

    @property
    def is_open(self) -> bool:
        return self.status_enum in OPEN_STATUSES

    def invites(self, vendor_id: str) -> bool:
        return vendor_id in (self.vendors or [])


class RFQNumberSequence(Base):
    """Monotonic counter backing rfq_number (allocate-then-commit)."""
    __tablename__ = "rfq_number_sequences"

    name = Column(String(50), primary_key=True)
    current_value = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ============= QUOTES =============

class QuoteItem(Base):
    """A vendor's priced response to an RFQ (one per vendor per RFQ)."""
    __tablename__ = "quote_items"

    id = Column(String(36), primary_key=True, default=new_id)
    rfq_id = Column(String(36), ForeignKey("rfqs.id"), nullable=False, index=True)
    vendor_name = Column(String(255), nullable=False, index=True)
    number_of_containers = Column(Integer, nullable=False)
    shipping_line_name = Column(String(255), nullable=False)
    container_type = Column(String(50))
    vessel_name = Column(String(255), nullable=False)
    vessel_etd = Column(DateTime(timezone=True), nullable=False)
    vessel_eta = Column(DateTime(timezone=True), nullable=False)

    # Per-container cost components; sea freight in USD, the rest in INR
    sea_freight_per_container = Column(Float, nullable=False)
    house_delivery_order_per_bol = Column(Float, nullable=False)
    cfs_per_container = Column(Float, nullable=False)
    transportation_per_container = Column(Float, nullable=False)
    cha_charges_home = Column(Float, nullable=False)
    cha_charges_moowr = Column(Float, nullable=False)
    edi_charges_per_boe = Column(Float, nullable=False)
    moowr_reewarehousing_charges = Column(Float, nullable=False)

    transship_or_direct = Column(RoutingModeType, nullable=False)
    quote_validity_date = Column(DateTime(timezone=True), nullable=False)
    message = Column(Text)
    revision = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Derived by the allocation engine only
    containers_allotted_home = Column(Integer)
    containers_allotted_moowr = Column(Integer)
    home_total = Column(Float)
    moowr_total = Column(Float)

    # Relationships
    rfq = relationship("RFQ", back_populates="quotes")

    __table_args__ = (
        UniqueConstraint('rfq_id', 'vendor_name', name='uq_quote_rfq_vendor'),
    )


# ============= ALLOCATIONS =============

class Allocation(Base):
    """Immutable record of containers placed on one quote when an RFQ closes."""
    __tablename__ = "allocations"

    rfq_id = Column(String(36), ForeignKey("rfqs.id"), primary_key=True)
    quote_id = Column(String(36), ForeignKey("quote_items.id"), primary_key=True)
    vendor_name = Column(String(255), nullable=False, index=True)
    containers_allotted_home = Column(Integer, nullable=False, default=0)
    containers_allotted_moowr = Column(Integer, nullable=False, default=0)
    reason = Column(Text)
    created_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    rfq = relationship("RFQ", back_populates="allocations")
    quote = relationship("QuoteItem")

    @property
    def total_containers(self) -> int:
        return (self.containers_allotted_home or 0) + (self.containers_allotted_moowr or 0)


# ============= AUDIT LOG =============

class AuditLog(Base):
    """Compliance-grade audit log."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, index=True)
    principal_id = Column(String(100))
    organization = Column(String(255))
    role = Column(String(20))
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), index=True)
    entity_id = Column(String(36))
    details = Column(JSON)

    __table_args__ = (
        Index('ix_audit_logs_entity', 'entity_type', 'entity_id'),
    )
