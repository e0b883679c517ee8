"""
Wire schemas shared by the RFQ, quote and allocation routes.

Field names on the wire are camelCase; aliases are spelled out per field
because several (``mooWRTotal``, ``houseDeliveryOrderPerBOL``) don't follow
a mechanical conversion.
"""
from typing import List, Optional, Union
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db.models import RFQ, Allocation, AuditLog, QuoteItem
from app.services.allocation_engine import FinalizeResult, Recommendation


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============= RFQ =============

class RFQCreate(WireModel):
    model_config = ConfigDict(allow_inf_nan=False)

    # Presence and ranges are checked by the store so all problems are reported together
    item_description: Optional[str] = Field(None, alias="itemDescription")
    company_name: Optional[str] = Field(None, alias="companyName")
    material_po_number: Optional[str] = Field(None, alias="materialPONumber")
    supplier_name: Optional[str] = Field(None, alias="supplierName")
    port_of_loading: Optional[str] = Field(None, alias="portOfLoading")
    port_of_destination: Optional[str] = Field(None, alias="portOfDestination")
    container_type: Optional[str] = Field(None, alias="containerType")
    incoterms: Optional[str] = None
    number_of_containers: Optional[int] = Field(None, alias="numberOfContainers")
    cargo_weight: Optional[float] = Field(None, alias="cargoWeight")
    cargo_readiness_date: Optional[datetime] = Field(None, alias="cargoReadinessDate")
    cargo_readiness_to: Optional[datetime] = Field(None, alias="cargoReadinessTo")
    initial_quote_end_time: Optional[datetime] = Field(None, alias="initialQuoteEndTime")
    evaluation_end_time: Optional[datetime] = Field(None, alias="evaluationEndTime")
    description: Optional[str] = None
    vendors: Optional[List[str]] = None

    @field_validator("vendors", mode="before")
    @classmethod
    def split_vendor_string(cls, v: Union[str, list, None]):
        """Accept "A, B" as well as ["A", "B"]."""
        if isinstance(v, str):
            return v.split(",")
        return v


class RFQStatusUpdate(WireModel):
    status: str


class RFQResponse(WireModel):
    id: str
    rfq_number: int = Field(alias="rfqNumber")
    item_description: str = Field(alias="itemDescription")
    company_name: str = Field(alias="companyName")
    material_po_number: str = Field(alias="materialPONumber")
    supplier_name: str = Field(alias="supplierName")
    port_of_loading: str = Field(alias="portOfLoading")
    port_of_destination: str = Field(alias="portOfDestination")
    container_type: str = Field(alias="containerType")
    incoterms: Optional[str] = None
    number_of_containers: int = Field(alias="numberOfContainers")
    cargo_weight: float = Field(alias="cargoWeight")
    cargo_readiness_date: datetime = Field(alias="cargoReadinessDate")
    cargo_readiness_to: Optional[datetime] = Field(None, alias="cargoReadinessTo")
    initial_quote_end_time: Optional[datetime] = Field(None, alias="initialQuoteEndTime")
    evaluation_end_time: Optional[datetime] = Field(None, alias="evaluationEndTime")
    description: Optional[str] = None
    vendors: List[str]
    status: str
    created_by: str = Field(alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    closed_at: Optional[datetime] = Field(None, alias="closedAt")


class NextNumberResponse(WireModel):
    rfq_number: int = Field(alias="rfqNumber")


def rfq_to_response(rfq: RFQ) -> RFQResponse:
    return RFQResponse(
        id=rfq.id,
        rfq_number=rfq.rfq_number,
        item_description=rfq.item_description,
        company_name=rfq.company_name,
        material_po_number=rfq.material_po_number,
        supplier_name=rfq.supplier_name,
        port_of_loading=rfq.port_of_loading,
        port_of_destination=rfq.port_of_destination,
        container_type=rfq.container_type,
        incoterms=rfq.incoterms,
        number_of_containers=rfq.number_of_containers,
        cargo_weight=rfq.cargo_weight,
        cargo_readiness_date=rfq.cargo_readiness_date,
        cargo_readiness_to=rfq.cargo_readiness_to,
        initial_quote_end_time=rfq.initial_quote_end_time,
        evaluation_end_time=rfq.evaluation_end_time,
        description=rfq.description,
        vendors=list(rfq.vendors or []),
        status=rfq.status,
        created_by=rfq.created_by,
        created_at=rfq.created_at,
        closed_at=rfq.closed_at,
    )


# ============= QUOTES =============

class QuoteSubmit(WireModel):
    model_config = ConfigDict(allow_inf_nan=False)

    number_of_containers: Optional[int] = Field(None, alias="numberOfContainers")
    shipping_line_name: Optional[str] = Field(None, alias="shippingLineName")
    container_type: Optional[str] = Field(None, alias="containerType")
    vessel_name: Optional[str] = Field(None, alias="vesselName")
    vessel_etd: Optional[datetime] = Field(None, alias="vesselETD")
    vessel_eta: Optional[datetime] = Field(None, alias="vesselETA")
    sea_freight_per_container: Optional[float] = Field(None, alias="seaFreightPerContainer")
    house_delivery_order_per_bol: Optional[float] = Field(None, alias="houseDeliveryOrderPerBOL")
    cfs_per_container: Optional[float] = Field(None, alias="cfsPerContainer")
    transportation_per_container: Optional[float] = Field(None, alias="transportationPerContainer")
    cha_charges_home: Optional[float] = Field(None, alias="chaChargesHome")
    cha_charges_moowr: Optional[float] = Field(None, alias="chaChargesMOOWR")
    edi_charges_per_boe: Optional[float] = Field(None, alias="ediChargesPerBOE")
    moowr_reewarehousing_charges: Optional[float] = Field(None, alias="mooWRReeWarehousingCharges")
    transship_or_direct: Optional[str] = Field(None, alias="transshipOrDirect")
    quote_validity_date: Optional[datetime] = Field(None, alias="quoteValidityDate")
    message: Optional[str] = None


class QuoteResponse(WireModel):
    id: str
    rfq_id: str = Field(alias="rfqId")
    vendor_name: str = Field(alias="vendorName")
    number_of_containers: int = Field(alias="numberOfContainers")
    shipping_line_name: str = Field(alias="shippingLineName")
    container_type: Optional[str] = Field(None, alias="containerType")
    vessel_name: str = Field(alias="vesselName")
    vessel_etd: datetime = Field(alias="vesselETD")
    vessel_eta: datetime = Field(alias="vesselETA")
    sea_freight_per_container: float = Field(alias="seaFreightPerContainer")
    house_delivery_order_per_bol: float = Field(alias="houseDeliveryOrderPerBOL")
    cfs_per_container: float = Field(alias="cfsPerContainer")
    transportation_per_container: float = Field(alias="transportationPerContainer")
    cha_charges_home: float = Field(alias="chaChargesHome")
    cha_charges_moowr: float = Field(alias="chaChargesMOOWR")
    edi_charges_per_boe: float = Field(alias="ediChargesPerBOE")
    moowr_reewarehousing_charges: float = Field(alias="mooWRReeWarehousingCharges")
    transship_or_direct: str = Field(alias="transshipOrDirect")
    quote_validity_date: datetime = Field(alias="quoteValidityDate")
    message: Optional[str] = None
    revision: int
    created_at: datetime = Field(alias="createdAt")
    containers_allotted_home: Optional[int] = Field(None, alias="containersAllottedHome")
    containers_allotted_moowr: Optional[int] = Field(None, alias="containersAllottedMOOWR")
    home_total: Optional[float] = Field(None, alias="homeTotal")
    moowr_total: Optional[float] = Field(None, alias="mooWRTotal")


_QUOTE_ATTRS = tuple(QuoteResponse.model_fields)


def quote_to_response(quote: QuoteItem) -> QuoteResponse:
    return QuoteResponse(**{attr: getattr(quote, attr) for attr in _QUOTE_ATTRS})


# ============= ALLOCATIONS =============

class AllocationEntryIn(WireModel):
    quote_id: str = Field(alias="quoteId")
    containers_allotted_home: int = Field(0, alias="containersAllottedHome")
    containers_allotted_moowr: int = Field(0, alias="containersAllottedMOOWR")
    reason: Optional[str] = None


class FinalizeRequest(WireModel):
    distribution: List[AllocationEntryIn]
    reason: Optional[str] = None


class AllocationResponse(WireModel):
    rfq_id: str = Field(alias="rfqId")
    quote_id: str = Field(alias="quoteId")
    vendor_name: str = Field(alias="vendorName")
    containers_allotted_home: int = Field(alias="containersAllottedHome")
    containers_allotted_moowr: int = Field(alias="containersAllottedMOOWR")
    reason: Optional[str] = None
    created_by: Optional[str] = Field(None, alias="createdBy")
    created_at: datetime = Field(alias="createdAt")


def allocation_to_response(row: Allocation) -> AllocationResponse:
    return AllocationResponse(
        rfq_id=row.rfq_id,
        quote_id=row.quote_id,
        vendor_name=row.vendor_name,
        containers_allotted_home=row.containers_allotted_home,
        containers_allotted_moowr=row.containers_allotted_moowr,
        reason=row.reason,
        created_by=row.created_by,
        created_at=row.created_at,
    )


class RecommendationResponse(WireModel):
    quote_id: str = Field(alias="quoteId")
    vendor_name: str = Field(alias="vendorName")
    path: str
    per_container_cost: float = Field(alias="perContainerCost")
    total_cost: float = Field(alias="totalCost")
    containers_allotted_home: int = Field(alias="containersAllottedHome")
    containers_allotted_moowr: int = Field(alias="containersAllottedMOOWR")


def recommendation_to_response(rec: Optional[Recommendation]) -> Optional[RecommendationResponse]:
    if rec is None:
        return None
    return RecommendationResponse(
        quote_id=rec.quote_id,
        vendor_name=rec.vendor_name,
        path=rec.path,
        per_container_cost=rec.per_container_cost,
        total_cost=rec.total_cost,
        containers_allotted_home=rec.containers_allotted_home,
        containers_allotted_moowr=rec.containers_allotted_moowr,
    )


class FinalizeResponse(WireModel):
    rfq: RFQResponse
    allocations: List[AllocationResponse]
    quotes: List[QuoteResponse]
    total_allocated: int = Field(alias="totalAllocated")
    deviation: bool
    recommendation: Optional[RecommendationResponse] = None


def finalize_to_response(result: FinalizeResult) -> FinalizeResponse:
    return FinalizeResponse(
        rfq=rfq_to_response(result.rfq),
        allocations=[allocation_to_response(a) for a in result.allocations],
        quotes=[quote_to_response(q) for q in result.quotes],
        total_allocated=result.total_allocated,
        deviation=result.deviation,
        recommendation=recommendation_to_response(result.recommendation),
    )


# ============= AUDIT =============

class AuditLogResponse(WireModel):
    id: int
    timestamp: datetime
    principal_id: Optional[str] = Field(None, alias="principalId")
    organization: Optional[str] = None
    role: Optional[str] = None
    action: str
    entity_type: Optional[str] = Field(None, alias="entityType")
    entity_id: Optional[str] = Field(None, alias="entityId")
    details: Optional[dict] = None


def audit_to_response(log: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=log.id,
        timestamp=log.timestamp,
        principal_id=log.principal_id,
        organization=log.organization,
        role=log.role,
        action=log.action,
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        details=log.details,
    )
