"""
Demo data: one open RFQ with two vendor quotes, created through the services.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.core.rbac import Principal, Role
from app.db.models import RFQ
from app.services.quote_store import QuoteStore
from app.services.rfq_store import RFQStore

logger = get_logger(__name__)

DEMO_LOGISTICS = Principal(principal_id="demo-logistics", role=Role.LOGISTICS, organization="Logistics Desk")
DEMO_VENDORS = ("Oceanic Freight", "BlueWave Logistics")


def _demo_quote(vendor: str, sailing: datetime, sea_freight: float, cha_home: float) -> dict:
    return {
        "number_of_containers": 10,
        "shipping_line_name": "Maersk" if vendor == DEMO_VENDORS[0] else "MSC",
        "container_type": "40ft HC",
        "vessel_name": f"{vendor.split()[0]} Star",
        "vessel_etd": sailing,
        "vessel_eta": sailing + timedelta(days=21),
        "sea_freight_per_container": sea_freight,
        "house_delivery_order_per_bol": 4500.0,
        "cfs_per_container": 6500.0,
        "transportation_per_container": 18000.0,
        "cha_charges_home": cha_home,
        "cha_charges_moowr": 9500.0,
        "edi_charges_per_boe": 1200.0,
        "moowr_reewarehousing_charges": 11000.0,
        "transship_or_direct": "direct",
        "quote_validity_date": sailing - timedelta(days=7),
        "message": "Rates subject to space availability",
    }


def seed_demo_data(db: Session) -> bool:
    """Create the demo RFQ unless any RFQ already exists. Returns True if seeded."""
    if db.query(RFQ).first():
        logger.info("RFQs already present. Skipping demo seed...")
        return False

    now = datetime.now(timezone.utc)
    rfqs = RFQStore(db)
    quotes = QuoteStore(db)

    rfq = rfqs.create(
        {
            "item_description": "Polymer resin granules",
            "company_name": "Acme Industries",
            "material_po_number": "PO-2024-0456",
            "supplier_name": "Shanghai Resin Co.",
            "port_of_loading": "Shanghai",
            "port_of_destination": "Nhava Sheva",
            "container_type": "40ft HC",
            "incoterms": "FOB",
            "number_of_containers": 10,
            "cargo_weight": 220.0,
            "cargo_readiness_date": now + timedelta(days=14),
            "cargo_readiness_to": now + timedelta(days=21),
            "initial_quote_end_time": now + timedelta(days=3),
            "evaluation_end_time": now + timedelta(days=5),
            "description": "Palletized, stackable",
            "vendors": list(DEMO_VENDORS),
        },
        DEMO_LOGISTICS,
    )

    sailing = now + timedelta(days=24)
    for vendor, sea_freight, cha_home in (
        (DEMO_VENDORS[0], 1450.0, 8000.0),
        (DEMO_VENDORS[1], 1380.0, 8800.0),
    ):
        principal = Principal(principal_id=f"demo-{vendor.lower().split()[0]}", role=Role.VENDOR, organization=vendor)
        quotes.submit(rfq.id, vendor, _demo_quote(vendor, sailing, sea_freight, cha_home), actor=principal)

    logger.info(f"Seeded demo RFQ {rfq.rfq_number} with {len(DEMO_VENDORS)} quotes")
    return True
