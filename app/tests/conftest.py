"""
Shared fixtures: an isolated SQLite database per test, principals and payloads.
"""
import os
import tempfile
from datetime import datetime, timezone

# Settings are read at import time, so the environment must be in place first
_BOOTSTRAP_DIR = tempfile.mkdtemp(prefix="rfqdesk-tests-")
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "rfqdesk-test-secret-key-0123456789abcdef"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_BOOTSTRAP_DIR, 'bootstrap.db')}"
os.environ["SEED_DEMO"] = "false"
os.environ["NOTIFICATION_QUEUE_ENABLED"] = "false"
os.environ["REQUIRE_DEVIATION_REASON"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.core.rbac import Principal, Role
from app.core.security import create_access_token
from app.db.session import Base, build_engine, get_db
from app.db import models  # noqa - register tables
from app.main import app
from app.services.allocation_engine import AllocationEngine
from app.services.notifications import ChangeNotifier
from app.services.quote_store import QuoteStore
from app.services.rfq_store import RFQStore


# ============= DATABASE =============

@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'rfqdesk.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


# ============= SERVICES =============

@pytest.fixture
def events():
    """Change events published by the services under test."""
    return []


@pytest.fixture
def test_notifier(events):
    notifier = ChangeNotifier()
    notifier.subscribe(events.append)
    return notifier


@pytest.fixture
def rfq_store(db_session, test_notifier):
    return RFQStore(db_session, notifier=test_notifier)


@pytest.fixture
def quote_store(db_session, test_notifier):
    return QuoteStore(db_session, notifier=test_notifier)


@pytest.fixture
def engine_service(db_session, test_notifier):
    return AllocationEngine(db_session, notifier=test_notifier)


# ============= PRINCIPALS =============

@pytest.fixture
def logistics():
    return Principal(principal_id="lg-100", role=Role.LOGISTICS, organization="Logistics Desk")


@pytest.fixture
def admin():
    return Principal(principal_id="ad-1", role=Role.ADMIN)


@pytest.fixture
def vendor_a():
    return Principal(principal_id="va-1", role=Role.VENDOR, organization="Vendor A")


@pytest.fixture
def vendor_b():
    return Principal(principal_id="vb-1", role=Role.VENDOR, organization="Vendor B")


@pytest.fixture
def vendor_c():
    return Principal(principal_id="vc-1", role=Role.VENDOR, organization="Vendor C")


# ============= PAYLOADS =============

@pytest.fixture
def rfq_spec():
    """Factory for a valid RFQ spec; keyword overrides replace fields."""
    def build(**overrides):
        spec = {
            "item_description": "HDPE granules",
            "company_name": "Acme Industries",
            "material_po_number": "PO-7781",
            "supplier_name": "Ningbo Polymers",
            "port_of_loading": "Ningbo",
            "port_of_destination": "Nhava Sheva",
            "container_type": "40ft",
            "incoterms": "FOB",
            "number_of_containers": 10,
            "cargo_weight": 180.5,
            "cargo_readiness_date": datetime(2026, 11, 1, tzinfo=timezone.utc),
            "description": "Palletized",
            "vendors": ["Vendor A", "Vendor B"],
        }
        spec.update(overrides)
        return spec
    return build


@pytest.fixture
def cost_sheet():
    """
    Factory for a valid cost sheet.

    Defaults give 1660 per container on the home path and 1540 on MOOWR.
    """
    def build(**overrides):
        sheet = {
            "number_of_containers": 10,
            "shipping_line_name": "Maersk",
            "container_type": "40ft",
            "vessel_name": "Maersk Elba",
            "vessel_etd": datetime(2026, 11, 10, tzinfo=timezone.utc),
            "vessel_eta": datetime(2026, 12, 1, tzinfo=timezone.utc),
            "sea_freight_per_container": 1000.0,
            "house_delivery_order_per_bol": 100.0,
            "cfs_per_container": 200.0,
            "transportation_per_container": 300.0,
            "cha_charges_home": 50.0,
            "cha_charges_moowr": 40.0,
            "edi_charges_per_boe": 10.0,
            "moowr_reewarehousing_charges": 500.0,
            "transship_or_direct": "direct",
            "quote_validity_date": datetime(2026, 11, 5, tzinfo=timezone.utc),
            "message": None,
        }
        sheet.update(overrides)
        return sheet
    return build


@pytest.fixture
def quoted_rfq(rfq_store, quote_store, logistics, vendor_a, vendor_b, rfq_spec, cost_sheet):
    """
    RFQ for 10 containers with quotes Q1 (Vendor A) and Q2 (Vendor B).

    Q2 is 100 cheaper per container on both paths.
    """
    rfq = rfq_store.create(rfq_spec(), logistics)
    q1 = quote_store.submit(rfq.id, "Vendor A", cost_sheet(), actor=vendor_a)
    q2 = quote_store.submit(
        rfq.id, "Vendor B", cost_sheet(sea_freight_per_container=900.0), actor=vendor_b
    )
    return rfq, q1, q2


# ============= HTTP =============

@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Factory for bearer headers carrying the given role and organization."""
    def build(role: str, org: str = None, sub: str = "user-1"):
        claims = {"sub": sub, "role": role}
        if org:
            claims["org"] = org
        return {"Authorization": f"Bearer {create_access_token(claims)}"}
    return build
