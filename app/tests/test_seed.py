"""
Tests for demo data seeding.
"""
from app.db.models import QuoteItem, RFQ
from app.db.seed import DEMO_VENDORS, seed_demo_data


def test_seed_creates_open_rfq_with_quotes(db_session):
    assert seed_demo_data(db_session) is True

    rfq = db_session.query(RFQ).one()
    assert rfq.status == "initial"
    assert rfq.vendors == list(DEMO_VENDORS)
    assert {q.vendor_name for q in db_session.query(QuoteItem).all()} == set(DEMO_VENDORS)


def test_seed_is_idempotent(db_session):
    seed_demo_data(db_session)
    assert seed_demo_data(db_session) is False
    assert db_session.query(RFQ).count() == 1
