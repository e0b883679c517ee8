"""
Tests for per-principal visibility of RFQs, quotes and allocations.
"""
import pytest

from app.core.rbac import Principal, Role
from app.db.models import RFQ
from app.services.access_control import AccessFilter


@pytest.fixture
def access(rfq_store, quote_store, engine_service):
    return AccessFilter(rfq_store, quote_store, engine_service)


@pytest.fixture
def two_rfqs(rfq_store, logistics, rfq_spec):
    shared = rfq_store.create(rfq_spec(vendors=["Vendor A", "Vendor B"]), logistics)
    only_b = rfq_store.create(rfq_spec(vendors=["Vendor B"]), logistics)
    return shared, only_b


class TestRFQVisibility:

    def test_logistics_sees_everything(self, access, two_rfqs, logistics):
        assert len(access.visible_rfqs(logistics)) == 2

    def test_admin_sees_everything(self, access, two_rfqs, admin):
        assert len(access.visible_rfqs(admin)) == 2

    def test_vendor_sees_invited_only(self, access, two_rfqs, vendor_a, vendor_b, vendor_c):
        shared, only_b = two_rfqs

        assert [r.id for r in access.visible_rfqs(vendor_a)] == [shared.id]
        assert {r.id for r in access.visible_rfqs(vendor_b)} == {shared.id, only_b.id}
        assert access.visible_rfqs(vendor_c) == []

        assert access.can_view_rfq(vendor_a, shared)
        assert not access.can_view_rfq(vendor_a, only_b)

    def test_vendor_without_organization_sees_nothing(self, access, two_rfqs):
        nameless = Principal(principal_id="v-x", role=Role.VENDOR, organization=None)
        shared, _ = two_rfqs

        assert access.visible_rfqs(nameless) == []
        assert not access.can_view_rfq(nameless, shared)
        assert access.visible_quotes(nameless) == []
        assert access.visible_allocations(nameless) == []

    def test_allocation_keeps_rfq_visible(self, access, quoted_rfq, engine_service, db_session, vendor_a):
        rfq, q1, q2 = quoted_rfq
        engine_service.finalize(rfq.id, [
            {"quote_id": q1.id, "containers_allotted_home": 6},
            {"quote_id": q2.id, "containers_allotted_moowr": 4},
        ])

        # Drop Vendor A from the invitation list after the fact
        stored = db_session.get(RFQ, rfq.id)
        stored.vendors = ["Vendor B"]
        db_session.commit()

        assert [r.id for r in access.visible_rfqs(vendor_a)] == [rfq.id]
        assert access.can_view_rfq(vendor_a, stored)


class TestQuoteVisibility:

    def test_vendor_sees_only_own_quotes(self, access, quoted_rfq, vendor_a, vendor_b):
        rfq, q1, q2 = quoted_rfq

        assert [q.id for q in access.visible_quotes(vendor_a, rfq.id)] == [q1.id]
        assert [q.id for q in access.visible_quotes(vendor_b)] == [q2.id]

    def test_logistics_sees_all_quotes(self, access, quoted_rfq, logistics):
        rfq, q1, q2 = quoted_rfq
        assert {q.id for q in access.visible_quotes(logistics, rfq.id)} == {q1.id, q2.id}
        assert len(access.visible_quotes(logistics)) == 2


class TestAllocationVisibility:

    def test_vendor_sees_only_own_rows(self, access, quoted_rfq, engine_service, vendor_a, logistics):
        rfq, q1, q2 = quoted_rfq
        engine_service.finalize(rfq.id, [
            {"quote_id": q1.id, "containers_allotted_home": 6},
            {"quote_id": q2.id, "containers_allotted_moowr": 4},
        ])

        mine = access.visible_allocations(vendor_a, rfq.id)
        assert [(a.vendor_name, a.containers_allotted_home) for a in mine] == [("Vendor A", 6)]
        assert len(access.visible_allocations(logistics, rfq.id)) == 2
