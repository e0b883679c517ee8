"""
End-to-end HTTP tests: create -> quote -> recommend -> finalize.
"""
import json

import pytest

RFQ_BODY = {
    "itemDescription": "HDPE granules",
    "companyName": "Acme Industries",
    "materialPONumber": "PO-7781",
    "supplierName": "Ningbo Polymers",
    "portOfLoading": "Ningbo",
    "portOfDestination": "Nhava Sheva",
    "containerType": "40ft",
    "incoterms": "FOB",
    "numberOfContainers": 10,
    "cargoWeight": 180.5,
    "cargoReadinessDate": "2026-11-01T00:00:00Z",
    "vendors": ["Vendor A", "Vendor B"],
}

QUOTE_BODY = {
    "numberOfContainers": 10,
    "shippingLineName": "Maersk",
    "containerType": "40ft",
    "vesselName": "Maersk Elba",
    "vesselETD": "2026-11-10T00:00:00Z",
    "vesselETA": "2026-12-01T00:00:00Z",
    "seaFreightPerContainer": 1000,
    "houseDeliveryOrderPerBOL": 100,
    "cfsPerContainer": 200,
    "transportationPerContainer": 300,
    "chaChargesHome": 50,
    "chaChargesMOOWR": 40,
    "ediChargesPerBOE": 10,
    "mooWRReeWarehousingCharges": 500,
    "transshipOrDirect": "direct",
    "quoteValidityDate": "2026-11-05T00:00:00Z",
}


@pytest.fixture
def headers(auth_headers):
    return {
        "logistics": auth_headers("logistics", "Logistics Desk", sub="lg-1"),
        "admin": auth_headers("admin", sub="ad-1"),
        "a": auth_headers("vendor", "Vendor A", sub="va-1"),
        "b": auth_headers("vendor", "Vendor B", sub="vb-1"),
        "c": auth_headers("vendor", "Vendor C", sub="vc-1"),
    }


@pytest.fixture
def created_rfq(client, headers):
    response = client.post("/api/rfqs", json=RFQ_BODY, headers=headers["logistics"])
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def quoted(client, headers, created_rfq):
    rfq_id = created_rfq["id"]
    q1 = client.post(f"/api/rfqs/{rfq_id}/quotes", json=QUOTE_BODY, headers=headers["a"]).json()
    q2 = client.post(
        f"/api/rfqs/{rfq_id}/quotes",
        json={**QUOTE_BODY, "seaFreightPerContainer": 900},
        headers=headers["b"],
    ).json()
    return created_rfq, q1, q2


class TestRFQRoutes:

    def test_create_returns_camel_case(self, created_rfq):
        assert created_rfq["rfqNumber"] == 1001
        assert created_rfq["status"] == "initial"
        assert created_rfq["materialPONumber"] == "PO-7781"
        assert created_rfq["numberOfContainers"] == 10
        assert created_rfq["vendors"] == ["Vendor A", "Vendor B"]
        assert created_rfq["createdBy"] == "lg-1"

    def test_next_number_preview(self, client, headers, created_rfq):
        response = client.get("/api/rfqs/next-number", headers=headers["logistics"])
        assert response.json() == {"rfqNumber": 1002}

    def test_missing_fields_return_400(self, client, headers):
        body = {k: v for k, v in RFQ_BODY.items() if k not in ("supplierName", "vendors")}
        response = client.post("/api/rfqs", json=body, headers=headers["logistics"])

        assert response.status_code == 400
        payload = response.json()
        assert payload["error"] == "validation_error"
        assert set(payload["missing"]) == {"supplierName", "vendors"}

    def test_vendor_cannot_create(self, client, headers):
        response = client.post("/api/rfqs", json=RFQ_BODY, headers=headers["a"])
        assert response.status_code == 403

    def test_missing_token(self, client):
        response = client.get("/api/rfqs")
        assert response.status_code in (401, 403)

    def test_vendor_listing_is_filtered(self, client, headers, created_rfq):
        client.post(
            "/api/rfqs", json={**RFQ_BODY, "vendors": "Vendor B"}, headers=headers["logistics"]
        )

        assert len(client.get("/api/rfqs", headers=headers["logistics"]).json()) == 2
        assert [r["id"] for r in client.get("/api/rfqs", headers=headers["a"]).json()] == [created_rfq["id"]]
        assert len(client.get("/api/rfqs", headers=headers["b"]).json()) == 2
        assert client.get("/api/rfqs", headers=headers["c"]).json() == []

    def test_uninvited_vendor_gets_404(self, client, headers, created_rfq):
        response = client.get(f"/api/rfqs/{created_rfq['id']}", headers=headers["c"])
        assert response.status_code == 404

    def test_status_transitions(self, client, headers, created_rfq):
        url = f"/api/rfqs/{created_rfq['id']}/status"

        response = client.patch(url, json={"status": "evaluation"}, headers=headers["logistics"])
        assert response.status_code == 200
        assert response.json()["status"] == "evaluation"

        response = client.patch(url, json={"status": "initial"}, headers=headers["logistics"])
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_unknown_rfq_is_404(self, client, headers):
        response = client.get("/api/rfqs/does-not-exist", headers=headers["logistics"])
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_status_filter_is_400(self, client, headers, created_rfq):
        for who in ("logistics", "a"):
            response = client.get("/api/rfqs?status=open", headers=headers[who])
            assert response.status_code == 400
            assert response.json()["invalid"] == ["status"]


class TestQuoteRoutes:

    def test_submit_and_revise(self, client, headers, created_rfq):
        url = f"/api/rfqs/{created_rfq['id']}/quotes"

        first = client.post(url, json=QUOTE_BODY, headers=headers["a"])
        assert first.status_code == 201
        body = first.json()
        assert body["vendorName"] == "Vendor A"
        assert body["houseDeliveryOrderPerBOL"] == 100
        assert body["mooWRTotal"] is None
        assert body["revision"] == 1

        second = client.post(url, json={**QUOTE_BODY, "vesselName": "Maersk Kobe"}, headers=headers["a"])
        assert second.json()["id"] == body["id"]
        assert second.json()["revision"] == 2

        mine = client.get(f"{url}/mine", headers=headers["a"]).json()
        assert mine["vesselName"] == "Maersk Kobe"

    def test_uninvited_vendor_is_403(self, client, headers, created_rfq):
        response = client.post(
            f"/api/rfqs/{created_rfq['id']}/quotes", json=QUOTE_BODY, headers=headers["c"]
        )
        assert response.status_code == 403
        assert response.json()["error"] == "not_invited"

    def test_closed_rfq_is_409(self, client, headers, created_rfq):
        client.patch(
            f"/api/rfqs/{created_rfq['id']}/status", json={"status": "closed"}, headers=headers["logistics"]
        )
        response = client.post(
            f"/api/rfqs/{created_rfq['id']}/quotes", json=QUOTE_BODY, headers=headers["a"]
        )
        assert response.status_code == 409
        assert response.json()["error"] == "rfq_closed"

    def test_logistics_cannot_submit(self, client, headers, created_rfq):
        response = client.post(
            f"/api/rfqs/{created_rfq['id']}/quotes", json=QUOTE_BODY, headers=headers["logistics"]
        )
        assert response.status_code == 403

    def test_vendors_see_only_their_quotes(self, client, headers, quoted):
        rfq, q1, q2 = quoted
        url = f"/api/rfqs/{rfq['id']}/quotes"

        assert {q["id"] for q in client.get(url, headers=headers["logistics"]).json()} == {q1["id"], q2["id"]}
        assert [q["id"] for q in client.get(url, headers=headers["a"]).json()] == [q1["id"]]
        assert [q["id"] for q in client.get("/api/quotes", headers=headers["b"]).json()] == [q2["id"]]

    def test_mine_is_null_before_submitting(self, client, headers, created_rfq):
        response = client.get(f"/api/rfqs/{created_rfq['id']}/quotes/mine", headers=headers["b"])
        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "1e999"])
    def test_non_finite_cost_is_rejected(self, client, headers, created_rfq, raw):
        url = f"/api/rfqs/{created_rfq['id']}/quotes"
        body = json.dumps(QUOTE_BODY).replace(
            '"seaFreightPerContainer": 1000', f'"seaFreightPerContainer": {raw}'
        )

        response = client.post(
            url, content=body, headers={**headers["a"], "Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert client.get(f"{url}/mine", headers=headers["a"]).json() is None


class TestFinalizeRoutes:

    def test_recommendation(self, client, headers, quoted):
        rfq, _, q2 = quoted
        rec = client.get(f"/api/rfqs/{rfq['id']}/recommendation", headers=headers["logistics"]).json()

        assert rec["quoteId"] == q2["id"]
        assert rec["path"] == "moowr"
        assert rec["containersAllottedMOOWR"] == 10
        assert rec["perContainerCost"] == 1440

    def test_full_workflow(self, client, headers, quoted):
        rfq, q1, q2 = quoted
        body = {
            "distribution": [
                {"quoteId": q1["id"], "containersAllottedHome": 6, "containersAllottedMOOWR": 0},
                {"quoteId": q2["id"], "containersAllottedHome": 0, "containersAllottedMOOWR": 4},
            ],
            "reason": "Split across lines for schedule risk",
        }

        response = client.post(f"/api/rfqs/{rfq['id']}/finalize", json=body, headers=headers["logistics"])
        assert response.status_code == 200
        result = response.json()

        assert result["rfq"]["status"] == "closed"
        assert result["totalAllocated"] == 10
        assert result["deviation"] is True
        quotes = {q["id"]: q for q in result["quotes"]}
        assert quotes[q1["id"]]["homeTotal"] == 9960
        assert quotes[q2["id"]]["mooWRTotal"] == 5760

        again = client.post(f"/api/rfqs/{rfq['id']}/finalize", json=body, headers=headers["logistics"])
        assert again.status_code == 409
        assert again.json()["error"] == "already_closed"

        mine = client.get(f"/api/rfqs/{rfq['id']}/allocations", headers=headers["a"]).json()
        assert [(a["vendorName"], a["containersAllottedHome"]) for a in mine] == [("Vendor A", 6)]

        everything = client.get("/api/allocations", headers=headers["logistics"]).json()
        assert len(everything) == 2

    def test_mismatch_is_422(self, client, headers, quoted):
        rfq, q1, _ = quoted
        response = client.post(
            f"/api/rfqs/{rfq['id']}/finalize",
            json={"distribution": [{"quoteId": q1["id"], "containersAllottedHome": 6}]},
            headers=headers["logistics"],
        )

        assert response.status_code == 422
        assert response.json()["computed"] == 6
        assert response.json()["expected"] == 10

        status = client.get(f"/api/rfqs/{rfq['id']}", headers=headers["logistics"]).json()["status"]
        assert status == "initial"

    def test_vendor_cannot_finalize(self, client, headers, quoted):
        rfq, q1, q2 = quoted
        response = client.post(
            f"/api/rfqs/{rfq['id']}/finalize",
            json={"distribution": [{"quoteId": q1["id"], "containersAllottedHome": 10}]},
            headers=headers["a"],
        )
        assert response.status_code == 403


class TestAuditRoutes:

    def test_admin_reads_audit_trail(self, client, headers, quoted):
        logs = client.get("/api/audit/logs", headers=headers["admin"]).json()
        actions = [log["action"] for log in logs]

        assert actions.count("submit_quote") == 2
        assert "create_rfq" in actions

        rfq, _, _ = quoted
        filtered = client.get(
            "/api/audit/logs", params={"entity_id": rfq["id"]}, headers=headers["admin"]
        ).json()
        assert [log["action"] for log in filtered] == ["create_rfq"]

    def test_non_admin_forbidden(self, client, headers):
        assert client.get("/api/audit/logs", headers=headers["logistics"]).status_code == 403


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"
