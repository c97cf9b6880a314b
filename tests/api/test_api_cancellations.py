from datetime import datetime, timedelta
from unittest.mock import patch

from fastapi.testclient import TestClient

AUTO_APPROVE_15_MIN = {
    "timeWindow": 15,
    "orderStatus": ["open", "pending"],
    "fulfillmentStatus": ["unfulfilled"],
}


class TestApiCancellations:

    def test_submit_and_auto_approve(self, client: TestClient, make_order, make_rule):
        """Fresh order inside the window is approved on submission"""
        make_rule("Auto-approve within 15 min", AUTO_APPROVE_15_MIN, action="auto_approve")
        order_id = make_order(placed_at=datetime.utcnow() - timedelta(minutes=5))

        res = client.post("/v1/cancellations", json={
            "order_id": order_id,
            "reason": "Changed my mind",
            "reason_category": "changed_mind",
        })

        assert res.status_code == 201
        body = res.json()
        assert body["decision"]["action"] == "auto_approve"
        assert body["decision"]["status"] == "approved"
        assert body["request"]["order_id"] == order_id

    def test_submit_without_decision(self, client: TestClient, make_order):
        res = client.post("/v1/cancellations", json={"order_id": make_order(), "auto_decide": False})

        assert res.status_code == 201
        assert res.json()["decision"] is None
        assert res.json()["request"]["status"] == "pending"

    def test_submit_unknown_order(self, client: TestClient):
        res = client.post("/v1/cancellations", json={"order_id": "missing"})
        assert res.status_code == 404
        assert "not found" in res.json()["detail"]

    def test_submit_invalid_reason_category(self, client: TestClient, make_order):
        res = client.post("/v1/cancellations", json={"order_id": make_order(), "reason_category": "bored"})
        assert res.status_code == 422

    def test_duplicate_submission_conflicts(self, client: TestClient, make_order):
        order_id = make_order()
        client.post("/v1/cancellations", json={"order_id": order_id, "auto_decide": False})

        res = client.post("/v1/cancellations", json={"order_id": order_id})
        assert res.status_code == 409

    def test_decide_is_idempotent(self, client: TestClient, make_order):
        created = client.post("/v1/cancellations", json={"order_id": make_order(), "auto_decide": False})
        request_id = created.json()["request"]["id"]

        first = client.post(f"/v1/cancellations/{request_id}/decide")
        second = client.post(f"/v1/cancellations/{request_id}/decide")

        assert first.status_code == 200
        assert first.json()["action"] == "manual_review"
        assert second.json()["queue_item_id"] == first.json()["queue_item_id"]

    def test_decide_unknown_request(self, client: TestClient):
        assert client.post("/v1/cancellations/missing/decide").status_code == 404

    def test_status(self, client: TestClient, make_order):
        created = client.post("/v1/cancellations", json={"order_id": make_order(), "reason": "Too slow"})
        request_id = created.json()["request"]["id"]

        res = client.get(f"/v1/cancellations/{request_id}")

        assert res.status_code == 200
        assert res.json()["status"] == "pending"
        assert res.json()["reason"] == "Too slow"
        assert "requested" in res.json()["timeline"]

    def test_info_reply_flow(self, client: TestClient, make_order):
        created = client.post("/v1/cancellations", json={"order_id": make_order()})
        request_id = created.json()["request"]["id"]
        item_id = created.json()["decision"]["queue_item_id"]

        asked = client.post(f"/v1/review-queue/{item_id}/request-info", json={
            "reviewer_id": "reviewer-1",
            "message": "Is the package unopened?",
        })
        assert asked.json()["review_status"] == "info_requested"

        res = client.post(f"/v1/cancellations/{request_id}/respond", json={"response": "Yes, still sealed"})

        assert res.status_code == 200
        assert res.json()["review_status"] == "pending"

    def test_reply_when_nothing_was_asked(self, client: TestClient, make_order):
        created = client.post("/v1/cancellations", json={"order_id": make_order()})
        request_id = created.json()["request"]["id"]

        res = client.post(f"/v1/cancellations/{request_id}/respond", json={"response": "Hi"})
        assert res.status_code == 409

    def test_withdraw(self, client: TestClient, make_order):
        created = client.post("/v1/cancellations", json={"order_id": make_order()})
        request_id = created.json()["request"]["id"]

        res = client.post(f"/v1/cancellations/{request_id}/withdraw")

        assert res.status_code == 200
        assert res.json()["status"] == "denied"

    @patch("cancellation_engine.api.cancellations.get_cancellation_status")
    def test_unexpected_error_is_500(self, mock_status, client: TestClient):
        mock_status.side_effect = RuntimeError("disk on fire")

        res = client.get("/v1/cancellations/anything")

        assert res.status_code == 500
        assert res.json()["detail"] == "Status lookup failed"


class TestApiOrderLookup:

    def test_lookup_then_submit(self, client: TestClient, make_order):
        """Portal flow: find the order, then cancel it"""
        order_id = make_order()

        res = client.post("/v1/cancellations/lookup", json={
            "order_number": "#1001",
            "email": "SHOPPER@example.com",
        })

        assert res.status_code == 200
        assert res.json()["id"] == order_id
        assert res.json()["can_cancel"] is True

        client.post("/v1/cancellations", json={"order_id": order_id, "auto_decide": False})
        again = client.post("/v1/cancellations/lookup", json={
            "order_number": "#1001",
            "email": "shopper@example.com",
        })
        assert again.json()["can_cancel"] is False
        assert again.json()["latest_request"]["status"] == "pending"

    def test_lookup_missing_fields(self, client: TestClient):
        res = client.post("/v1/cancellations/lookup", json={"order_number": "#1001"})

        assert res.status_code == 422
        assert res.json()["detail"] == "Order number and email are required"

    def test_lookup_unknown_order(self, client: TestClient, make_order):
        make_order()

        res = client.post("/v1/cancellations/lookup", json={
            "order_number": "#9999",
            "email": "shopper@example.com",
        })

        assert res.status_code == 404

    def test_submit_on_closed_order_conflicts(self, client: TestClient, make_order):
        res = client.post("/v1/cancellations", json={"order_id": make_order(status="closed")})

        assert res.status_code == 409
        assert "already been completed" in res.json()["detail"]
