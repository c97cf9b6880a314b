from fastapi.testclient import TestClient


def _rule(name="Auto-approve within 15 min", **overrides):
    payload = {
        "organization_id": "test-org",
        "name": name,
        "conditions": {"timeWindow": 15, "orderStatus": ["open"]},
        "actions": {"type": "auto_approve", "notifyCustomer": True},
    }
    payload.update(overrides)
    return payload


class TestApiRules:

    def test_create_and_list(self, client: TestClient):
        res = client.post("/v1/rules", json=_rule())

        assert res.status_code == 201
        assert res.json()["priority"] == 1
        assert res.json()["conditions"]["timeWindow"] == 15

        listed = client.get("/v1/rules", params={"organization_id": "test-org"})
        assert [r["name"] for r in listed.json()] == ["Auto-approve within 15 min"]

    def test_unknown_condition_is_rejected(self, client: TestClient):
        res = client.post("/v1/rules", json=_rule(conditions={"moonPhase": ["full"]}))
        assert res.status_code == 422

    def test_unknown_action_is_rejected(self, client: TestClient):
        res = client.post("/v1/rules", json=_rule(actions={"type": "refund"}))
        assert res.status_code == 422

    def test_update_toggle_delete(self, client: TestClient):
        rule_id = client.post("/v1/rules", json=_rule()).json()["id"]

        patched = client.patch(f"/v1/rules/{rule_id}", json={"name": "Renamed"})
        assert patched.json()["name"] == "Renamed"

        toggled = client.post(f"/v1/rules/{rule_id}/toggle")
        assert toggled.json()["active"] is False

        assert client.delete(f"/v1/rules/{rule_id}").status_code == 204
        assert client.get(f"/v1/rules/{rule_id}").status_code == 404

    def test_reorder(self, client: TestClient):
        first = client.post("/v1/rules", json=_rule("First")).json()["id"]
        second = client.post("/v1/rules", json=_rule("Second")).json()["id"]

        res = client.post("/v1/rules/reorder", json={"rules": [
            {"id": first, "priority": 2},
            {"id": second, "priority": 1},
        ]})

        assert res.status_code == 200
        assert [r["name"] for r in res.json()] == ["Second", "First"]

    def test_templates_and_activation(self, client: TestClient):
        templates = client.get("/v1/rule-templates").json()
        assert len(templates) == 3

        flag = next(t for t in templates if t["category"] == "risk_based")
        res = client.post(f"/v1/rule-templates/{flag['id']}/activate", json={"organization_id": "test-org"})

        assert res.status_code == 201
        assert res.json()["created_from_template_id"] == flag["id"]
        assert res.json()["conditions"] == {"riskLevel": ["high"]}

    def test_activate_unknown_template(self, client: TestClient):
        res = client.post("/v1/rule-templates/missing/activate", json={})
        assert res.status_code == 404


class TestHealth:

    def test_health(self, client: TestClient):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["database_connected"] is True
        assert res.json()["status"] == "healthy"
