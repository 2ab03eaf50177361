"""
ComplyWatch API Tests

Exercise the FastAPI app end to end against a temporary SQLite database.
"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(tmp_path, monkeypatch):
    from complywatch import database
    from complywatch.config import get_settings

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("EXECUTOR_ENABLED", "false")
    monkeypatch.setenv("AI_ENABLED", "false")
    get_settings.cache_clear()
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_async_session_factory", None)

    from complywatch.main import app

    with TestClient(app) as test_client:
        yield test_client

    get_settings.cache_clear()


def create_test_payload(**message):
    defaults = {
        "message_id": "api-1",
        "subject": "Order",
        "body": "Here is the card 4111 1111 1111 1111 for the order",
        "sender": "alice@company.com",
        "recipients": ["buyer@gmail.com"],
    }
    defaults.update(message)
    return {
        "message": defaults,
        "employee": {"employee_id": 11, "name": "Alice Example", "email": "alice@company.com", "department": "Sales"},
    }


class TestHealth:
    def test_root_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_api_health(self, client):
        data = client.get("/api/v1/health").json()
        assert data["service"] == "complywatch-api"
        assert "timestamp" in data

    def test_readiness(self, client):
        data = client.get("/api/v1/health/ready").json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["status"] == "ready"
        assert data["checks"]["ai"]["status"] == "not_configured"
        assert data["checks"]["executor"]["status"] == "stopped"


class TestClassificationAPI:
    def test_classify(self, client):
        response = client.post("/api/v1/classify", json=create_test_payload())

        assert response.status_code == 200
        data = response.json()
        assert 0 <= data["risk_score"] <= 100
        assert data["compliance_score"] >= 30
        assert "PCI_DSS" in [v["type"] for v in data["violations"]]

    def test_classify_rejects_missing_message_id(self, client):
        payload = create_test_payload()
        del payload["message"]["message_id"]

        assert client.post("/api/v1/classify", json=payload).status_code == 422

    def test_stats_count_processed_messages(self, client):
        client.post("/api/v1/classify", json=create_test_payload(message_id="a"))
        client.post("/api/v1/classify", json=create_test_payload(message_id="b", body="Lunch at noon?", recipients=["bob@company.com"]))

        stats = client.get("/api/v1/stats").json()

        assert stats["total_processed"] == 2
        assert "estimated_cost_savings" in stats
        assert stats["llm_processed"] == 0


class TestPolicyAPI:
    def test_ingest_creates_execution(self, client):
        created = client.post("/api/v1/policies", json={
            "name": "Any violation",
            "conditions": [{"condition_type": "any_violation", "operator": "equals", "value": "true"}],
            "actions": [{"action_type": "notify", "action_config": {"recipients": "soc@company.com"}}],
        })
        assert created.status_code == 201

        ingested = client.post("/api/v1/ingest", json=create_test_payload()).json()
        assert ingested["violation_ids"]
        assert ingested["policies_triggered"] == len(ingested["violation_ids"])

        executions = client.get("/api/v1/executions", params={"status": "pending"}).json()
        assert len(executions) == len(ingested["violation_ids"])
        assert executions[0]["policy_id"] == created.json()["id"]
        assert executions[0]["action_results"] == []

    def test_unknown_action_type_rejected(self, client):
        response = client.post("/api/v1/policies", json={
            "name": "Broken",
            "actions": [{"action_type": "launch_missiles"}],
        })
        assert response.status_code == 400

    def test_unknown_operator_rejected(self, client):
        response = client.post("/api/v1/policies", json={
            "name": "Broken",
            "conditions": [{"condition_type": "risk_score", "operator": "approximately", "value": "5"}],
        })
        assert response.status_code == 400

    def test_evaluate_unknown_violation(self, client):
        response = client.post("/api/v1/policies/evaluate", json={"violation_id": 12345, "employee_id": 1})
        assert response.status_code == 200
        assert response.json()["policies_triggered"] == 0

    def test_explicit_zero_order_is_kept(self, client, tmp_path):
        """An explicit order of 0 is stored as given, not replaced by the position."""
        import asyncio

        from sqlalchemy import select

        from complywatch.database import (
            PolicyActionRecord,
            PolicyConditionRecord,
            create_engine_for,
            create_session_factory,
        )

        created = client.post("/api/v1/policies", json={
            "name": "Ordered",
            "conditions": [
                {"condition_type": "risk_score", "operator": "greater_than", "value": "70", "condition_order": 1},
                {"condition_type": "any_violation", "operator": "equals", "value": "true", "condition_order": 0},
                {"condition_type": "violation_type", "operator": "contains", "value": "data"},
            ],
            "actions": [
                {"action_type": "notify", "action_config": {"recipients": "soc@company.com"}, "execution_order": 1},
                {"action_type": "escalate_incident", "execution_order": 0},
            ],
        })
        assert created.status_code == 201

        async def stored_orders():
            engine = create_engine_for(f"sqlite:///{tmp_path / 'api.db'}")
            try:
                async with create_session_factory(engine)() as session:
                    conditions = (await session.scalars(
                        select(PolicyConditionRecord).order_by(PolicyConditionRecord.id)
                    )).all()
                    actions = (await session.scalars(
                        select(PolicyActionRecord).order_by(PolicyActionRecord.id)
                    )).all()
                return [c.condition_order for c in conditions], [a.execution_order for a in actions]
            finally:
                await engine.dispose()

        condition_orders, action_orders = asyncio.run(stored_orders())

        # the third condition has no order and takes its position
        assert condition_orders == [1, 0, 2]
        assert action_orders == [1, 0]
