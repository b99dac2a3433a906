"""
Tests for the HTTP surface: bot webhook, vehicle conversion and admin endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from main import app
from app.db.models import AuditLog, Policy, Vehicle
from app.db.session import get_db
from app.services.session_store import Operation, SessionIdentity


SERIAL = "1HGBH41JXMN109186"


class CommitFailingSession(Session):
    def commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


CONVERSION_BODY = {
    "serial": SERIAL,
    "make": "HONDA",
    "model": "CIVIC",
    "year": 2024,
    "color": "Rojo",
}


class TestHealth:
    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestBotWebhook:
    """Test events forwarded by the bot front-end."""

    def test_menu_directive(self, client: TestClient):
        """Test a directive returns the render request to show."""
        response = client.post("/bot/directive", json={
            "actor_id": 1001,
            "conversation_id": -2002,
            "action": "menu",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["handled"] is True
        assert [b["action"] for row in data["render"]["buttons"] for b in row] == [
            "policy_search", "policy_restore_search", "vehicle_register",
        ]

    def test_message_without_session_is_unhandled(self, client: TestClient):
        response = client.post("/bot/message", json={
            "actor_id": "1001",
            "conversation_id": "-2002",
            "text": "hola",
        })
        assert response.status_code == 200
        assert response.json() == {"handled": False, "render": None}

    def test_search_conversation(self, client: TestClient, sessions, test_policy):
        """Test a two-turn conversation over HTTP keeps its session between requests."""
        ids = {"actor_id": "1001", "conversation_id": "-2002"}

        client.post("/bot/directive", json={**ids, "action": "policy_search"})
        assert sessions.get(SessionIdentity.of("1001", "-2002")).operation == Operation.POLICY_SEARCH

        response = client.post("/bot/message", json={**ids, "text": "POL-2024-0001"})
        assert response.json()["render"]["text"].startswith("Policy POL-2024-0001")

    def test_malformed_event(self, client: TestClient):
        response = client.post("/bot/directive", json={"actor_id": "1001"})
        assert response.status_code == 422


class TestVehicleConversionAPI:
    """Test the conversion endpoint."""

    def test_convert(self, client: TestClient):
        response = client.post("/vehicles/convert", json=CONVERSION_BODY)
        assert response.status_code == 201
        data = response.json()
        assert data["serial"] == SERIAL
        assert data["policy_number"] == SERIAL

        response = client.get(f"/vehicles/{SERIAL.lower()}")
        assert response.status_code == 200
        vehicle = response.json()
        assert vehicle["status"] == "linked_to_policy"
        assert vehicle["policyId"] == data["policy_id"]

    def test_duplicate_is_conflict(self, client: TestClient):
        assert client.post("/vehicles/convert", json=CONVERSION_BODY).status_code == 201

        response = client.post("/vehicles/convert", json=CONVERSION_BODY)
        assert response.status_code == 409
        assert SERIAL in response.json()["detail"]

    def test_year_outside_window_is_bad_request(self, client: TestClient):
        response = client.post("/vehicles/convert", json={**CONVERSION_BODY, "year": 2010})
        assert response.status_code == 400
        assert "year" in response.json()["detail"]

    def test_unknown_vehicle(self, client: TestClient):
        assert client.get("/vehicles/XXXXXXXXXXXXXXXXX").status_code == 404

    def test_audit_failure_does_not_fail_conversion(self, client: TestClient, db, engine):
        """Test a committed conversion is reported as created even when its audit entry is lost."""
        request_db = CommitFailingSession(bind=engine, autoflush=False)
        app.dependency_overrides[get_db] = lambda: request_db
        try:
            response = client.post("/vehicles/convert", json=CONVERSION_BODY)
        finally:
            request_db.close()

        assert response.status_code == 201
        assert response.json()["policy_number"] == SERIAL
        assert db.query(Vehicle).count() == 1
        assert db.query(Policy).count() == 1
        assert db.query(AuditLog).count() == 0


class TestAdminAPI:
    """Test operational endpoints."""

    def test_session_stats(self, client: TestClient, sessions):
        sessions.create(SessionIdentity.of("1001", "-2002"), Operation.FIELD_EDIT)
        sessions.create(SessionIdentity.of("1002", "-2002"), Operation.POLICY_SEARCH)

        response = client.get("/admin/sessions/stats")
        assert response.status_code == 200
        assert response.json() == {
            "active_sessions": 2,
            "operations": {"field-edit": 1, "search-for-edit": 1},
            "pending_side_effects": 0,
            "recent_side_effect_failures": 0,
        }

    def test_audit_history(self, client: TestClient):
        vehicle_id = client.post("/vehicles/convert", json=CONVERSION_BODY).json()["vehicle_id"]

        response = client.get(f"/admin/audit/vehicle/{vehicle_id}")
        assert response.status_code == 200
        entries = response.json()
        assert [e["event_type"] for e in entries] == ["vehicle.converted"]
        assert entries[0]["details"]["policy_number"] == SERIAL
