"""
Integration tests for the KrishiBondhu API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from krishibondhu.api import create_app
from krishibondhu.api.system import KrishiSystem, get_system
from krishibondhu.notifications import LogNotificationAuthority
from krishibondhu.storage import InMemoryStore


@pytest.fixture
def system():
    return KrishiSystem(
        store=InMemoryStore(),
        notifier=LogNotificationAuthority(grant=True),
        processing_delay=0
    )


@pytest.fixture
def client(system):
    """Test client wired to an in-memory system"""
    app = create_app()
    app.dependency_overrides[get_system] = lambda: system
    return TestClient(app)


def create_loan(client, **overrides):
    payload = {"lender_name": "Grameen Bank", "amount": "5000", "due_date": "2025-06-01"}
    payload.update(overrides)
    r = client.post("/loans", json=payload)
    assert r.status_code == 201
    return r.json()["loan"]


class TestHealthEndpoints:

    def test_health(self, client):
        """Test health endpoint reports a healthy service"""
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        """Test API info lists the loan endpoints"""
        data = client.get("/").json()
        assert "loans" in data["endpoints"]


class TestLoanEndpoints:

    def test_create_and_get(self, client):
        """Test creating a loan and reading it back"""
        loan = create_loan(client)
        assert loan["status"] == "active"
        assert loan["amount"] == "5000"

        r = client.get(f"/loans/{loan['id']}")
        assert r.status_code == 200
        assert r.json()["lender_name"] == "Grameen Bank"

    def test_create_validation_error(self, client):
        """Test blank lender name is rejected with its reason"""
        r = client.post("/loans", json={"lender_name": "", "amount": "5000"})
        assert r.status_code == 400
        assert r.json()["detail"]["reason"] == "lender_name_required"

    def test_numeric_amount_accepted(self, client):
        """Test numeric JSON amounts are accepted"""
        assert create_loan(client, amount=1250.5)["amount"] == "1250.5"

    def test_list_filters_and_summary(self, client):
        """Test status filters and the summary totals"""
        first = create_loan(client, lender_name="BRAC", amount="1000")
        create_loan(client, lender_name="ASA", amount="2000")
        client.post(f"/loans/{first['id']}/toggle")

        active = client.get("/loans", params={"status": "active"}).json()["loans"]
        paid = client.get("/loans", params={"status": "paid"}).json()["loans"]
        assert [l["lender_name"] for l in active] == ["ASA"]
        assert [l["lender_name"] for l in paid] == ["BRAC"]

        summary = client.get("/loans/summary").json()
        assert summary == {
            "active_count": 1, "paid_count": 1,
            "total_active_debt": "2000", "total_paid": "1000",
        }

    def test_unknown_status_filter_rejected(self, client):
        """Test an unknown status filter is rejected"""
        create_loan(client)
        assert client.get("/loans", params={"status": "overdue"}).status_code == 422

    def test_patch_and_paid_loan_conflict(self, client):
        """Test editing active loans and refusing paid ones"""
        loan = create_loan(client)

        r = client.patch(f"/loans/{loan['id']}", json={"notes": "harvest in June"})
        assert r.status_code == 200
        assert r.json()["notes"] == "harvest in June"

        client.post(f"/loans/{loan['id']}/toggle")
        r = client.patch(f"/loans/{loan['id']}", json={"amount": "1"})
        assert r.status_code == 409

    def test_delete_twice(self, client):
        """Test second delete of a loan returns not found"""
        loan = create_loan(client)
        assert client.delete(f"/loans/{loan['id']}").status_code == 204
        assert client.delete(f"/loans/{loan['id']}").status_code == 404

    def test_missing_loan(self, client):
        """Test unknown loan id returns not found"""
        assert client.get("/loans/404").status_code == 404


class TestPaymentFlow:

    def test_decline_retry_success(self, client):
        """Test full payment flow through decline, retry and success"""
        loan = create_loan(client)

        r = client.post("/payments", json={"loan_id": loan["id"]})
        assert r.status_code == 201
        assert r.json()["step"] == "select"

        r = client.post("/payments/current/submit", json={"pin": "1234"})
        assert r.status_code == 409

        assert client.post("/payments/current/method", json={"method": "mobile-wallet"}).json()["step"] == "input"

        r = client.post("/payments/current/submit", json={"pin": ""})
        assert r.status_code == 400

        r = client.post("/payments/current/submit", json={"pin": "0000"})
        assert r.status_code == 200
        assert r.json()["step"] == "failure"
        assert r.json()["reason"] == "insufficient_funds"

        assert client.post("/payments/current/retry").json()["step"] == "input"

        r = client.post("/payments/current/submit", json={"pin": "1234"})
        assert r.json()["step"] == "success"
        assert r.json()["loan_status"] == "paid"

        assert client.delete("/payments/current").json() == {"closed": True, "reached": "success"}
        assert client.get("/payments/current").status_code == 404
        assert client.get(f"/loans/{loan['id']}").json()["status"] == "paid"

    def test_open_paid_loan_conflict(self, client):
        """Test paying a paid loan is refused"""
        loan = create_loan(client)
        client.post(f"/loans/{loan['id']}/toggle")

        assert client.post("/payments", json={"loan_id": loan["id"]}).status_code == 409

    def test_submit_after_manual_settlement_conflict(self, client):
        """Test submit is refused after the loan is marked paid"""
        loan = create_loan(client)
        client.post("/payments", json={"loan_id": loan["id"]})
        client.post("/payments/current/method", json={"method": "mobile-wallet"})
        client.post(f"/loans/{loan['id']}/toggle")

        r = client.post("/payments/current/submit", json={"pin": "1234"})
        assert r.status_code == 409
        assert r.json()["detail"]["reason"] == "loan_not_active"
        assert client.get("/payments/current").json()["step"] == "input"


class TestReminderEndpoints:

    def test_loan_reminder(self, client):
        """Test setting a due-date reminder for a loan"""
        loan = create_loan(client)

        r = client.post(f"/loans/{loan['id']}/reminder")
        assert r.status_code == 201
        assert r.json()["date"] == "2025-06-01"

        reminders = client.get("/reminders").json()["reminders"]
        assert len(reminders) == 1
        assert reminders[0]["related_id"] == loan["id"]
        assert reminders[0]["type"] == "loan"

    def test_reminder_without_due_date(self, client):
        """Test reminder request without a due date"""
        loan = create_loan(client, due_date="")
        r = client.post(f"/loans/{loan['id']}/reminder")
        assert r.status_code == 400
        assert r.json()["detail"]["reason"] == "due_date_missing"

    def test_permission_denied(self, client, system):
        """Test denied permission saves no reminder"""
        system.manager.notifier = LogNotificationAuthority(grant=False)
        loan = create_loan(client)

        assert client.post(f"/loans/{loan['id']}/reminder").status_code == 403
        assert client.get("/reminders").json()["reminders"] == []

    def test_crop_reminder(self, client):
        """Test scheduling a fertilizer reminder"""
        r = client.post("/reminders/crop", json={
            "crop_id": "jute", "crop_name": "Jute", "date": "2025-06-10", "care_type": "Urea"
        })
        assert r.status_code == 201
        assert r.json()["type"] == "fertilizer"
        assert r.json()["title"] == "Fertilizer for Jute"
