"""
Test HTTP degli endpoint di fatturazione con TestClient.

Utente e repository sono sostituiti tramite dependency_overrides;
il lifespan non viene eseguito (nessuna connessione al database).
"""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_current_user, get_invoice_service, get_repository
from app.core.security import create_access_token
from app.main import app
from app.models import IdempotencyRecord, JobStatus
from app.services.invoice_service import InvoiceService


@pytest.fixture
def client(repo):
    """TestClient con repository in memoria e utente non ancora sostituito."""
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_invoice_service] = lambda: InvoiceService("continue")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client, user):
    """TestClient autenticato come `user`."""
    app.dependency_overrides[get_current_user] = lambda: user
    return client


# ============================================================
# Tests for authentication and company
# ============================================================


class TestAuthentication:

    def test_missing_token(self, client, make_payload):
        response = client.post("/api/invoices", json=make_payload())

        assert response.status_code == 401

    def test_invalid_token(self, client, make_payload):
        response = client.post(
            "/api/invoices",
            json=make_payload(),
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401

    def test_valid_token(self, client, user, make_payload):
        token = create_access_token(str(user.id))

        response = client.post(
            "/api/invoices",
            json=make_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 201

    def test_expired_token(self, client, user, make_payload):
        token = create_access_token(user.id, expires_delta=timedelta(minutes=-1))

        response = client.post(
            "/api/invoices",
            json=make_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    def test_subject_not_uuid(self, client, make_payload):
        token = create_access_token("mario")

        response = client.post(
            "/api/invoices",
            json=make_payload(),
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Token di accesso non valido"

    def test_user_without_company(self, client, repo, make_payload):
        loner = repo.add_user()
        app.dependency_overrides[get_current_user] = lambda: loner

        response = client.post("/api/invoices", json=make_payload())

        assert response.status_code == 400
        assert response.json()["error_code"] == "NO_COMPANY"


# ============================================================
# Tests for POST /api/invoices
# ============================================================


class TestCreateInvoiceEndpoint:

    def test_created(self, auth_client, make_payload):
        response = auth_client.post("/api/invoices", json=make_payload())

        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"invoiceId", "invoiceNumber", "summary"}
        assert body["invoiceNumber"] == "INV-10001"
        assert body["summary"]["total"] == 100.0

    def test_schema_error_is_422_with_issues(self, auth_client, repo, make_payload):
        response = auth_client.post(
            "/api/invoices",
            json=make_payload(lines=[{"description": "X", "quantity": -1, "unitPrice": 5}]),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "Validation error"
        assert body["errors"][0]["loc"] == ["lines", 0, "quantity"]
        assert repo.invoices == {}

    def test_sub_cent_quantity_is_422(self, auth_client, repo, make_payload):
        response = auth_client.post(
            "/api/invoices",
            json=make_payload(lines=[{"description": "X", "quantity": "0.004", "unitPrice": "5"}]),
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["loc"] == ["lines", 0, "quantity"]
        assert repo.invoices == {}
        assert repo.counters == {}

    def test_foreign_customer_is_403(self, auth_client, repo, other_company_id, make_payload):
        stranger = repo.add_customer(other_company_id)

        response = auth_client.post(
            "/api/invoices", json=make_payload(customerId=str(stranger.id))
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Customer not found or unauthorized"

    def test_job_not_done_is_400(self, auth_client, repo, company_id, customer, make_payload):
        job = repo.add_job(company_id, customer.id, status=JobStatus.IN_PROGRESS.value)

        response = auth_client.post("/api/invoices", json=make_payload(jobIds=[str(job.id)]))

        assert response.status_code == 400
        assert str(job.id) in response.json()["detail"]
        assert repo.invoices == {}

    def test_write_failure_is_500(self, auth_client, repo, make_payload):
        repo.fail("insert_lines")

        response = auth_client.post("/api/invoices", json=make_payload())

        assert response.status_code == 500
        assert response.json()["error_code"] == "INVOICE_WRITE_FAILED"
        assert repo.invoices == {}

    def test_idempotent_replay(self, auth_client, repo, make_payload):
        headers = {"Idempotency-Key": "abc-123"}

        first = auth_client.post("/api/invoices", json=make_payload(), headers=headers)
        second = auth_client.post("/api/invoices", json=make_payload(), headers=headers)

        assert first.status_code == second.status_code == 201
        assert first.content == second.content
        assert len(repo.invoices) == 1

    def test_key_in_flight_is_409(self, auth_client, repo, user, company_id, make_payload):
        # chiave pending lasciata da una richiesta ancora in corso
        repo.idempotency[(user.id, company_id, "POST /api/invoices", "busy")] = IdempotencyRecord(
            id=uuid.uuid4(), user_id=user.id, company_id=company_id,
            route="POST /api/invoices", idempotency_key="busy", state="pending",
            updated_at=datetime.now(timezone.utc),
        )

        response = auth_client.post(
            "/api/invoices", json=make_payload(), headers={"Idempotency-Key": "busy"}
        )

        assert response.status_code == 409
        assert repo.invoices == {}

    def test_overlong_key_is_422(self, auth_client, repo, make_payload):
        response = auth_client.post(
            "/api/invoices", json=make_payload(), headers={"Idempotency-Key": "k" * 256}
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "IDEMPOTENCY_KEY_TOO_LONG"
        assert repo.idempotency == {}
        assert repo.invoices == {}


# ============================================================
# Tests for detail, issue and unapplied payments
# ============================================================


class TestOtherEndpoints:

    def test_invoice_detail(self, auth_client, make_payload):
        created = auth_client.post("/api/invoices", json=make_payload()).json()

        response = auth_client.get(f"/api/invoices/{created['invoiceId']}")

        assert response.status_code == 200
        body = response.json()
        assert body["invoiceNumber"] == created["invoiceNumber"]
        assert body["lines"][0]["lineNumber"] == 1
        assert body["summary"] == created["summary"]

    def test_invoice_detail_not_found(self, auth_client):
        response = auth_client.get(f"/api/invoices/{uuid.uuid4()}")

        assert response.status_code == 404

    def test_issue_invoice(self, auth_client, make_payload):
        created = auth_client.post("/api/invoices", json=make_payload()).json()
        due = (date.today() + timedelta(days=10)).isoformat()

        response = auth_client.post(
            f"/api/invoices/{created['invoiceId']}/issue", json={"dueDate": due}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "issued"
        assert body["dueDate"] == due

    def test_issue_twice_is_400(self, auth_client, make_payload):
        created = auth_client.post("/api/invoices", json=make_payload(issueNow=True)).json()

        response = auth_client.post(
            f"/api/invoices/{created['invoiceId']}/issue",
            json={"dueDate": date.today().isoformat()},
        )

        assert response.status_code == 400

    def test_unapplied_payments(self, auth_client, repo, company_id, customer):
        repo.add_payment(company_id, customer.id, "75.00", deposit_type="parts", applied="25.00")

        response = auth_client.get(f"/api/customers/{customer.id}/unapplied-payments")

        assert response.status_code == 200
        body = response.json()
        assert body["unappliedCredit"] == 50.0
        assert body["items"][0]["unappliedAmount"] == 50.0
        assert body["items"][0]["depositType"] == "parts"

    def test_unapplied_payments_foreign_customer(self, auth_client, repo, other_company_id):
        stranger = repo.add_customer(other_company_id)

        response = auth_client.get(f"/api/customers/{stranger.id}/unapplied-payments")

        assert response.status_code == 403

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Tests for POST /api/payments and /api/payment-applications
# ============================================================


class TestPaymentEndpoints:

    def test_create_deposit(self, auth_client, repo, customer):
        response = auth_client.post(
            "/api/payments",
            json={"customerId": str(customer.id), "amount": "75.00",
                  "method": "bank_transfer", "depositType": "general"},
        )

        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"paymentId", "unappliedCredit"}
        assert body["unappliedCredit"] == 75.0
        assert repo.payments[uuid.UUID(body["paymentId"])].is_deposit is True

    def test_payment_replay(self, auth_client, repo, customer):
        payload = {"customerId": str(customer.id), "amount": "20.00", "method": "cash"}
        headers = {"Idempotency-Key": "pay-abc"}

        first = auth_client.post("/api/payments", json=payload, headers=headers)
        second = auth_client.post("/api/payments", json=payload, headers=headers)

        assert first.status_code == second.status_code == 201
        assert first.content == second.content
        assert len(repo.payments) == 1

    def test_payment_schema_error_is_422(self, auth_client, repo, customer):
        response = auth_client.post(
            "/api/payments",
            json={"customerId": str(customer.id), "amount": "0", "method": "cash"},
            headers={"Idempotency-Key": "pay-bad"},
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["loc"] == ["amount"]
        assert repo.payments == {}
        assert repo.idempotency == {}

    def test_payment_foreign_customer_is_403(self, auth_client, repo, other_company_id):
        stranger = repo.add_customer(other_company_id)

        response = auth_client.post(
            "/api/payments",
            json={"customerId": str(stranger.id), "amount": "10.00", "method": "cash"},
        )

        assert response.status_code == 403

    def test_apply_payment(self, auth_client, repo, company_id, customer, make_payload):
        created = auth_client.post("/api/invoices", json=make_payload()).json()
        payment = repo.add_payment(company_id, customer.id, "30.00", is_deposit=False)

        response = auth_client.post(
            "/api/payment-applications",
            json={"paymentId": str(payment.id), "invoiceId": created["invoiceId"], "amount": "30.00"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["paymentId"] == str(payment.id)
        assert body["remainingBalance"] == 70.0
        assert "paymentApplicationId" in body

        detail = auth_client.get(f"/api/invoices/{created['invoiceId']}").json()
        assert detail["summary"]["balance"] == 70.0

    def test_apply_over_balance_is_400(self, auth_client, repo, company_id, customer, make_payload):
        created = auth_client.post("/api/invoices", json=make_payload()).json()
        payment = repo.add_payment(company_id, customer.id, "300.00", is_deposit=False)

        response = auth_client.post(
            "/api/payment-applications",
            json={"paymentId": str(payment.id), "invoiceId": created["invoiceId"], "amount": "150.00"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "PRECONDITION_FAILED"
        assert repo.applications == []
