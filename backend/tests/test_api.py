from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pnl.api.deps import db
from pnl.core.security import create_access_token
from pnl.db.base import Base
import pnl.models  # noqa: F401
from pnl.main import app


@pytest.fixture()
def client():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    Session = sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)

    def _db():
        s = Session()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[db] = _db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        eng.dispose()


def _auth(role="admin"):
    return {"Authorization": f"Bearer {create_access_token('alice', role)}"}


def _create_loan(client, **kw):
    body = {
        "name": "Truck",
        "schedule_type": "ANNUITY",
        "total_amount": "120000",
        "interest_rate": "12",
        "total_months": 12,
        "payment_day": 5,
        "start_date": "2025-01-05",
    }
    body.update(kw)
    r = client.post("/loans", json=body, headers=_auth())
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_requires_token(client):
    r = client.get("/loans")
    assert r.status_code in (401, 403)


def test_viewer_cannot_write(client):
    r = client.post(
        "/loans",
        json={"name": "x", "total_amount": "1", "start_date": "2025-01-01"},
        headers=_auth("viewer"),
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "admin_only"


def test_generate_schedule_unknown_loan_is_404(client):
    r = client.post("/loans/999/generate-schedule", headers=_auth())
    assert r.status_code == 404
    assert r.json() == {"detail": "loan_not_found"}


def test_generate_schedule_manual_loan_is_400(client):
    loan = _create_loan(client, schedule_type="MANUAL")
    r = client.post(f"/loans/{loan['id']}/generate-schedule", headers=_auth())
    assert r.status_code == 400
    assert r.json() == {"detail": "manual_schedule_not_generated"}


def test_generate_schedule_missing_rate_is_400(client):
    loan = _create_loan(client, interest_rate=None)
    r = client.post(f"/loans/{loan['id']}/generate-schedule", headers=_auth())
    assert r.status_code == 400
    assert r.json() == {"detail": "rate_and_term_required"}


def test_generate_then_toggle_through_http(client):
    loan = _create_loan(client)

    r = client.post(f"/loans/{loan['id']}/generate-schedule", headers=_auth())
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["count"] == 12
    assert Decimal(body["payments"][0]["amount"]) == Decimal("10661.85")
    assert body["payments"][0]["date"] == "2025-02-05"

    cat = client.post("/categories", json={"name": "Loans", "type": "EXPENSE"}, headers=_auth()).json()
    pid = body["payments"][0]["id"]
    rec = client.post(
        f"/loans/{loan['id']}/payments/{pid}/ledger-record",
        json={"category_id": cat["id"]},
        headers=_auth(),
    )
    assert rec.status_code == 201, rec.text
    assert rec.json()["is_paid"] is False

    r = client.patch(f"/loans/{loan['id']}/payments/{pid}", json={"is_paid": True}, headers=_auth())
    assert r.status_code == 200
    assert r.json()["is_paid"] is True

    records = client.get("/records", params={"loan_id": loan["id"]}, headers=_auth()).json()
    assert [x["is_paid"] for x in records] == [True]

    r = client.post("/reconcile", headers=_auth())
    assert r.json() == {"synced": 0, "reverted": 0, "linked": 0}

    audit = client.get("/audit", params={"entity_type": "loan"}, headers=_auth()).json()
    assert "schedule.generate" in [a["action"] for a in audit]


def test_payment_of_other_loan_is_404(client):
    a = _create_loan(client)
    b = _create_loan(client, name="Second truck")
    rows = client.post(f"/loans/{a['id']}/generate-schedule", headers=_auth()).json()["payments"]

    r = client.patch(f"/loans/{b['id']}/payments/{rows[0]['id']}", json={"is_paid": True}, headers=_auth())
    assert r.status_code == 404
    assert r.json() == {"detail": "payment_not_found"}


def test_balances_over_http(client):
    le = client.post(
        "/legal-entities",
        json={"name": "Bakery LLC", "initial_balance": "100000", "effective_date": "2025-01-01"},
        headers=_auth(),
    ).json()
    cat = client.post("/categories", json={"name": "Sales", "type": "INCOME"}, headers=_auth()).json()
    client.post(
        "/records",
        json={"type": "INCOME", "amount": "3000", "date": "2025-02-01", "category_id": cat["id"], "legal_entity_id": le["id"]},
        headers=_auth(),
    )

    r = client.get(f"/legal-entities/{le['id']}/balance", headers=_auth())
    assert Decimal(r.json()["balance"]) == Decimal("103000.00")

    assert client.get("/legal-entities/999/balance", headers=_auth()).status_code == 404

    r = client.get("/safe", headers=_auth())
    assert r.json()["settings"] is None
    assert Decimal(r.json()["safe_balance"]) == 0


def test_patch_moves_payment_and_record_dates(client):
    loan = _create_loan(client)
    rows = client.post(f"/loans/{loan['id']}/generate-schedule", headers=_auth()).json()["payments"]

    r = client.patch(f"/loans/{loan['id']}/payments/{rows[0]['id']}", json={"date": "2025-02-10"}, headers=_auth())
    assert r.status_code == 200, r.text
    assert r.json()["date"] == "2025-02-10"

    cat = client.post("/categories", json={"name": "Rent", "type": "EXPENSE"}, headers=_auth()).json()
    rec = client.post(
        "/records",
        json={"type": "EXPENSE", "amount": "700", "date": "2025-03-01", "category_id": cat["id"]},
        headers=_auth(),
    ).json()
    r = client.patch(f"/records/{rec['id']}", json={"date": "2025-03-15", "due_date": "2025-03-20"}, headers=_auth())
    assert r.status_code == 200, r.text
    assert (r.json()["date"], r.json()["due_date"]) == ("2025-03-15", "2025-03-20")
