import os
import sys
from pathlib import Path

import bcrypt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app.core.config import settings
from app.db.session import Base, get_db
from app.main import app


@pytest.fixture()
def client(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(settings, "API_KEY", "")
    monkeypatch.setattr(settings, "MASTER_PASSWORD", "open-sesame")
    monkeypatch.setattr(settings, "MASTER_PASSWORD_HASH", "")
    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_db, None)


MASTER = {"X-Master-Password": "open-sesame"}


def _new_job(client, **fields):
    body = {"customerName": "Farah", "date": "2024-04-01", "phoneNumber": "98000 11111"}
    body.update(fields)
    response = client.post("/api/v1/inward", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_inward_lifecycle_uses_camel_case(client):
    assert client.get("/api/v1/jobs/next-id").json() == {"value": "JOB-0001"}
    created = _new_job(client, estimatedAmount=450)
    assert created["jobId"] == "JOB-0001"
    assert created["isDelivered"] is False

    patched = client.patch("/api/v1/inward/JOB-0001", json={"notes": "Water damage"})
    assert patched.json()["notes"] == "Water damage"

    listed = client.get("/api/v1/inward", params={"search": "farah"}).json()
    assert [row["jobId"] for row in listed] == ["JOB-0001"]


def test_missing_customer_name_is_a_validation_error(client):
    response = client.post("/api/v1/inward", json={"date": "2024-04-01"})
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_delivery_flow_and_error_codes(client):
    job = _new_job(client)["jobId"]
    assert client.post(f"/api/v1/outward/{job}/deliver", json={"deliveredTo": "Farah", "completedDate": "2024-04-05"}).status_code == 404

    outward = client.post("/api/v1/outward", json={"jobId": job, "estimatedAmount": 900})
    assert outward.status_code == 201
    assert outward.json()["customerName"] == "Farah"
    assert client.post("/api/v1/outward", json={"jobId": job}).status_code == 409

    status = client.get(f"/api/v1/jobs/{job}/status").json()
    assert status["status"] == "in_progress"
    assert status["estimatedAmount"] == 900

    delivered = client.post(
        f"/api/v1/outward/{job}/deliver",
        json={"deliveredTo": "Farah", "completedDate": "2024-04-05", "deliveryMode": "In Person"},
    )
    assert delivered.status_code == 200
    assert delivered.json()["status"] == "completed"
    assert delivered.json()["completedDate"] == "2024-04-05"

    again = client.post(f"/api/v1/outward/{job}/deliver", json={"deliveredTo": "Farah", "completedDate": "2024-04-06"})
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_state"
    assert client.get(f"/api/v1/inward/{job}").json()["deliveryDate"] == "2024-04-05"


def test_status_override_endpoints(client):
    job = _new_job(client)["jobId"]
    put = client.put(f"/api/v1/jobs/{job}/status-override", json={"status": "in_progress", "note": "diagnosing"})
    assert put.json()["status"] == "in_progress"
    assert put.json()["overridden"] is True
    cleared = client.delete(f"/api/v1/jobs/{job}/status-override")
    assert cleared.json()["status"] == "pending"
    assert client.get("/api/v1/jobs/JOB-0404/status").status_code == 404


def test_hard_disks_attach_to_jobs(client):
    job = _new_job(client)["jobId"]
    created = client.post("/api/v1/hard-disks", json={"jobId": job, "deviceInfo": "Toshiba 500GB"})
    assert created.status_code == 201
    record_id = created.json()["id"]
    client.patch(f"/api/v1/hard-disks/{record_id}", json={"serialNumber": "X9"})
    assert client.get("/api/v1/hard-disks", params={"jobId": job}).json()[0]["serialNumber"] == "X9"
    assert client.post("/api/v1/hard-disks", json={"jobId": "JOB-0404"}).status_code == 404


def test_reports_and_csv(client):
    job = _new_job(client, estimatedAmount=1000)["jobId"]
    client.post("/api/v1/outward", json={"jobId": job})
    client.post(f"/api/v1/outward/{job}/deliver", json={"deliveredTo": "Farah", "completedDate": "2024-04-05"})
    _new_job(client, customerName="Gopal")

    rows = client.get("/api/v1/reports", params={"status": "completed"}).json()
    assert [row["jobId"] for row in rows] == [job]

    summary = client.get("/api/v1/reports/summary").json()
    assert summary["completed"] == 1
    assert summary["pending"] == 1
    assert summary["deliveredRevenue"] == "1000.00"

    csv_response = client.get("/api/v1/reports/export.csv")
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert csv_response.text.splitlines()[0].startswith('"Job ID","Customer Name"')

    assert client.get("/api/v1/reports", params={"range": "someday"}).status_code == 422


def test_data_operations_require_master_password(client):
    _new_job(client)

    assert client.get("/api/v1/data/export").status_code == 403
    denied = client.post("/api/v1/data/clear", headers={"X-Master-Password": "wrong"})
    assert denied.status_code == 403
    assert denied.json()["code"] == "authorization_denied"
    assert len(client.get("/api/v1/inward").json()) == 1

    exported = client.get("/api/v1/data/export", headers=MASTER)
    assert exported.status_code == 200
    assert "data-recovery-backup-" in exported.headers["content-disposition"]
    document = exported.json()

    assert client.post("/api/v1/data/clear", headers=MASTER).json() == {"status": "cleared"}
    assert client.get("/api/v1/inward").json() == []
    assert client.get("/api/v1/jobs/next-id").json() == {"value": "JOB-0001"}

    restored = client.post("/api/v1/data/import", headers=MASTER, json=document)
    assert restored.status_code == 200
    assert restored.json()["counts"]["inward"] == 1
    assert client.get("/api/v1/data/export", headers=MASTER).text == exported.text


def test_bcrypt_hash_is_preferred(client, monkeypatch):
    hashed = bcrypt.hashpw(b"hashed-secret", bcrypt.gensalt()).decode("utf-8")
    monkeypatch.setattr(settings, "MASTER_PASSWORD_HASH", hashed)

    assert client.get("/api/v1/data/export", headers=MASTER).status_code == 403
    assert client.get("/api/v1/data/export", headers={"X-Master-Password": "hashed-secret"}).status_code == 200


def test_api_key_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "k-123")
    assert client.get("/api/v1/inward").status_code == 401
    assert client.get("/api/v1/inward", headers={"X-API-Key": "k-123"}).status_code == 200
