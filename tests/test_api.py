import random
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from caresubmit.fixtures import claim_documents
from caresubmit.main import app
from caresubmit.models import StartSessionRequest
from caresubmit.session import start_session


client = TestClient(app)
FEB_20 = datetime(2024, 2, 20, 9, 30, tzinfo=timezone.utc)
PDF = ("form.pdf", b"%PDF-1.4 sample", "application/pdf")


@pytest.fixture()
def claim_session() -> str:
    created = start_session(StartSessionRequest(kind="claim"), clock=lambda: FEB_20, rng=random.Random(9))
    return created["session_id"]


def _upload_all(session_id: str) -> None:
    for doc in claim_documents():
        if doc.required:
            resp = client.post(f"/forms/{session_id}/documents/{doc.id}", files={"file": PDF})
            assert resp.status_code == 200, resp.text


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_session_lifecycle():
    resp = client.post("/session/start", json={"kind": "prior_authorization"})
    assert resp.status_code == 200, resp.text
    session_id = resp.json()["session_id"]

    listed = client.get("/session/list").json()["sessions"]
    assert any(item["session_id"] == session_id and item["is_current"] for item in listed)

    purged = client.post("/session/purge", json={"session_id": session_id})
    assert purged.status_code == 200
    assert "audit_hash" in purged.json()
    assert client.get(f"/forms/{session_id}").status_code == 404


def test_invalid_session_id():
    assert client.get("/forms/bad id!").status_code == 400


def test_snapshot_has_audit_hash(claim_session):
    body = client.get(f"/forms/{claim_session}").json()
    assert body["kind"] == "claim"
    assert body["progress"] == 0
    assert body["can_submit"] is False
    assert body["total_amount"] == pytest.approx(11100.0)
    assert len(body["audit_hash"]) == 64


def test_upload_guards(claim_session):
    resp = client.post(f"/forms/{claim_session}/documents/invoice", files={"file": ("x.exe", b"MZ", "application/octet-stream")})
    assert resp.status_code == 400
    resp = client.post(f"/forms/{claim_session}/documents/unknown", files={"file": PDF})
    assert resp.status_code == 404


def test_claim_flow(claim_session):
    _upload_all(claim_session)
    snapshot = client.get(f"/forms/{claim_session}").json()
    assert snapshot["progress"] == 100
    assert snapshot["can_submit"] is True

    # Generated daily records rarely cover the whole billed range, so confirm gaps up front.
    resp = client.post(f"/forms/{claim_session}/submit", json={"overrides": ["documentation_gaps"]})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["gate"]["outcome"] == "accepted"
    assert body["record"]["reference_number"].startswith("DAMAN-CL-2024-")

    history = client.get(f"/forms/{claim_session}/history").json()["history"]
    assert history[0]["reference_number"] == body["record"]["reference_number"]
    assert len(history) == 4


def test_gate_failure_is_a_normal_response(claim_session):
    resp = client.post(f"/forms/{claim_session}/submit")
    assert resp.status_code == 200
    gate = resp.json()["gate"]
    assert gate["outcome"] == "rejected"
    assert gate["check"] == "missing_documents"


def test_service_line_editing(claim_session):
    resp = client.patch(f"/forms/{claim_session}/service_lines/sl-001", json={"field": "quantity", "value": 10})
    assert resp.status_code == 200
    assert resp.json()["line"]["total_amount"] == pytest.approx(2500.0)
    assert resp.json()["total_amount"] == pytest.approx(6100.0)

    resp = client.patch(f"/forms/{claim_session}/service_lines/sl-001", json={"field": "total_amount", "value": 1})
    assert resp.status_code == 400

    added = client.post(f"/forms/{claim_session}/service_lines", json={"service_code": "OT001", "quantity": 2, "unit_price": 100})
    line_id = added.json()["line"]["id"]
    assert added.json()["total_amount"] == pytest.approx(6300.0)

    assert client.delete(f"/forms/{claim_session}/service_lines/{line_id}").status_code == 200
    assert client.delete(f"/forms/{claim_session}/service_lines/{line_id}").status_code == 404


def test_fields_and_reset(claim_session):
    assert client.patch(f"/forms/{claim_session}/fields", json={"bogus": 1}).status_code == 400
    resp = client.patch(f"/forms/{claim_session}/fields", json={"claim_notes": "Late visit log"})
    assert resp.json()["values"]["claim_notes"] == "Late visit log"

    reset = client.post(f"/forms/{claim_session}/reset").json()
    assert reset["values"]["claim_notes"] == ""


def test_licenses_endpoints(claim_session):
    body = client.get(f"/forms/{claim_session}/licenses").json()
    assert len(body["licenses"]) == 5
    assert body["expiring_soon"] == ["license-2"]

    new_license = {
        "id": "license-6",
        "clinician_name": "Mariam Saeed",
        "employee_id": "N99999",
        "expiry_date": "2025-06-30",
        "license_status": "Active",
    }
    resp = client.post(f"/forms/{claim_session}/licenses", json=new_license)
    assert resp.status_code == 200
    assert resp.json()["count"] == 6


def test_daily_records_endpoints(claim_session):
    records = [{"service_date": "2024-01-20", "service_provided": True, "provider_id": "N12345", "documentation_complete": True}]
    assert client.post(f"/forms/{claim_session}/daily_records", json=records).json() == {"count": 1}

    generated = client.post(f"/forms/{claim_session}/daily_records/generate", params={"year": 2024, "month": 2, "seed": 1})
    assert generated.status_code == 200
    assert generated.json()["count"] == 19


def test_payment_denial_appeal_and_revenue(claim_session):
    resp = client.post(
        f"/forms/{claim_session}/payments",
        json={"claim_number": "DAMAN-CL-2024-00456", "payment_amount": 11100, "payment_reference": "PAY-2024-55555"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["record"]["status"] == "paid"
    assert resp.json()["payment"]["status"] == "reconciled"

    bad = client.post(f"/forms/{claim_session}/payments", json={"claim_number": "DAMAN-CL-2024-00456", "payment_amount": 0, "payment_reference": "X"})
    assert bad.status_code == 400
    missing = client.post(f"/forms/{claim_session}/payments", json={"claim_number": "NOPE", "payment_amount": 5, "payment_reference": "X"})
    assert missing.status_code == 404

    denial = client.post(
        f"/forms/{claim_session}/denials",
        json={"claim_number": "DAMAN-CL-2024-00123", "denial_reason": "Service code mismatch", "denial_code": "CO-4"},
    )
    assert denial.status_code == 200
    denial_id = denial.json()["denial"]["id"]

    appeal = client.post(f"/forms/{claim_session}/appeals", json={"denial_id": denial_id, "notes": "Corrected codes attached"})
    assert appeal.json()["denial"]["appeal_status"] == "submitted"

    summary = client.get(f"/forms/{claim_session}/revenue").json()["summary"]
    assert summary["status_counts"]["rejected"] == 1
    assert summary["open_denials"] == 1


def test_offline_submit_and_sync():
    created = start_session(StartSessionRequest(kind="claim", offline=True), clock=lambda: FEB_20, rng=random.Random(3))
    session_id = created["session_id"]
    _upload_all(session_id)

    body = client.post(f"/forms/{session_id}/submit", json={"overrides": ["documentation_gaps"]}).json()
    assert body["queued"] is True
    reference = body["record"]["reference_number"]
    assert reference.startswith("OFFLINE-")

    tracked = client.post(f"/forms/{session_id}/history/{reference}/track").json()
    assert tracked["record"]["status"] == "pending"

    synced = client.post(f"/forms/{session_id}/offline/sync").json()
    assert synced["synced"] == [reference]
    history = client.get(f"/forms/{session_id}/history").json()["history"]
    assert history[0]["reference_number"] == reference
    assert history[0]["status"] == "in-review"


def test_authorization_additional_documents_and_resubmit():
    created = start_session(StartSessionRequest(kind="prior_authorization"), clock=lambda: FEB_20, rng=random.Random(5))
    session_id = created["session_id"]

    resp = client.post(
        f"/forms/{session_id}/history/sub-003/additional_documents",
        files=[("files", ("labs.pdf", b"%PDF", "application/pdf")), ("files", ("notes.txt", b"x", "text/plain"))],
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["accepted"] == ["labs.pdf"]
    assert resp.json()["skipped"] == ["notes.txt"]

    assert client.post(f"/forms/{session_id}/history/sub-001/resubmit").status_code == 400
    resub = client.post(f"/forms/{session_id}/history/sub-002/resubmit").json()
    assert resub["values"]["additional_notes"].startswith("Resubmission of DAMAN-PA-2023-12789.")

    signed = client.post(f"/forms/{session_id}/signatures", json={"patient_signature": "sig"}).json()
    assert signed["signatures"] == {"patient_signature": True, "provider_signature": False}


def test_wrong_form_kind_rejected(claim_session):
    resp = client.post(f"/forms/{claim_session}/selections", json={"group": "equipment", "item": "oxygen"})
    assert resp.status_code == 400


def test_assessment_selections():
    session_id = client.post("/session/start", json={"kind": "emergency_preparedness"}).json()["session_id"]
    resp = client.post(f"/forms/{session_id}/selections", json={"group": "equipment", "item": "oxygen"})
    assert resp.json()["selected"] == ["oxygen"]
    assert resp.json()["progress"] == 8
    gate = client.post(f"/forms/{session_id}/submit").json()["gate"]
    assert gate["check"] == "incomplete_form"
