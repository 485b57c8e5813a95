"""FastAPI application exposing CareSubmit form sessions."""

from __future__ import annotations

import hashlib
import json
import logging
import random
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator

from fastapi import Body, File, FastAPI, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from caresubmit.config import LOG_LEVEL
from caresubmit.fixtures import generate_daily_records
from caresubmit.forms import AssessmentForm, ClaimForm, PriorAuthorizationForm, DocumentForm
from caresubmit.gateway import GatewayError, describe_gateway_error
from caresubmit.models import (
	AppealRequest,
	DailyServiceRecord,
	DenialRequest,
	FileMeta,
	License,
	PaymentRequest,
	SelectionToggle,
	ServiceLineUpdate,
	SignatureRequest,
	StartSessionRequest,
	SubmitRequest,
)
from caresubmit.session import delete_session, get_form, list_sessions, resolve_session, start_session

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
LOGGER = logging.getLogger(__name__)


def _with_audit_hash(payload: dict[str, Any]) -> dict[str, Any]:
	material = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
	hash_value = hashlib.sha256(material.encode("utf-8")).hexdigest()
	response = dict(payload)
	response["audit_hash"] = hash_value
	return response


@contextmanager
def _domain_errors() -> Iterator[None]:
	"""Map domain exceptions onto HTTP status codes."""

	try:
		yield
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=exc.args[0] if exc.args else str(exc)) from exc
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc


def _form_of(session_id: str, expected: type, label: str) -> Any:
	form = get_form(session_id)
	if not isinstance(form, expected):
		raise HTTPException(status_code=400, detail=f"session {session_id} is not a {label} form")
	return form


def _parse_date(value: str | None, fallback: date) -> date:
	if not value:
		return fallback
	try:
		return date.fromisoformat(value)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=f"invalid date '{value}', expected YYYY-MM-DD") from exc


async def _file_meta(upload: UploadFile) -> FileMeta:
	content = await upload.read()
	return FileMeta(filename=upload.filename or "upload", size=len(content), content_type=upload.content_type)


app = FastAPI(title="CareSubmit", version="0.1.0")

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
	message = describe_gateway_error(exc, request.url.path)
	return JSONResponse(status_code=502, content={"detail": message})


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
	"""Redirect callers to the interactive documentation."""
	return RedirectResponse(url="/docs")


@app.get("/health")
async def health_check() -> dict[str, object]:
	"""Return readiness metadata for external monitors."""
	return {"ok": True, "service": "CareSubmit", "version": "0.1.0"}


@app.post("/session/start")
async def session_start_route(request: StartSessionRequest | None = Body(None)) -> dict[str, str]:
	"""Create a form session and make it current."""
	return start_session(request)


@app.get("/session/list")
async def session_list_route() -> dict[str, Any]:
	"""List known sessions and their metadata."""
	return list_sessions()


@app.post("/session/purge")
async def session_purge(payload: dict[str, str]) -> dict[str, object]:
	"""Drop a session and all of its in-memory state.

	Expects JSON: {"session_id": "<id>"}.
	"""
	result = delete_session(payload.get("session_id", ""))
	return _with_audit_hash({"status": "purged", "session_id": result["session_id"]})


@app.get("/forms/{session_id}")
async def form_snapshot(session_id: str) -> dict[str, object]:
	"""Return the full state of a form: documents, progress, values and submit readiness."""
	form = get_form(session_id)
	return _with_audit_hash({"session_id": session_id, **form.snapshot()})


@app.post("/forms/{session_id}/documents/{document_id}")
async def upload_document(session_id: str, document_id: str, file: UploadFile = File(...)) -> dict[str, object]:
	"""Accept a multipart file for a checklist entry; only its metadata is kept."""

	form = _form_of(session_id, DocumentForm, "document")
	meta = await _file_meta(file)
	with _domain_errors():
		document = form.upload_document(document_id, meta.filename, meta.size, meta.content_type)
	response = {
		"document": document.model_dump(mode="json"),
		"progress": form.progress,
		"can_submit": form.can_submit,
	}
	return _with_audit_hash(response)


@app.patch("/forms/{session_id}/fields")
async def update_fields(session_id: str, changes: dict[str, Any]) -> dict[str, object]:
	form = get_form(session_id)
	with _domain_errors():
		values = form.update_values(changes)
	return {"values": values, "progress": form.progress, "can_submit": form.can_submit}


@app.post("/forms/{session_id}/selections")
async def toggle_selection(session_id: str, toggle: SelectionToggle) -> dict[str, object]:
	form = _form_of(session_id, AssessmentForm, "assessment")
	with _domain_errors():
		selected = form.toggle_selection(toggle.group, toggle.item)
	return {"group": toggle.group, "selected": selected, "progress": form.progress}


@app.post("/forms/{session_id}/signatures")
async def capture_signatures(session_id: str, request: SignatureRequest) -> dict[str, object]:
	form = _form_of(session_id, PriorAuthorizationForm, "prior authorization")
	signatures = form.sign(
		patient_signature=request.patient_signature,
		provider_signature=request.provider_signature,
	)
	return {"signatures": {name: bool(value) for name, value in signatures.items()}}


@app.post("/forms/{session_id}/service_lines")
async def add_service_line(session_id: str, fields: dict[str, Any]) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	with _domain_errors():
		line = form.service_lines.add(**fields)
	return {"line": line.model_dump(mode="json"), "total_amount": form.service_lines.total()}


@app.patch("/forms/{session_id}/service_lines/{line_id}")
async def update_service_line(session_id: str, line_id: str, update: ServiceLineUpdate) -> dict[str, object]:
	"""Change one field of a service line; the line total is recomputed."""

	form = _form_of(session_id, ClaimForm, "claim")
	with _domain_errors():
		line = form.service_lines.update(line_id, update.field, update.value)
	return {"line": line.model_dump(mode="json"), "total_amount": form.service_lines.total()}


@app.delete("/forms/{session_id}/service_lines/{line_id}")
async def remove_service_line(session_id: str, line_id: str) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	with _domain_errors():
		form.service_lines.remove(line_id)
	return {"status": "removed", "line_id": line_id, "total_amount": form.service_lines.total()}


@app.get("/forms/{session_id}/licenses")
async def get_licenses(session_id: str) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	return {
		"licenses": [item.model_dump(mode="json") for item in form.licenses],
		"expiring_soon": [item.id for item in form.expiring_licenses()],
	}


@app.post("/forms/{session_id}/licenses")
async def put_license(session_id: str, license: License) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	form.add_license(license)
	return {"license": license.model_dump(mode="json"), "count": len(form.licenses)}


@app.post("/forms/{session_id}/daily_records")
async def replace_daily_records(session_id: str, records: list[DailyServiceRecord]) -> dict[str, object]:
	"""Replace the per-day documentation records the coverage check consults."""

	form = _form_of(session_id, ClaimForm, "claim")
	form.set_daily_records(records)
	return {"count": len(records)}


@app.post("/forms/{session_id}/daily_records/generate")
async def generate_records(
	session_id: str,
	year: int = Query(...),
	month: int = Query(..., ge=1, le=12),
	seed: int | None = Query(None),
) -> dict[str, object]:
	"""Fill the daily records with a synthetic month of service history."""

	form = _form_of(session_id, ClaimForm, "claim")
	records = generate_daily_records(year, month, today=form.today(), rng=random.Random(seed))
	form.set_daily_records(records)
	return {"count": len(records), "records": [record.model_dump(mode="json") for record in records]}


@app.post("/forms/{session_id}/submit")
async def submit_form(session_id: str, request: SubmitRequest | None = Body(None)) -> dict[str, object]:
	"""Run the submission gate and send or queue the form.

	A gate failure is a normal response: ``gate.outcome`` is ``rejected`` or
	``confirm``. Resubmit with the confirmed check in ``overrides`` to proceed.
	"""

	request = request or SubmitRequest()
	form = get_form(session_id)
	with _domain_errors():
		outcome = form.submit(overrides=request.overrides, offline=request.offline)
	return _with_audit_hash({"session_id": session_id, **outcome.model_dump(mode="json")})


@app.post("/forms/{session_id}/reset")
async def reset_form(session_id: str) -> dict[str, object]:
	form = get_form(session_id)
	form.reset()
	return _with_audit_hash({"session_id": session_id, **form.snapshot()})


@app.get("/forms/{session_id}/history")
async def get_history(session_id: str) -> dict[str, object]:
	form = get_form(session_id)
	return _with_audit_hash({"history": [entry.model_dump(mode="json") for entry in form.ledger.entries]})


@app.post("/forms/{session_id}/history/{reference}/track")
async def track_submission(session_id: str, reference: str) -> dict[str, object]:
	form = _form_of(session_id, DocumentForm, "document")
	with _domain_errors():
		record = form.track(reference)
	return {"record": record.model_dump(mode="json")}


@app.post("/forms/{session_id}/history/{submission_id}/additional_documents")
async def additional_documents(
	session_id: str,
	submission_id: str,
	files: list[UploadFile] = File(...),
) -> dict[str, object]:
	"""Upload files the payer asked for on an ``additional-info`` submission."""

	form = _form_of(session_id, DocumentForm, "document")
	metas = [await _file_meta(upload) for upload in files]
	with _domain_errors():
		result = form.upload_additional_documents(submission_id, metas)
	response = {
		"record": result["record"].model_dump(mode="json"),
		"accepted": result["accepted"],
		"skipped": result["skipped"],
	}
	return _with_audit_hash(response)


@app.post("/forms/{session_id}/history/{submission_id}/resubmit")
async def resubmit(session_id: str, submission_id: str) -> dict[str, object]:
	form = _form_of(session_id, DocumentForm, "document")
	with _domain_errors():
		snapshot = form.resubmit(submission_id)
	return _with_audit_hash({"session_id": session_id, **snapshot})


@app.post("/forms/{session_id}/payments")
async def record_payment(session_id: str, request: PaymentRequest) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	with _domain_errors():
		payment = form.ledger.record_payment(
			request.claim_number,
			request.payment_amount,
			request.payment_reference,
			payment_method=request.payment_method,
			payment_date=_parse_date(request.payment_date, form.today()),
			variance_reason=request.variance_reason,
		)
	record = form.ledger.find(payment.claim_number)
	return _with_audit_hash({"payment": payment.model_dump(mode="json"), "record": record.model_dump(mode="json")})


@app.post("/forms/{session_id}/denials")
async def record_denial(session_id: str, request: DenialRequest) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	deadline = _parse_date(request.appeal_deadline, form.today()) if request.appeal_deadline else None
	with _domain_errors():
		denial = form.ledger.record_denial(
			request.claim_number,
			request.denial_reason,
			request.denial_code,
			denial_date=form.today(),
			appeal_deadline=deadline,
		)
	return _with_audit_hash({"denial": denial.model_dump(mode="json")})


@app.post("/forms/{session_id}/appeals")
async def submit_appeal(session_id: str, request: AppealRequest) -> dict[str, object]:
	form = _form_of(session_id, ClaimForm, "claim")
	with _domain_errors():
		denial = form.ledger.submit_appeal(
			request.denial_id,
			request.notes,
			supporting_documents=request.supporting_documents,
			submitted_on=form.today(),
		)
	return _with_audit_hash({"denial": denial.model_dump(mode="json")})


@app.get("/forms/{session_id}/revenue")
async def revenue(session_id: str) -> dict[str, object]:
	"""Summarize billed, collected and outstanding amounts from the claim history."""

	form = _form_of(session_id, ClaimForm, "claim")
	response = {
		"summary": form.ledger.revenue_summary(),
		"payments": [item.model_dump(mode="json") for item in form.ledger.payments],
		"denials": [item.model_dump(mode="json") for item in form.ledger.denials],
	}
	return _with_audit_hash(response)


@app.post("/forms/{session_id}/offline/sync")
async def sync_offline(session_id: str) -> dict[str, object]:
	form = _form_of(session_id, DocumentForm, "document")
	form.offline = False
	result = form.sync_offline()
	if result["error"]:
		LOGGER.warning("Offline sync for session %s incomplete: %s", session_id, result["error"])
	return _with_audit_hash({"session_id": session_id, **result})


@app.get("/session/current")
async def session_current() -> dict[str, object]:
	"""Return the id of the session requests fall back to."""
	return {"session_id": resolve_session(None, required=False)}
