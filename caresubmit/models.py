"""Shared data models for CareSubmit's form sessions and submission ledger."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


SubmissionStatus = Literal[
	"pending",
	"in-review",
	"approved",
	"paid",
	"rejected",
	"additional-info",
	"returned",
	"partial",
]
LicenseStatus = Literal["Active", "Expired", "Suspended", "Pending Renewal"]
ComplianceStatus = Literal["Compliant", "Non-Compliant", "Under Review"]
FormKind = Literal["claim", "prior_authorization", "emergency_preparedness", "quality_assurance"]


class FileMeta(BaseModel):
	"""Metadata captured for an uploaded file; the bytes themselves are not retained."""

	filename: str
	size: int
	content_type: str | None = None
	uploaded_by: str = "Current User"


class DocumentRequirement(BaseModel):
	"""A named document in a form's checklist."""

	id: str
	name: str
	description: str = ""
	required: bool = True
	uploaded: bool = False
	upload_date: str | None = None
	file_meta: FileMeta | None = None


class ServiceLine(BaseModel):
	"""A billed service on a claim. The line total is always derived."""

	id: str
	service_code: str = ""
	service_description: str = ""
	quantity: int = 0
	unit_price: float = 0.0
	date_of_service: str = ""
	provider_id: str = ""
	provider_name: str = ""
	authorization_reference: str | None = None

	@computed_field  # type: ignore[prop-decorator]
	@property
	def total_amount(self) -> float:
		return self.quantity * self.unit_price


class SubmissionRecord(BaseModel):
	"""One entry in the submission history ledger."""

	model_config = ConfigDict(frozen=True)

	id: str
	reference_number: str
	submission_date: str
	status: SubmissionStatus
	amount: float | None = None
	comments: str | None = None
	reviewer: str | None = None
	review_date: str | None = None
	paid_amount: float | None = None
	payment_date: str | None = None
	payment_reference: str | None = None


class License(BaseModel):
	"""Professional license of a clinician who appears on service lines."""

	id: str
	clinician_name: str
	employee_id: str
	role: str = ""
	department: str = ""
	license_number: str = ""
	license_type: str = "DOH"
	issuing_authority: str = "Department of Health Abu Dhabi"
	issue_date: date | None = None
	expiry_date: date
	license_status: LicenseStatus
	compliance_status: ComplianceStatus = "Under Review"
	renewal_initiated: bool = False
	continuing_education_completed: bool = False
	currently_active_for_claims: bool = True


class DailyServiceRecord(BaseModel):
	"""Whether a service was delivered and documented on a given day."""

	service_date: date
	service_provided: bool
	service_type: str | None = None
	provider_id: str | None = None
	provider_name: str | None = None
	documentation_complete: bool = False
	documentation_id: str | None = None
	notes: str | None = None


class PaymentRecord(BaseModel):
	"""A payment received against a submitted claim."""

	id: str
	claim_id: str
	claim_number: str
	payment_date: str
	payment_amount: float
	payment_method: str
	payment_reference: str
	expected_amount: float
	variance: float
	variance_reason: str | None = None
	status: Literal["reconciled", "unreconciled", "disputed"]


class DenialRecord(BaseModel):
	"""A payer denial and the state of its appeal."""

	id: str
	claim_id: str
	claim_number: str
	denial_date: str
	denial_reason: str
	denial_code: str
	appeal_status: Literal["not_started", "in_progress", "submitted", "resolved", "rejected"] = "not_started"
	appeal_deadline: str | None = None
	appeal_submission_date: str | None = None
	supporting_documents: list[str] = Field(default_factory=list)
	status: Literal["active", "resolved", "write_off"] = "active"
	notes: str | None = None


class ComplianceResult(BaseModel):
	"""Outcome of a DOH compliance check."""

	is_compliant: bool
	issues: list[str] = Field(default_factory=list)


class GateResult(BaseModel):
	"""Result of running the submission gate.

	``outcome`` is ``accepted`` when every check passed, ``rejected`` for a hard
	stop, and ``confirm`` when the caller may proceed by resubmitting with
	``check`` listed in its overrides.
	"""

	outcome: Literal["accepted", "rejected", "confirm"]
	check: str | None = None
	message: str = ""
	issues: list[str] = Field(default_factory=list)

	@property
	def accepted(self) -> bool:
		return self.outcome == "accepted"


class SubmitOutcome(BaseModel):
	"""What a submit attempt produced."""

	gate: GateResult
	record: SubmissionRecord | None = None
	payload: dict[str, Any] | None = None
	queued: bool = False
	message: str = ""


class StartSessionRequest(BaseModel):
	kind: FormKind = "claim"
	patient_id: str = "P12345"
	episode_id: str = "EP789"
	authorization_id: str = "AUTH-12345"
	offline: bool | None = None


class SubmitRequest(BaseModel):
	"""Submit a form; ``overrides`` lists soft checks the user confirmed."""

	overrides: list[str] = Field(default_factory=list)
	offline: bool | None = None


class ServiceLineUpdate(BaseModel):
	field: str
	value: Any


class PaymentRequest(BaseModel):
	claim_number: str
	payment_amount: float
	payment_reference: str = ""
	payment_method: str = "Bank Transfer"
	payment_date: str | None = None
	variance_reason: str | None = None


class DenialRequest(BaseModel):
	claim_number: str
	denial_reason: str = ""
	denial_code: str = ""
	appeal_deadline: str | None = None


class AppealRequest(BaseModel):
	denial_id: str
	notes: str = ""
	supporting_documents: list[str] = Field(default_factory=list)


class SignatureRequest(BaseModel):
	patient_signature: str | None = None
	provider_signature: str | None = None


class SelectionToggle(BaseModel):
	group: str
	item: str
