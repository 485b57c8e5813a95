"""Pre-submission checks for each form kind.

Checks run in order and stop at the first failure. A failure is returned as a
``GateResult`` rather than raised: ``rejected`` results are hard stops, while
``confirm`` results may be bypassed by resubmitting with the check named in
``overrides``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Collection, Iterable, Mapping

from caresubmit.compliance import ComplianceValidator, verify_documents
from caresubmit.config import CLINICAL_JUSTIFICATION_MIN_CHARS, GAP_DISPLAY_LIMIT
from caresubmit.coverage import documentation_gaps, summarize_gaps
from caresubmit.licenses import license_issues
from caresubmit.models import DailyServiceRecord, DocumentRequirement, GateResult, License, ServiceLine
from caresubmit.service_lines import invalid_lines

LOGGER = logging.getLogger(__name__)

SOFT_CHECKS = frozenset({"license_issues", "documentation_gaps"})

Check = Callable[[], "GateResult | None"]


def _accepted() -> GateResult:
	return GateResult(outcome="accepted")


def _reject(check: str, message: str, issues: list[str] | None = None) -> GateResult:
	return GateResult(outcome="rejected", check=check, message=message, issues=issues or [])


def _run(checks: Iterable[Check], overrides: Collection[str]) -> GateResult:
	for check in checks:
		result = check()
		if result is None:
			continue
		if result.outcome == "confirm" and result.check in overrides:
			LOGGER.info("Submission proceeding past %s on user confirmation", result.check)
			continue
		LOGGER.warning("Submission blocked by %s: %s", result.check, result.message.splitlines()[0] if result.message else "")
		return result
	return _accepted()


def _missing_documents(documents: Iterable[DocumentRequirement]) -> GateResult | None:
	missing = [doc.name for doc in documents if doc.required and not doc.uploaded]
	if not missing:
		return None
	return _reject(
		"missing_documents",
		"Please upload all required documents before submitting:\n" + "\n".join(missing),
		missing,
	)


def claim_gate(
	documents: Iterable[DocumentRequirement],
	lines: list[ServiceLine],
	licenses: list[License],
	daily_records: list[DailyServiceRecord],
	*,
	today: date,
	overrides: Collection[str] = (),
) -> GateResult:
	"""Run the claim checks: documents, service lines, licenses, documentation coverage."""

	documents = list(documents)

	def service_lines() -> GateResult | None:
		if not lines:
			return _reject("no_service_lines", "Please add at least one service line before submitting.")
		bad = invalid_lines(lines)
		if bad:
			return _reject(
				"invalid_service_lines",
				"Please complete all service line details before submitting.",
				[line.id for line in bad],
			)
		return None

	def licensing() -> GateResult | None:
		issues = license_issues(lines, licenses, today)
		if not issues:
			return None
		return GateResult(
			outcome="confirm",
			check="license_issues",
			message="License issues detected for the following providers:\n"
			+ "\n".join(issues)
			+ "\n\nDo you want to proceed with the claim submission anyway?",
			issues=issues,
		)

	def coverage() -> GateResult | None:
		gaps = documentation_gaps(lines, daily_records)
		if not gaps:
			return None
		return GateResult(
			outcome="confirm",
			check="documentation_gaps",
			message="Documentation gaps detected for the following dates:\n"
			+ summarize_gaps(gaps, GAP_DISPLAY_LIMIT)
			+ "\n\nDo you want to proceed with the claim submission anyway?",
			issues=gaps,
		)

	return _run(
		[lambda: _missing_documents(documents), service_lines, licensing, coverage],
		overrides,
	)


def authorization_gate(
	documents: Iterable[DocumentRequirement],
	values: Mapping[str, Any],
	signatures: Mapping[str, str | None],
	*,
	overrides: Collection[str] = (),
) -> GateResult:
	"""Run the prior-authorization checks in order."""

	documents = list(documents)

	def doh() -> GateResult | None:
		result = verify_documents(documents)
		if result.is_compliant:
			return None
		return _reject(
			"doh_compliance",
			"Some documents do not meet DOH compliance requirements:\n" + "\n".join(result.issues),
			result.issues,
		)

	def signed() -> GateResult | None:
		missing = [name for name in ("patient_signature", "provider_signature") if not signatures.get(name)]
		if not missing:
			return None
		return _reject(
			"missing_signatures",
			"Both patient and provider signatures are required for DOH compliance.",
			missing,
		)

	def justification() -> GateResult | None:
		text = str(values.get("clinical_justification") or "").strip()
		if len(text) >= CLINICAL_JUSTIFICATION_MIN_CHARS:
			return None
		return _reject(
			"clinical_justification",
			f"Clinical justification must be at least {CLINICAL_JUSTIFICATION_MIN_CHARS} characters for DOH compliance.",
		)

	def services() -> GateResult | None:
		if list(values.get("requested_services") or []):
			return None
		return _reject("requested_services", "Please select at least one requested service.")

	return _run([lambda: _missing_documents(documents), doh, signed, justification, services], overrides)


def assessment_gate(
	progress: int,
	values: Mapping[str, Any],
	validator: ComplianceValidator,
) -> GateResult:
	"""Assessment forms need full completion and a compliant validator result."""

	def complete() -> GateResult | None:
		if progress >= 100:
			return None
		return _reject("incomplete_form", "Please complete all required fields before submitting.")

	def doh() -> GateResult | None:
		result = validator(values)
		if result.is_compliant:
			return None
		return _reject(
			"doh_compliance",
			"DOH compliance issues found:\n" + "\n".join(result.issues),
			result.issues,
		)

	return _run([complete, doh], ())
