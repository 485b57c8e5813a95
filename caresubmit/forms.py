"""Form sessions for claims, prior authorizations and assessments.

A form owns its checklist, values, history ledger and offline queue. Fixture
factories, the clock, the random source and the payer gateway are injected
so a form can be reset to exactly its initial state and driven
deterministically in tests.
"""

from __future__ import annotations

import logging
import random
from datetime import date, datetime
from typing import Any, Callable, Iterable

from caresubmit import fixtures
from caresubmit.checklist import DocumentChecklist
from caresubmit.compliance import ComplianceValidator, file_is_compliant, required_fields_validator
from caresubmit.config import (
    DOH_COMPLIANCE_VERSION,
    FACILITY_ADDRESS,
    FACILITY_LICENSE,
    FACILITY_NAME,
    OFFLINE_BY_DEFAULT,
    PLATFORM_NAME,
)
from caresubmit.gate import assessment_gate, authorization_gate, claim_gate
from caresubmit.gateway import (
    Clock,
    GatewayError,
    MockGateway,
    OfflineQueue,
    SubmissionGateway,
    is_offline_id,
    is_offline_reference,
    offline_reference,
    utcnow,
)
from caresubmit.ledger import HistoryLedger
from caresubmit.licenses import is_expiring_soon, upsert_license
from caresubmit.models import (
    DailyServiceRecord,
    DocumentRequirement,
    FileMeta,
    FormKind,
    GateResult,
    License,
    ServiceLine,
    SubmissionRecord,
    SubmitOutcome,
)
from caresubmit.progress import field_progress
from caresubmit.redaction import redact_fields
from caresubmit.service_lines import ServiceLineBook

LOGGER = logging.getLogger(__name__)

NOTIFICATION_PREFERENCES = {"email": True, "sms": True, "in_app": True}
ADDITIONAL_DOCUMENTS = "additional_documents"


def _facility() -> dict[str, str]:
    return {"name": FACILITY_NAME, "license": FACILITY_LICENSE, "address": FACILITY_ADDRESS}


def _metadata(now: datetime) -> dict[str, str]:
    return {
        "platform": PLATFORM_NAME,
        "doh_compliance_version": DOH_COMPLIANCE_VERSION,
        "prepared_at": now.isoformat(),
    }


class _BaseForm:
    kind: FormKind
    free_text_fields: tuple[str, ...] = ()

    def __init__(
        self,
        *,
        defaults: Callable[[], dict[str, Any]],
        history: Callable[[], list[SubmissionRecord]] = list,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
        offline: bool | None = None,
    ) -> None:
        self._defaults = defaults
        self._clock = clock
        self._rng = rng or random.Random()
        self.offline = OFFLINE_BY_DEFAULT if offline is None else offline
        self.values: dict[str, Any] = defaults()
        self.ledger = HistoryLedger(history())
        self.success = False

    @property
    def progress(self) -> int:
        raise NotImplementedError

    @property
    def can_submit(self) -> bool:
        return self.progress == 100

    def update_values(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(changes) - set(self.values))
        if unknown:
            raise ValueError(f"Unknown form fields: {', '.join(unknown)}")
        self.values.update(changes)
        return dict(self.values)

    def reset(self) -> None:
        self.values = self._defaults()
        self.success = False

    def snapshot(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "progress": self.progress,
            "can_submit": self.can_submit,
            "values": dict(self.values),
            "success": self.success,
            "offline": self.offline,
            "history_count": len(self.ledger),
        }

    def _now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def _local_id(self, prefix: str, now: datetime) -> str:
        """Timestamped id with a random suffix, unique within this form's ledger."""

        while True:
            candidate = f"{prefix}-{int(now.timestamp() * 1000)}-{self._rng.randrange(16 ** 4):04x}"
            if not self.ledger.contains(candidate):
                return candidate


class DocumentForm(_BaseForm):
    """Shared behavior of forms that carry a document checklist and talk to the payer."""

    def __init__(
        self,
        *,
        documents: Callable[[], list[DocumentRequirement]],
        gateway: SubmissionGateway | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.checklist = DocumentChecklist(documents)
        self.gateway: SubmissionGateway = gateway or MockGateway(
            rng=self._rng,
            clock=self._clock,
            reserved=[entry.reference_number for entry in self.ledger.entries],
        )
        self.queue = OfflineQueue()
        self._payloads: dict[str, dict[str, Any]] = {}

    @property
    def progress(self) -> int:
        return self.checklist.progress()

    def upload_document(
        self,
        document_id: str,
        filename: str,
        size: int,
        content_type: str | None = None,
        uploaded_by: str = "Current User",
    ) -> DocumentRequirement:
        return self.checklist.mark_uploaded(
            document_id,
            filename=filename,
            size=size,
            content_type=content_type,
            uploaded_by=uploaded_by,
            when=self._now(),
        )

    def reset(self) -> None:
        super().reset()
        self.checklist.reset()

    def snapshot(self) -> dict[str, Any]:
        data = super().snapshot()
        data["documents"] = [doc.model_dump(mode="json") for doc in self.checklist.documents]
        data["queued"] = len(self.queue)
        return data

    def _gate(self, overrides: Iterable[str]) -> GateResult:
        raise NotImplementedError

    def _payload(self) -> dict[str, Any]:
        raise NotImplementedError

    def _send(self, payload: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def _amount(self) -> float | None:
        return None

    def _after_send(self, record: SubmissionRecord) -> None:
        """Hook for follow-up calls once the payer accepted a submission."""

    def submit(self, overrides: Iterable[str] = (), offline: bool | None = None) -> SubmitOutcome:
        """Run the gate and, when it passes, send or queue the submission.

        Gateway failures propagate as ``GatewayError`` and leave the ledger untouched.
        """

        gate = self._gate(list(overrides))
        if not gate.accepted:
            return SubmitOutcome(gate=gate, message=gate.message)

        now = self._now()
        payload = self._payload()
        use_offline = self.offline if offline is None else offline
        if use_offline:
            reference = offline_reference(self._rng)
            record = SubmissionRecord(
                id=self._local_id("offline", now),
                reference_number=reference,
                submission_date=now.date().isoformat(),
                status="pending",
                amount=self._amount(),
                comments="Queued for submission when back online",
            )
            self.queue.enqueue(self.kind, reference, payload, queued_at=now)
            message = f"Submission saved offline as {reference} and will be sent when connectivity returns."
        else:
            response = self._send(payload)
            record = SubmissionRecord(
                id=str(response["id"]),
                reference_number=str(response["reference_number"]),
                submission_date=now.date().isoformat(),
                status=response.get("status", "in-review"),
                amount=self._amount(),
                comments=response.get("message"),
                reviewer=response.get("reviewer"),
            )
            message = f"Submitted successfully. Reference number: {record.reference_number}"

        if self.ledger.contains(record.reference_number):
            LOGGER.error(
                "Payer issued reference %s that is already in the history; keeping the existing entry",
                record.reference_number,
            )
            message += " (reference already present in local history)"
        else:
            self.ledger.add(record)
            self._payloads[record.reference_number] = payload
        if not use_offline:
            self._after_send(record)
        self.success = True
        LOGGER.info("%s %s submitted (%s)", self.kind, record.reference_number, record.status)
        return SubmitOutcome(gate=gate, record=record, payload=payload, queued=use_offline, message=message)

    def track(self, reference_number: str) -> SubmissionRecord:
        """Refresh a submission's status; offline references are only known locally."""

        if is_offline_reference(reference_number):
            return self.ledger.find(reference_number)
        response = self.gateway.track(reference_number)
        return self.ledger.apply_tracking(response)

    def sync_offline(self) -> dict[str, Any]:
        """Send queued submissions and additional documents in order.

        Each synchronized ledger entry moves to ``in-review``.
        """

        synced: list[str] = []

        def send(item: dict[str, Any]) -> dict[str, Any]:
            if item["kind"] == ADDITIONAL_DOCUMENTS:
                payload = item["payload"]
                return self.gateway.upload_additional_documents(payload["submission_id"], payload["files"])
            return self._send(item["payload"])

        try:
            for item, response in self.queue.drain(send):
                if item["kind"] == ADDITIONAL_DOCUMENTS:
                    self.ledger.update_status(
                        item["reference_number"],
                        "in-review",
                        comments=response.get("message"),
                        review_date=self.today().isoformat(),
                    )
                else:
                    self.ledger.update_status(
                        item["reference_number"],
                        "in-review",
                        comments=f"Synchronized with payer as {response['reference_number']}. {response.get('message', '')}".strip(),
                        reviewer=response.get("reviewer"),
                    )
                synced.append(item["reference_number"])
        except GatewayError as exc:
            LOGGER.exception("Offline sync stopped after %d item(s)", len(synced))
            return {"synced": synced, "remaining": len(self.queue), "error": str(exc)}
        return {"synced": synced, "remaining": len(self.queue), "error": None}

    def upload_additional_documents(self, submission_id: str, files: list[FileMeta]) -> dict[str, Any]:
        """Attach files requested by the payer to an ``additional-info`` submission."""

        record = self.ledger.find(submission_id)
        if record.status != "additional-info":
            raise ValueError(f"Submission '{submission_id}' is not awaiting additional information")

        accepted = [meta for meta in files if file_is_compliant(meta)]
        skipped = [meta.filename for meta in files if not file_is_compliant(meta)]
        if not accepted:
            raise ValueError("No valid files to upload")

        now = self._now()
        if self.offline or is_offline_id(record.id):
            self.queue.enqueue(
                ADDITIONAL_DOCUMENTS,
                record.reference_number,
                {"submission_id": record.id, "files": [meta.model_dump(mode="json") for meta in accepted]},
                queued_at=now,
            )
            updated = self.ledger.update_status(
                record.reference_number,
                "pending",
                comments=f"{len(accepted)} additional document(s) queued for upload when back online",
                review_date=now.date().isoformat(),
            )
        else:
            response = self.gateway.upload_additional_documents(
                record.id, [meta.model_dump(mode="json") for meta in accepted]
            )
            updated = self.ledger.update_status(
                record.reference_number,
                "in-review",
                comments=response.get("message"),
                review_date=now.date().isoformat(),
            )
        return {"record": updated, "accepted": [meta.filename for meta in accepted], "skipped": skipped}

    def _resubmission_note_field(self) -> str:
        raise NotImplementedError

    def _prefill(self, previous: dict[str, Any]) -> None:
        """Restore form state from the payload of an earlier submission."""

        self.values.update({key: previous[key] for key in self.values if key in previous})
        self.checklist.annotate(previous.get("document_ids", []), "(Previously submitted)")

    def resubmit(self, submission_id: str) -> dict[str, Any]:
        """Reset the form and prefill it from a rejected submission."""

        record = self.ledger.find(submission_id)
        if record.status != "rejected":
            raise ValueError(f"Only rejected submissions can be resubmitted (status is {record.status})")
        if is_offline_id(record.id) or is_offline_reference(record.reference_number):
            raise ValueError("Offline submissions cannot be resubmitted until they are synchronized")

        self.reset()
        previous = self._payloads.get(record.reference_number)
        if previous:
            self._prefill(previous)
        note_field = self._resubmission_note_field()
        self.values[note_field] = (
            f"Resubmission of {record.reference_number}. Previous comments: {record.comments or 'None'}"
        )
        LOGGER.info("Form prepared for resubmission of %s", record.reference_number)
        return self.snapshot()


class ClaimForm(DocumentForm):
    """Monthly claim for homecare services delivered under an authorization."""

    kind: FormKind = "claim"
    free_text_fields = ("claim_notes",)

    def __init__(
        self,
        *,
        patient_id: str = "P12345",
        episode_id: str = "EP789",
        authorization_id: str = "AUTH-12345",
        documents: Callable[[], list[DocumentRequirement]] = fixtures.claim_documents,
        service_lines: Callable[[str], list[ServiceLine]] = fixtures.default_service_lines,
        licenses: Callable[[], list[License]] = fixtures.default_licenses,
        daily_records: Callable[[], list[DailyServiceRecord]] | None = None,
        history: Callable[[], list[SubmissionRecord]] = fixtures.claim_history,
        defaults: Callable[[], dict[str, Any]] = fixtures.claim_defaults,
        **kwargs: Any,
    ) -> None:
        super().__init__(documents=documents, history=history, defaults=defaults, **kwargs)
        self.patient_id = patient_id
        self.episode_id = episode_id
        self.authorization_id = authorization_id
        self.service_lines = ServiceLineBook(lambda: service_lines(authorization_id), authorization_id=authorization_id)
        self._licenses_factory = licenses
        if daily_records is None:
            generated = self._generated_daily_records()
            daily_records = lambda: list(generated)
        self._daily_records_factory = daily_records
        self.licenses: list[License] = licenses()
        self.daily_records: list[DailyServiceRecord] = self._daily_records_factory()

    def _generated_daily_records(self) -> list[DailyServiceRecord]:
        today = self.today()
        return fixtures.generate_daily_records(today.year, today.month, today=today, rng=self._rng)

    def add_license(self, license: License) -> License:
        self.licenses = upsert_license(self.licenses, license)
        return license

    def expiring_licenses(self) -> list[License]:
        today = self.today()
        return [item for item in self.licenses if is_expiring_soon(item, today)]

    def set_daily_records(self, records: Iterable[DailyServiceRecord]) -> None:
        self.daily_records = list(records)

    def reset(self) -> None:
        super().reset()
        self.service_lines.reset()
        self.licenses = self._licenses_factory()
        self.daily_records = self._daily_records_factory()

    def snapshot(self) -> dict[str, Any]:
        data = super().snapshot()
        data["service_lines"] = [line.model_dump(mode="json") for line in self.service_lines.lines]
        data["total_amount"] = self.service_lines.total()
        data["authorization_id"] = self.authorization_id
        return data

    def _gate(self, overrides: Iterable[str]) -> GateResult:
        return claim_gate(
            self.checklist.documents,
            self.service_lines.lines,
            self.licenses,
            self.daily_records,
            today=self.today(),
            overrides=list(overrides),
        )

    def _amount(self) -> float | None:
        return self.service_lines.total()

    def _payload(self) -> dict[str, Any]:
        now = self._now()
        values = redact_fields(self.values, self.free_text_fields)
        uploaded = self.checklist.uploaded()
        return {
            "patient_id": self.patient_id,
            "episode_id": self.episode_id,
            "authorization_id": self.authorization_id,
            **values,
            "service_lines": [line.model_dump(mode="json") for line in self.service_lines.lines],
            "total_amount": self.service_lines.total(),
            "document_ids": [doc.id for doc in uploaded],
            "documents": [doc.name for doc in uploaded],
            "submission_date": now.isoformat(),
            "facility": _facility(),
            "metadata": _metadata(now),
        }

    def _send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.gateway.submit_claim(payload)

    def _resubmission_note_field(self) -> str:
        return "claim_notes"

    def _prefill(self, previous: dict[str, Any]) -> None:
        super()._prefill(previous)
        lines = previous.get("service_lines")
        if lines:
            self.service_lines.replace_all(
                ServiceLine.model_validate({key: value for key, value in line.items() if key != "total_amount"})
                for line in lines
            )


class PriorAuthorizationForm(DocumentForm):
    """Daman prior-authorization request with signatures and clinical justification."""

    kind: FormKind = "prior_authorization"
    free_text_fields = ("clinical_justification", "additional_notes")

    def __init__(
        self,
        *,
        patient_id: str = "P12345",
        episode_id: str = "EP789",
        documents: Callable[[], list[DocumentRequirement]] = fixtures.authorization_documents,
        history: Callable[[], list[SubmissionRecord]] = fixtures.authorization_history,
        defaults: Callable[[], dict[str, Any]] = fixtures.authorization_defaults,
        **kwargs: Any,
    ) -> None:
        super().__init__(documents=documents, history=history, defaults=defaults, **kwargs)
        self.patient_id = patient_id
        self.episode_id = episode_id
        self.signatures: dict[str, str | None] = {"patient_signature": None, "provider_signature": None}

    def sign(self, *, patient_signature: str | None = None, provider_signature: str | None = None) -> dict[str, str | None]:
        if patient_signature is not None:
            self.signatures["patient_signature"] = patient_signature
        if provider_signature is not None:
            self.signatures["provider_signature"] = provider_signature
        return dict(self.signatures)

    def reset(self) -> None:
        super().reset()
        self.signatures = {"patient_signature": None, "provider_signature": None}

    def snapshot(self) -> dict[str, Any]:
        data = super().snapshot()
        data["signatures"] = {name: bool(value) for name, value in self.signatures.items()}
        return data

    def _gate(self, overrides: Iterable[str]) -> GateResult:
        return authorization_gate(self.checklist.documents, self.values, self.signatures, overrides=list(overrides))

    def _payload(self) -> dict[str, Any]:
        now = self._now()
        values = redact_fields(self.values, self.free_text_fields)
        uploaded = self.checklist.uploaded()
        return {
            "patient_id": self.patient_id,
            "episode_id": self.episode_id,
            **values,
            "document_ids": [doc.id for doc in uploaded],
            "documents": [doc.name for doc in uploaded],
            "signatures": {
                "patient": {"signed": True, "signed_at": now.isoformat()},
                "provider": {"signed": True, "signed_at": now.isoformat()},
            },
            "submission_date": now.isoformat(),
            "facility": _facility(),
            "metadata": _metadata(now),
        }

    def _send(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.gateway.submit_authorization(payload)

    def _after_send(self, record: SubmissionRecord) -> None:
        try:
            self.gateway.register_notifications(record.id, record.reference_number, NOTIFICATION_PREFERENCES)
        except GatewayError:
            LOGGER.exception("Notification registration failed for %s", record.reference_number)

    def _resubmission_note_field(self) -> str:
        return "additional_notes"


class AssessmentForm(_BaseForm):
    """Field-driven assessment (emergency preparedness or quality assurance)."""

    _REFERENCE_PREFIX = {"emergency_preparedness": "EPF", "quality_assurance": "QAF"}

    def __init__(
        self,
        kind: FormKind,
        *,
        required_fields: Iterable[str],
        selection_groups: Iterable[str] = (),
        defaults: Callable[[], dict[str, Any]],
        validator: ComplianceValidator | None = None,
        patient_id: str = "P12345",
        episode_id: str = "EP789",
        **kwargs: Any,
    ) -> None:
        if kind not in self._REFERENCE_PREFIX:
            raise ValueError(f"'{kind}' is not an assessment form")
        super().__init__(defaults=defaults, **kwargs)
        self.kind = kind
        self.patient_id = patient_id
        self.episode_id = episode_id
        self.required_fields = tuple(required_fields)
        self.selection_groups = tuple(selection_groups)
        self.validator = validator or required_fields_validator(self.required_fields)
        self.selections: dict[str, list[str]] = {group: [] for group in self.selection_groups}

    @property
    def progress(self) -> int:
        return field_progress(self.values, self.required_fields, self.selections, self.selection_groups)

    def toggle_selection(self, group: str, item: str) -> list[str]:
        """Add ``item`` to a selection group, or remove it if already selected."""

        if group not in self.selections:
            raise KeyError(f"Unknown selection group '{group}'")
        chosen = self.selections[group]
        if item in chosen:
            chosen.remove(item)
        else:
            chosen.append(item)
        return list(chosen)

    def reset(self) -> None:
        super().reset()
        self.selections = {group: [] for group in self.selection_groups}

    def snapshot(self) -> dict[str, Any]:
        data = super().snapshot()
        data["selections"] = {group: list(items) for group, items in self.selections.items()}
        data["required_fields"] = list(self.required_fields)
        return data

    def submit(self, overrides: Iterable[str] = (), offline: bool | None = None) -> SubmitOutcome:
        gate = assessment_gate(self.progress, self.values, self.validator)
        if not gate.accepted:
            return SubmitOutcome(gate=gate, message=gate.message)

        now = self._now()
        reference = f"{self._REFERENCE_PREFIX[self.kind]}-{now:%Y%m%d}-{self._rng.randrange(16 ** 4):04X}"
        payload = {
            "patient_id": self.patient_id,
            "episode_id": self.episode_id,
            **self.values,
            **{group: list(items) for group, items in self.selections.items()},
            "assessment_date": now.isoformat(),
            "facility": _facility(),
            "metadata": _metadata(now),
        }
        record = SubmissionRecord(
            id=self._local_id(self.kind, now),
            reference_number=reference,
            submission_date=now.date().isoformat(),
            status="pending",
            comments="Assessment recorded",
        )
        self.ledger.add(record)
        self.success = True
        LOGGER.info("%s %s recorded", self.kind, reference)
        return SubmitOutcome(gate=gate, record=record, payload=payload, message=f"Assessment saved as {reference}")


def build_form(
    kind: FormKind,
    *,
    patient_id: str = "P12345",
    episode_id: str = "EP789",
    authorization_id: str = "AUTH-12345",
    offline: bool | None = None,
    clock: Clock = utcnow,
    rng: random.Random | None = None,
    gateway: SubmissionGateway | None = None,
) -> _BaseForm:
    """Create a form of the requested kind seeded from the default fixtures."""

    common: dict[str, Any] = {"clock": clock, "rng": rng, "offline": offline}
    if kind == "claim":
        return ClaimForm(
            patient_id=patient_id,
            episode_id=episode_id,
            authorization_id=authorization_id,
            gateway=gateway,
            **common,
        )
    if kind == "prior_authorization":
        return PriorAuthorizationForm(patient_id=patient_id, episode_id=episode_id, gateway=gateway, **common)
    if kind == "emergency_preparedness":
        return AssessmentForm(
            kind,
            required_fields=fixtures.EMERGENCY_REQUIRED_FIELDS,
            selection_groups=fixtures.EMERGENCY_SELECTION_GROUPS,
            defaults=fixtures.emergency_defaults,
            patient_id=patient_id,
            episode_id=episode_id,
            **common,
        )
    if kind == "quality_assurance":
        return AssessmentForm(
            kind,
            required_fields=fixtures.QUALITY_REQUIRED_FIELDS,
            selection_groups=fixtures.QUALITY_SELECTION_GROUPS,
            defaults=fixtures.quality_defaults,
            patient_id=patient_id,
            episode_id=episode_id,
            **common,
        )
    raise ValueError(f"Unknown form kind '{kind}'")
