"""In-memory submission history with payment, denial and appeal tracking.

Entries are frozen ``SubmissionRecord`` objects. Every transition replaces an
entry with an updated copy and only ever touches the mutable fields, so the
identity of a submission (id, reference number, submission date, amount)
never changes once it is in the ledger.
"""

from __future__ import annotations

import logging
import secrets
from datetime import date, timedelta
from typing import Any, Iterable

from caresubmit.models import DenialRecord, PaymentRecord, SubmissionRecord, SubmissionStatus
from caresubmit.redaction import redact_text

LOGGER = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset(
    {
        "status",
        "comments",
        "reviewer",
        "review_date",
        "paid_amount",
        "payment_date",
        "payment_reference",
    }
)

# Statuses whose amount is still owed by the payer.
_OUTSTANDING = {"pending", "in-review", "approved", "additional-info", "returned"}
_APPEAL_WINDOW_DAYS = 30


class HistoryLedger:
    """Newest-first list of submissions owned by one form session."""

    def __init__(self, seed: Iterable[SubmissionRecord] = ()) -> None:
        self._entries: list[SubmissionRecord] = list(seed)
        self._payments: list[PaymentRecord] = []
        self._denials: list[DenialRecord] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[SubmissionRecord]:
        return list(self._entries)

    @property
    def payments(self) -> list[PaymentRecord]:
        return list(self._payments)

    @property
    def denials(self) -> list[DenialRecord]:
        return list(self._denials)

    def add(self, record: SubmissionRecord) -> SubmissionRecord:
        if any(entry.reference_number == record.reference_number for entry in self._entries):
            raise ValueError(f"Reference number '{record.reference_number}' is already in the history")
        self._entries.insert(0, record)
        LOGGER.info("Added %s to history with status %s", record.reference_number, record.status)
        return record

    def find(self, key: str) -> SubmissionRecord:
        """Locate an entry by reference number or id."""

        for entry in self._entries:
            if key in (entry.reference_number, entry.id):
                return entry
        raise KeyError(f"No submission with reference or id '{key}'")

    def contains(self, key: str) -> bool:
        return any(key in (entry.reference_number, entry.id) for entry in self._entries)

    def replace(self, key: str, **changes: Any) -> SubmissionRecord:
        """Swap the matching entry for a copy with the given mutable fields changed."""

        frozen = set(changes) - MUTABLE_FIELDS
        if frozen:
            raise ValueError(f"Cannot change identity fields: {', '.join(sorted(frozen))}")
        current = self.find(key)
        updated = SubmissionRecord.model_validate({**current.model_dump(), **changes})
        self._entries = [updated if entry is current else entry for entry in self._entries]
        if "status" in changes and changes["status"] != current.status:
            LOGGER.info("Submission %s moved %s -> %s", current.reference_number, current.status, updated.status)
        return updated

    def update_status(
        self,
        key: str,
        status: SubmissionStatus,
        *,
        comments: str | None = None,
        reviewer: str | None = None,
        review_date: str | None = None,
    ) -> SubmissionRecord:
        changes: dict[str, Any] = {"status": status}
        if comments is not None:
            changes["comments"] = redact_text(comments)
        if reviewer is not None:
            changes["reviewer"] = reviewer
        if review_date is not None:
            changes["review_date"] = review_date
        return self.replace(key, **changes)

    def apply_tracking(self, response: dict[str, Any]) -> SubmissionRecord:
        """Fold a payer tracking response into the ledger, inserting unknown references."""

        reference = str(response["reference_number"])
        comments = response.get("comments")
        if self.contains(reference):
            return self.update_status(
                reference,
                response["status"],
                comments=comments,
                reviewer=response.get("reviewer"),
                review_date=response.get("review_date"),
            )
        record = SubmissionRecord(
            id=str(response.get("id") or f"track-{secrets.token_hex(4)}"),
            reference_number=reference,
            submission_date=str(response.get("submission_date") or response.get("review_date") or ""),
            status=response["status"],
            comments=redact_text(comments) if comments else None,
            reviewer=response.get("reviewer"),
            review_date=response.get("review_date"),
        )
        return self.add(record)

    def record_payment(
        self,
        claim_number: str,
        payment_amount: float,
        payment_reference: str,
        *,
        payment_method: str = "Bank Transfer",
        payment_date: date,
        variance_reason: str | None = None,
    ) -> PaymentRecord:
        """Register a payment and mark the claim ``paid`` or ``partial``."""

        if payment_amount <= 0:
            raise ValueError("Payment amount must be greater than zero")
        if not payment_reference.strip():
            raise ValueError("Payment reference is required")

        claim = self.find(claim_number)
        expected = claim.amount or 0.0
        variance = round(payment_amount - expected, 2)
        payment = PaymentRecord(
            id=f"payment-{secrets.token_hex(4)}",
            claim_id=claim.id,
            claim_number=claim.reference_number,
            payment_date=payment_date.isoformat(),
            payment_amount=payment_amount,
            payment_method=payment_method,
            payment_reference=payment_reference.strip(),
            expected_amount=expected,
            variance=variance,
            variance_reason=variance_reason,
            status="reconciled" if variance == 0 else "unreconciled",
        )
        self._payments.append(payment)
        self.replace(
            claim.reference_number,
            status="paid" if payment_amount >= expected else "partial",
            paid_amount=payment_amount,
            payment_date=payment.payment_date,
            payment_reference=payment.payment_reference,
        )
        return payment

    def record_denial(
        self,
        claim_number: str,
        denial_reason: str,
        denial_code: str,
        *,
        denial_date: date,
        appeal_deadline: date | None = None,
    ) -> DenialRecord:
        """Register a payer denial; the claim becomes ``rejected``."""

        if not denial_reason.strip() or not denial_code.strip():
            raise ValueError("Denial reason and code are required")

        claim = self.find(claim_number)
        deadline = appeal_deadline or denial_date + timedelta(days=_APPEAL_WINDOW_DAYS)
        denial = DenialRecord(
            id=f"denial-{secrets.token_hex(4)}",
            claim_id=claim.id,
            claim_number=claim.reference_number,
            denial_date=denial_date.isoformat(),
            denial_reason=redact_text(denial_reason.strip()),
            denial_code=denial_code.strip(),
            appeal_deadline=deadline.isoformat(),
        )
        self._denials.append(denial)
        self.update_status(claim.reference_number, "rejected", comments=denial.denial_reason)
        return denial

    def find_denial(self, denial_id: str) -> DenialRecord:
        for denial in self._denials:
            if denial.id == denial_id:
                return denial
        raise KeyError(f"No denial with id '{denial_id}'")

    def submit_appeal(
        self,
        denial_id: str,
        notes: str,
        *,
        supporting_documents: Iterable[str] = (),
        submitted_on: date,
    ) -> DenialRecord:
        if not notes.strip():
            raise ValueError("Appeal notes are required")
        denial = self.find_denial(denial_id)
        if denial.appeal_status == "submitted":
            raise ValueError(f"An appeal for denial '{denial_id}' was already submitted")
        updated = denial.model_copy(
            update={
                "appeal_status": "submitted",
                "appeal_submission_date": submitted_on.isoformat(),
                "supporting_documents": [*denial.supporting_documents, *supporting_documents],
                "notes": redact_text(notes.strip()),
            }
        )
        self._denials = [updated if item.id == denial_id else item for item in self._denials]
        LOGGER.info("Appeal submitted for %s (%s)", denial.claim_number, denial_id)
        return updated

    def revenue_summary(self) -> dict[str, Any]:
        """Aggregate billed, collected and outstanding amounts from the ledger."""

        billed = [entry for entry in self._entries if entry.amount is not None]
        total_claimed = sum(entry.amount or 0.0 for entry in billed)
        total_paid = sum(entry.paid_amount or 0.0 for entry in billed)
        outstanding = sum(entry.amount or 0.0 for entry in billed if entry.status in _OUTSTANDING)
        denied = sum(entry.amount or 0.0 for entry in billed if entry.status == "rejected")
        status_counts: dict[str, int] = {}
        for entry in self._entries:
            status_counts[entry.status] = status_counts.get(entry.status, 0) + 1

        return {
            "total_claimed": round(total_claimed, 2),
            "total_paid": round(total_paid, 2),
            "outstanding": round(outstanding, 2),
            "denied": round(denied, 2),
            "collection_rate": round(100 * total_paid / total_claimed, 1) if total_claimed else 0.0,
            "claim_count": len(billed),
            "status_counts": status_counts,
            "open_denials": sum(1 for denial in self._denials if denial.status == "active"),
        }
