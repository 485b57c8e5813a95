from __future__ import annotations

from datetime import date

import pytest

from caresubmit.fixtures import claim_history
from caresubmit.ledger import HistoryLedger
from caresubmit.models import SubmissionRecord


def _identity(ledger: HistoryLedger) -> dict[str, tuple]:
	return {
		entry.id: (entry.reference_number, entry.submission_date, entry.amount)
		for entry in ledger.entries
	}


@pytest.fixture()
def ledger() -> HistoryLedger:
	return HistoryLedger(claim_history())


def test_add_prepends_without_touching_existing(ledger: HistoryLedger) -> None:
	before = _identity(ledger)
	record = SubmissionRecord(
		id="claim-004", reference_number="DAMAN-CL-2024-00999", submission_date="2024-03-01", status="in-review", amount=500.0
	)
	ledger.add(record)
	assert ledger.entries[0] == record
	after = _identity(ledger)
	assert {key: after[key] for key in before} == before


def test_duplicate_reference_rejected(ledger: HistoryLedger) -> None:
	duplicate = SubmissionRecord(id="x", reference_number="DAMAN-CL-2023-12345", submission_date="2024-01-01", status="pending")
	with pytest.raises(ValueError):
		ledger.add(duplicate)


def test_find_by_reference_or_id(ledger: HistoryLedger) -> None:
	assert ledger.find("claim-002").reference_number == "DAMAN-CL-2024-00123"
	assert ledger.find("DAMAN-CL-2024-00123").id == "claim-002"
	with pytest.raises(KeyError):
		ledger.find("DAMAN-CL-1999-00000")


def test_identity_fields_cannot_change(ledger: HistoryLedger) -> None:
	with pytest.raises(ValueError):
		ledger.replace("claim-003", amount=1.0)


def test_records_are_frozen(ledger: HistoryLedger) -> None:
	with pytest.raises(Exception):
		ledger.entries[0].status = "paid"  # type: ignore[misc]


def test_full_payment_reconciles(ledger: HistoryLedger) -> None:
	before = _identity(ledger)
	payment = ledger.record_payment("DAMAN-CL-2024-00456", 11100.0, "PAY-2024-55555", payment_date=date(2024, 3, 1))
	assert payment.status == "reconciled"
	assert payment.variance == 0
	record = ledger.find("claim-003")
	assert record.status == "paid"
	assert record.paid_amount == pytest.approx(11100.0)
	assert record.payment_date == "2024-03-01"
	assert _identity(ledger) == before


def test_short_payment_is_partial(ledger: HistoryLedger) -> None:
	payment = ledger.record_payment("claim-003", 10000.0, "PAY-1", payment_date=date(2024, 3, 1))
	assert payment.status == "unreconciled"
	assert payment.variance == pytest.approx(-1100.0)
	assert ledger.find("claim-003").status == "partial"


@pytest.mark.parametrize(("amount", "reference"), [(0.0, "PAY-1"), (-5.0, "PAY-1"), (100.0, "  ")])
def test_payment_validation(ledger: HistoryLedger, amount: float, reference: str) -> None:
	with pytest.raises(ValueError):
		ledger.record_payment("claim-003", amount, reference, payment_date=date(2024, 3, 1))


def test_denial_and_appeal(ledger: HistoryLedger) -> None:
	denial = ledger.record_denial("claim-003", "Missing service logs", "CO-16", denial_date=date(2024, 3, 1))
	assert denial.appeal_deadline == "2024-03-31"
	record = ledger.find("claim-003")
	assert record.status == "rejected"
	assert record.comments == "Missing service logs"

	with pytest.raises(ValueError):
		ledger.submit_appeal(denial.id, "   ", submitted_on=date(2024, 3, 5))

	appealed = ledger.submit_appeal(
		denial.id, "Service logs attached", supporting_documents=["logs.pdf"], submitted_on=date(2024, 3, 5)
	)
	assert appealed.appeal_status == "submitted"
	assert appealed.appeal_submission_date == "2024-03-05"
	assert appealed.supporting_documents == ["logs.pdf"]
	assert ledger.find_denial(denial.id) == appealed


def test_denial_requires_reason_and_code(ledger: HistoryLedger) -> None:
	with pytest.raises(ValueError):
		ledger.record_denial("claim-003", "", "CO-16", denial_date=date(2024, 3, 1))
	with pytest.raises(ValueError):
		ledger.record_denial("claim-003", "Reason", "", denial_date=date(2024, 3, 1))


def test_apply_tracking_updates_or_inserts(ledger: HistoryLedger) -> None:
	updated = ledger.apply_tracking(
		{"reference_number": "DAMAN-CL-2024-00456", "status": "returned", "comments": "Missing logs", "reviewer": "Team A"}
	)
	assert updated.status == "returned"
	assert updated.id == "claim-003"

	inserted = ledger.apply_tracking(
		{"id": "track-1", "reference_number": "DAMAN-CL-2024-77777", "status": "in-review", "submission_date": "2024-03-01"}
	)
	assert ledger.entries[0] == inserted
	assert len(ledger) == 4


def test_revenue_summary(ledger: HistoryLedger) -> None:
	summary = ledger.revenue_summary()
	assert summary["total_claimed"] == pytest.approx(33150.0)
	assert summary["total_paid"] == pytest.approx(20970.0)
	assert summary["outstanding"] == pytest.approx(11100.0)
	assert summary["collection_rate"] == pytest.approx(63.3)
	assert summary["status_counts"] == {"paid": 1, "partial": 1, "in-review": 1}
