"""Payer gateway seam and the local offline queue.

Submissions, tracking and additional-document uploads go through a
``SubmissionGateway``. ``MockGateway`` synthesizes payer responses locally and
is the default; a real client only has to implement the same methods.
"""

from __future__ import annotations

import logging
import random
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Iterator, Protocol

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class GatewayError(Exception):
	"""A failed call to the payer gateway."""

	def __init__(self, message: str, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code


def describe_gateway_error(exc: Exception, operation: str, *, online: bool = True) -> str:
	"""Turn a gateway failure into a message suitable for the person submitting."""

	LOGGER.error("Error during %s: %s", operation, exc)
	if not online:
		return "You are currently offline. Please try again when you have an internet connection."
	status = getattr(exc, "status_code", None)
	if status == 429:
		return "Too many requests. Please wait a moment and try again."
	if status is not None and status >= 500:
		return "The server is currently experiencing issues. Please try again later."
	if status in (401, 403):
		return "You are not authorized to perform this action. Please log in again."
	return str(exc) or "An unexpected error occurred. Please try again."


class SubmissionGateway(Protocol):
	def submit_claim(self, payload: dict[str, Any]) -> dict[str, Any]: ...

	def submit_authorization(self, payload: dict[str, Any]) -> dict[str, Any]: ...

	def track(self, reference_number: str) -> dict[str, Any]: ...

	def upload_additional_documents(self, submission_id: str, files: list[dict[str, Any]]) -> dict[str, Any]: ...

	def register_notifications(self, submission_id: str, reference_number: str, preferences: dict[str, Any]) -> None: ...


_CLAIM_TRACKING = {
	"returned": "Returned for missing service logs. Please resubmit with complete documentation.",
	"in_review": "Under financial review by claims department",
	"reviewer": "Daman Claims Department",
	"stage": "Financial Review",
	"team": "Claims Processing Team",
}
_AUTHORIZATION_TRACKING = {
	"returned": "Returned for additional clinical information. Please provide updated assessment and justification.",
	"in_review": "Under clinical review by medical team",
	"reviewer": "Daman Medical Review",
	"stage": "Clinical Review",
	"team": "Medical Review Team",
}


class MockGateway:
	"""Synthesizes payer responses without any network traffic."""

	def __init__(
		self,
		*,
		rng: random.Random | None = None,
		clock: Clock = utcnow,
		reserved: Iterable[str] = (),
	) -> None:
		self._rng = rng or random.Random()
		self._clock = clock
		self._issued: set[str] = set(reserved)
		self.registrations: list[dict[str, Any]] = []

	def _reference(self, prefix: str) -> str:
		"""Issue a reference number that was neither issued before nor reserved."""

		while True:
			reference = f"{prefix}-{self._clock().year}-{self._rng.randrange(100000):05d}"
			if reference not in self._issued:
				self._issued.add(reference)
				return reference

	def _id(self, prefix: str) -> str:
		return f"{prefix}-{int(self._clock().timestamp() * 1000)}-{self._rng.randrange(1000):03d}"

	def submit_claim(self, payload: dict[str, Any]) -> dict[str, Any]:
		now = self._clock()
		return {
			"id": self._id("claim"),
			"reference_number": self._reference("DAMAN-CL"),
			"status": "in-review",
			"message": "Claim received and under initial review",
			"reviewer": "Daman Claims Department",
			"submission_date": now.isoformat(),
			"estimated_completion": (now + timedelta(days=7)).isoformat(),
			"amount": payload.get("total_amount"),
		}

	def submit_authorization(self, payload: dict[str, Any]) -> dict[str, Any]:
		now = self._clock()
		return {
			"id": self._id("auth"),
			"reference_number": self._reference("DAMAN-PA"),
			"status": "in-review",
			"message": "Submission received and under initial review",
			"reviewer": "Pending Assignment",
			"submission_date": now.isoformat(),
			"estimated_completion": (now + timedelta(days=5)).isoformat(),
		}

	def track(self, reference_number: str) -> dict[str, Any]:
		now = self._clock()
		returned = self._rng.random() <= 0.5
		text = _AUTHORIZATION_TRACKING if reference_number.startswith("DAMAN-PA-") else _CLAIM_TRACKING
		return {
			"id": self._id("track"),
			"reference_number": reference_number,
			"status": "returned" if returned else "in-review",
			"comments": text["returned"] if returned else text["in_review"],
			"reviewer": text["reviewer"],
			"review_date": now.isoformat(),
			"submission_date": (now - timedelta(days=1)).isoformat(),
			"tracking": {
				"processing_stage": text["stage"],
				"assigned_reviewer": text["team"],
				"priority_level": "Standard",
				"estimated_decision_date": (now + timedelta(days=5)).isoformat(),
			},
		}

	def upload_additional_documents(self, submission_id: str, files: list[dict[str, Any]]) -> dict[str, Any]:
		now = self._clock()
		return {
			"submission_id": submission_id,
			"message": f"Additional documents received ({len(files)} file(s)), under review",
			"estimated_completion": (now + timedelta(days=5)).isoformat(),
		}

	def register_notifications(self, submission_id: str, reference_number: str, preferences: dict[str, Any]) -> None:
		self.registrations.append(
			{"submission_id": submission_id, "reference_number": reference_number, "preferences": dict(preferences)}
		)


def offline_reference(rng: random.Random | None = None) -> str:
	alphabet = string.ascii_uppercase + string.digits
	if rng is None:
		return "OFFLINE-" + "".join(secrets.choice(alphabet) for _ in range(8))
	return "OFFLINE-" + "".join(rng.choice(alphabet) for _ in range(8))


def is_offline_reference(reference_number: str) -> bool:
	return reference_number.startswith("OFFLINE-")


def is_offline_id(submission_id: str) -> bool:
	return submission_id.startswith("offline-")


class OfflineQueue:
	"""Payloads waiting for connectivity, in submission order."""

	def __init__(self) -> None:
		self._items: list[dict[str, Any]] = []

	def __len__(self) -> int:
		return len(self._items)

	def enqueue(self, kind: str, reference_number: str, payload: dict[str, Any], *, queued_at: datetime) -> None:
		self._items.append(
			{
				"kind": kind,
				"reference_number": reference_number,
				"payload": payload,
				"queued_at": queued_at.isoformat(),
			}
		)
		LOGGER.info("Queued %s %s for offline sync", kind, reference_number)

	def pending(self) -> list[dict[str, Any]]:
		return [dict(item) for item in self._items]

	def drain(self, send: Callable[[dict[str, Any]], dict[str, Any]]) -> Iterator[tuple[dict[str, Any], dict[str, Any]]]:
		"""Send queued items in order, yielding each with its response.

		An item leaves the queue only once it was sent, so a failure keeps it and
		everything after it queued.
		"""

		while self._items:
			item = self._items[0]
			response = send(item)
			self._items.pop(0)
			yield item, response
