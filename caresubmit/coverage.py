"""Per-day documentation coverage for claimed service date ranges."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator

from caresubmit.config import MAX_SERVICE_SPAN_DAYS
from caresubmit.models import DailyServiceRecord, ServiceLine


def parse_service_dates(value: str) -> tuple[date, date] | None:
	"""Parse ``YYYY-MM-DD`` or ``YYYY-MM-DD to YYYY-MM-DD``; return None when unparseable."""

	parts = [part.strip() for part in (value or "").split(" to ")]
	try:
		if len(parts) == 1 and parts[0]:
			single = date.fromisoformat(parts[0])
			return single, single
		if len(parts) == 2:
			start, end = date.fromisoformat(parts[0]), date.fromisoformat(parts[1])
			return (start, end) if start <= end else None
	except ValueError:
		return None
	return None


def span_days(value: str) -> int | None:
	"""Number of calendar days a service date covers, or None when unparseable."""

	span = parse_service_dates(value)
	if span is None:
		return None
	return (span[1] - span[0]).days + 1


def _days(start: date, end: date) -> Iterator[date]:
	current = start
	while current <= end:
		yield current
		current += timedelta(days=1)


def documentation_gaps(lines: Iterable[ServiceLine], records: Iterable[DailyServiceRecord]) -> list[str]:
	"""List ``<date> - <provider>`` for each claimed day without completed documentation."""

	documented = {
		(record.service_date, record.provider_id)
		for record in records
		if record.service_provided and record.documentation_complete
	}
	gaps: list[str] = []
	for line in lines:
		span = parse_service_dates(line.date_of_service)
		# Over-long ranges are rejected by line validation before coverage runs.
		if span is None or (span[1] - span[0]).days + 1 > MAX_SERVICE_SPAN_DAYS:
			continue
		for day in _days(*span):
			if (day, line.provider_id) not in documented:
				gaps.append(f"{day.isoformat()} - {line.provider_name}")
	return gaps


def summarize_gaps(gaps: list[str], limit: int) -> str:
	shown = gaps[:limit]
	text = "\n".join(shown)
	remaining = len(gaps) - limit
	if remaining > 0:
		text += f"\n...and {remaining} more dates"
	return text
