from __future__ import annotations

import random
from datetime import date, timedelta

import pytest

from caresubmit.coverage import documentation_gaps, parse_service_dates, summarize_gaps
from caresubmit.fixtures import default_licenses, default_service_lines, generate_daily_records
from caresubmit.licenses import is_expiring_soon, license_issues
from caresubmit.models import DailyServiceRecord


def _covered(lines) -> list[DailyServiceRecord]:
	records = []
	for line in lines:
		start, end = parse_service_dates(line.date_of_service)
		day = start
		while day <= end:
			records.append(
				DailyServiceRecord(
					service_date=day,
					service_provided=True,
					provider_id=line.provider_id,
					documentation_complete=True,
				)
			)
			day += timedelta(days=1)
	return records


def test_fixture_licenses_valid_in_february():
	assert license_issues(default_service_lines(), default_licenses(), date(2024, 2, 20)) == []


def test_pending_renewal_expired_after_date():
	issues = license_issues(default_service_lines(), default_licenses(), date(2024, 3, 15))
	assert issues == ["Therapist Ali Hassan (Pending Renewal license)"]


def test_unknown_provider():
	line = default_service_lines()[0].model_copy(update={"provider_id": "X1", "provider_name": "Nurse Nobody"})
	assert license_issues([line], default_licenses(), date(2024, 2, 20)) == ["Nurse Nobody (No license record found)"]


def test_expiring_soon():
	today = date(2024, 2, 20)
	expiring = [item.id for item in default_licenses() if is_expiring_soon(item, today)]
	assert expiring == ["license-2"]


@pytest.mark.parametrize(
	("value", "expected"),
	[
		("2024-01-20 to 2024-02-19", (date(2024, 1, 20), date(2024, 2, 19))),
		("2024-01-20", (date(2024, 1, 20), date(2024, 1, 20))),
		("next tuesday", None),
		("", None),
	],
)
def test_parse_service_dates(value, expected):
	assert parse_service_dates(value) == expected


def test_full_coverage_has_no_gaps():
	lines = default_service_lines()
	assert documentation_gaps(lines, _covered(lines)) == []


def test_gaps_are_per_provider_and_date():
	lines = default_service_lines()
	records = [record for record in _covered(lines) if record.service_date != date(2024, 2, 1)]
	gaps = documentation_gaps(lines, records)
	assert gaps == ["2024-02-01 - Nurse Sarah Ahmed", "2024-02-01 - Therapist Ali Hassan"]


def test_incomplete_documentation_is_a_gap():
	lines = default_service_lines()[:1]
	records = [record.model_copy(update={"documentation_complete": False}) for record in _covered(lines)]
	assert len(documentation_gaps(lines, records)) == 31


def test_summary_truncates():
	gaps = [f"2024-01-{day:02d} - Nurse" for day in range(1, 9)]
	text = summarize_gaps(gaps, 5)
	assert text.count("\n") == 5
	assert text.endswith("...and 3 more dates")


def test_generated_month_is_deterministic_and_past_only():
	first = generate_daily_records(2024, 2, today=date(2024, 2, 10), rng=random.Random(3))
	second = generate_daily_records(2024, 2, today=date(2024, 2, 10), rng=random.Random(3))
	assert first == second
	assert [record.service_date.day for record in first] == list(range(1, 10))
	assert all(record.documentation_id for record in first if record.documentation_complete)


def test_overlong_range_produces_no_gaps():
	line = default_service_lines()[0].model_copy(update={"date_of_service": "1900-01-01 to 2899-12-31"})
	assert documentation_gaps([line], []) == []
