"""Clinician license checks used to gate claim submission."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from caresubmit.config import LICENSE_EXPIRY_WARNING_DAYS
from caresubmit.models import License, ServiceLine


def is_valid_for_claims(license: License, today: date) -> bool:
    """Active or pending-renewal licenses are usable until they expire."""

    if license.license_status not in {"Active", "Pending Renewal"}:
        return False
    return license.expiry_date > today


def is_expiring_soon(license: License, today: date, window_days: int = LICENSE_EXPIRY_WARNING_DAYS) -> bool:
    remaining = (license.expiry_date - today).days
    return 0 < remaining <= window_days


def find_license(line: ServiceLine, licenses: Iterable[License]) -> License | None:
    for candidate in licenses:
        if candidate.clinician_name == line.provider_name or candidate.employee_id == line.provider_id:
            return candidate
    return None


def license_issues(lines: Iterable[ServiceLine], licenses: Iterable[License], today: date) -> list[str]:
    """Describe every provider on the claim whose license would not support it."""

    known = list(licenses)
    issues: list[str] = []
    for line in lines:
        match = find_license(line, known)
        if match is None:
            issues.append(f"{line.provider_name} (No license record found)")
        elif not is_valid_for_claims(match, today):
            issues.append(f"{line.provider_name} ({match.license_status} license)")
    return issues


def upsert_license(licenses: list[License], license: License) -> list[License]:
    """Return a new list with the license added or replaced by id."""

    replaced = False
    result: list[License] = []
    for existing in licenses:
        if existing.id == license.id:
            result.append(license)
            replaced = True
        else:
            result.append(existing)
    if not replaced:
        result.append(license)
    return result
