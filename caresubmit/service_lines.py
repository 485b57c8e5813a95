"""Service line editing and validation for the claims form."""

from __future__ import annotations

import secrets
from typing import Any, Callable, Iterable

from caresubmit.config import MAX_SERVICE_SPAN_DAYS
from caresubmit.coverage import span_days
from caresubmit.models import ServiceLine

EDITABLE_FIELDS = frozenset(
    {
        "service_code",
        "service_description",
        "quantity",
        "unit_price",
        "date_of_service",
        "provider_id",
        "provider_name",
        "authorization_reference",
    }
)


def line_problems(line: ServiceLine) -> list[str]:
    """Return the names of fields that keep a line from being submittable."""

    problems: list[str] = []
    if not line.service_code:
        problems.append("service_code")
    if not line.service_description:
        problems.append("service_description")
    if line.quantity <= 0:
        problems.append("quantity")
    if line.unit_price <= 0:
        problems.append("unit_price")
    if not line.date_of_service:
        problems.append("date_of_service")
    else:
        days = span_days(line.date_of_service)
        if days is not None and days > MAX_SERVICE_SPAN_DAYS:
            problems.append("date_of_service")
    if not line.provider_id:
        problems.append("provider_id")
    if not line.provider_name:
        problems.append("provider_name")
    return problems


def invalid_lines(lines: Iterable[ServiceLine]) -> list[ServiceLine]:
    return [line for line in lines if line_problems(line)]


def claim_total(lines: Iterable[ServiceLine]) -> float:
    return sum(line.total_amount for line in lines)


class ServiceLineBook:
    """Mutable list of service lines owned by one claim form."""

    def __init__(self, factory: Callable[[], list[ServiceLine]], *, authorization_id: str | None = None) -> None:
        self._factory = factory
        self._authorization_id = authorization_id
        self._lines: list[ServiceLine] = factory()

    @property
    def lines(self) -> list[ServiceLine]:
        return list(self._lines)

    def total(self) -> float:
        return claim_total(self._lines)

    def add(self, **fields: Any) -> ServiceLine:
        payload = {"authorization_reference": self._authorization_id}
        payload.update({key: value for key, value in fields.items() if key in EDITABLE_FIELDS})
        line = ServiceLine.model_validate({"id": f"sl-{secrets.token_hex(4)}", **payload})
        self._lines.append(line)
        return line

    def update(self, line_id: str, field: str, value: Any) -> ServiceLine:
        """Set one field on a line; the line total follows quantity and unit price."""

        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be edited")
        for index, line in enumerate(self._lines):
            if line.id != line_id:
                continue
            data = line.model_dump(exclude={"total_amount"})
            data[field] = value
            updated = ServiceLine.model_validate(data)
            self._lines[index] = updated
            return updated
        raise KeyError(f"Unknown service line '{line_id}'")

    def remove(self, line_id: str) -> None:
        remaining = [line for line in self._lines if line.id != line_id]
        if len(remaining) == len(self._lines):
            raise KeyError(f"Unknown service line '{line_id}'")
        self._lines = remaining

    def replace_all(self, lines: Iterable[ServiceLine]) -> None:
        self._lines = list(lines)

    def reset(self) -> None:
        self._lines = self._factory()
