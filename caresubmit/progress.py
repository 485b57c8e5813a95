"""Completion percentages for document checklists and assessment forms."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping

from caresubmit.models import DocumentRequirement


def _percent(done: int, total: int) -> int:
	# An empty requirement set counts as complete.
	if total <= 0:
		return 100
	return min(int(math.floor(100 * done / total + 0.5)), 100)


def is_filled(value: Any) -> bool:
	return value is not None and value != ""


def document_progress(documents: Iterable[DocumentRequirement]) -> int:
	"""Return the share of required documents uploaded, rounded half up."""

	required = [doc for doc in documents if doc.required]
	uploaded = [doc for doc in required if doc.uploaded]
	return _percent(len(uploaded), len(required))


def field_progress(
	values: Mapping[str, Any],
	required_fields: Iterable[str],
	selections: Mapping[str, Iterable[str]] | None = None,
	selection_groups: Iterable[str] = (),
) -> int:
	"""Return form completion from required fields plus one point per non-empty selection group."""

	fields = list(required_fields)
	groups = list(selection_groups)
	selections = selections or {}

	filled = sum(1 for name in fields if is_filled(values.get(name)))
	bonus = sum(1 for group in groups if list(selections.get(group) or []))
	return _percent(filled + bonus, len(fields) + len(groups))
