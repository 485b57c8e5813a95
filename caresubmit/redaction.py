"""Utilities for redacting sensitive text before it enters a payload or the ledger."""

from __future__ import annotations

import re
from typing import Any, Mapping, Pattern, Tuple


_LABEL_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
	(
		re.compile(r"(?i)\b((?:patient|member|subscriber)\s+name\s*[:\-]\s*)([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"),
		r"\1[REDACTED_NAME]",
	),
	(
		re.compile(r"(?i)\b((?:mrn|medical\s+record\s+number)\s*[:#]?\s*)([A-Za-z0-9-]+)"),
		r"\1[REDACTED_MRN]",
	),
	(
		re.compile(r"(?i)\b((?:dob|date\s+of\s+birth)\s*[:\-]\s*)(?:\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}-\d{2}-\d{2})"),
		r"\1[REDACTED_DATE]",
	),
)

_GENERIC_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
	(
		re.compile(r"\b784-?\d{4}-?\d{7}-?\d\b"),
		"[REDACTED_EMIRATES_ID]",
	),
	(
		re.compile(r"(?<![\w-])(?:\+971|00971|0)(?:[\s-]?\d){8,9}\b"),
		"[REDACTED_PHONE]",
	),
	(
		re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
		"[REDACTED_EMAIL]",
	),
)


def redact_text(text: str) -> str:
	"""Return text with identifying markers replaced."""

	redacted = text
	for pattern, replacement in _LABEL_PATTERNS:
		redacted = pattern.sub(replacement, redacted)
	for pattern, replacement in _GENERIC_PATTERNS:
		redacted = pattern.sub(replacement, redacted)
	return redacted


def redact_fields(values: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
	"""Copy ``values`` with the named free-text fields redacted."""

	result = dict(values)
	for name in fields:
		value = result.get(name)
		if isinstance(value, str) and value.strip():
			result[name] = redact_text(value)
	return result
