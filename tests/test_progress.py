from __future__ import annotations

import pytest

from caresubmit.models import DocumentRequirement
from caresubmit.progress import document_progress, field_progress


def _docs(required: int, uploaded: int, optional: int = 0) -> list[DocumentRequirement]:
	docs = [
		DocumentRequirement(id=f"req-{index}", name=f"Required {index}", uploaded=index < uploaded)
		for index in range(required)
	]
	docs += [
		DocumentRequirement(id=f"opt-{index}", name=f"Optional {index}", required=False)
		for index in range(optional)
	]
	return docs


@pytest.mark.parametrize(
	("required", "uploaded", "expected"),
	[
		(12, 11, 92),
		(12, 12, 100),
		(12, 0, 0),
		(8, 1, 13),
		(3, 1, 33),
		(0, 0, 100),
	],
)
def test_document_progress_rounds_half_up(required: int, uploaded: int, expected: int) -> None:
	assert document_progress(_docs(required, uploaded)) == expected


def test_optional_documents_do_not_count() -> None:
	docs = _docs(2, 2, optional=5)
	assert document_progress(docs) == 100


def test_field_progress_counts_selection_groups() -> None:
	values = {"a": "x", "b": "", "c": None, "d": 0}
	progress = field_progress(values, ["a", "b", "c", "d"], {"g1": ["item"], "g2": []}, ["g1", "g2"])
	# a, d and g1 are complete out of six requirements
	assert progress == 50


def test_field_progress_empty_is_complete() -> None:
	assert field_progress({}, []) == 100
