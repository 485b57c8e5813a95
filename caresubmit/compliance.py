"""DOH compliance verification.

The payer-side DOH validator is a black box that answers ``{is_compliant,
issues}``. The defaults here cover what can be checked locally: file
metadata for uploaded documents and required fields for assessment forms.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from caresubmit.config import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES
from caresubmit.models import ComplianceResult, DocumentRequirement, FileMeta
from caresubmit.progress import is_filled

ComplianceValidator = Callable[[Mapping[str, Any]], ComplianceResult]


def file_is_compliant(meta: FileMeta | None) -> bool:
    if meta is None:
        return False
    if Path(meta.filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        return False
    return meta.size <= MAX_UPLOAD_BYTES


def verify_documents(documents: Iterable[DocumentRequirement]) -> ComplianceResult:
    """Check every uploaded document's file against DOH format rules."""

    issues = [doc.name for doc in documents if doc.uploaded and not file_is_compliant(doc.file_meta)]
    return ComplianceResult(is_compliant=not issues, issues=issues)


def required_fields_validator(required_fields: Iterable[str]) -> ComplianceValidator:
    """Build a validator that reports each missing required field as an issue."""

    fields = tuple(required_fields)

    def _validate(values: Mapping[str, Any]) -> ComplianceResult:
        issues = [
            f"{name.replace('_', ' ')} is required"
            for name in fields
            if not is_filled(values.get(name))
        ]
        return ComplianceResult(is_compliant=not issues, issues=issues)

    return _validate
