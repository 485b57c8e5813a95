"""Document checklist state for a single form."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from caresubmit.config import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES
from caresubmit.models import DocumentRequirement, FileMeta
from caresubmit.progress import document_progress

LOGGER = logging.getLogger(__name__)


class UploadRejected(ValueError):
    """Raised when a file fails the size or type guard."""


def check_upload(filename: str, size: int) -> None:
    """Validate a file against the upload guards, raising UploadRejected on failure."""

    if size > MAX_UPLOAD_BYTES:
        limit_mb = MAX_UPLOAD_BYTES // (1024 * 1024)
        raise UploadRejected(f"File size exceeds {limit_mb}MB limit. Please select a smaller file.")
    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
        raise UploadRejected(f"Unsupported file type '{extension or filename}'. Allowed: {allowed}")


class DocumentChecklist:
    """Ordered checklist seeded from a fixture factory."""

    def __init__(self, factory: Callable[[], list[DocumentRequirement]]) -> None:
        self._factory = factory
        self._documents: list[DocumentRequirement] = factory()

    @property
    def documents(self) -> list[DocumentRequirement]:
        return list(self._documents)

    def get(self, document_id: str) -> DocumentRequirement:
        for doc in self._documents:
            if doc.id == document_id:
                return doc
        raise KeyError(f"Unknown document id '{document_id}'")

    def mark_uploaded(
        self,
        document_id: str,
        *,
        filename: str,
        size: int,
        content_type: str | None = None,
        uploaded_by: str = "Current User",
        when: datetime | None = None,
    ) -> DocumentRequirement:
        """Record a file against a checklist entry and return the updated entry."""

        current = self.get(document_id)
        check_upload(filename, size)
        updated = current.model_copy(
            update={
                "uploaded": True,
                "upload_date": (when or datetime.now()).isoformat(),
                "file_meta": FileMeta(
                    filename=filename,
                    size=size,
                    content_type=content_type,
                    uploaded_by=uploaded_by,
                ),
            }
        )
        self._documents = [updated if doc.id == document_id else doc for doc in self._documents]
        LOGGER.info("Document %s uploaded (%s, %d bytes)", document_id, filename, size)
        return updated

    def missing_required(self) -> list[DocumentRequirement]:
        return [doc for doc in self._documents if doc.required and not doc.uploaded]

    def uploaded(self) -> list[DocumentRequirement]:
        return [doc for doc in self._documents if doc.uploaded]

    def annotate(self, document_ids: Iterable[str], suffix: str) -> None:
        """Append a note to the description of the given documents."""

        targets = set(document_ids)
        self._documents = [
            doc.model_copy(update={"description": f"{doc.description} {suffix}".strip()}) if doc.id in targets else doc
            for doc in self._documents
        ]

    def progress(self) -> int:
        return document_progress(self._documents)

    def reset(self) -> None:
        self._documents = self._factory()
