"""Configuration flags for the CareSubmit backend."""

from __future__ import annotations

import os
from typing import Final


def _get_bool(env_var: str, default: bool) -> bool:
	value = os.getenv(env_var)
	if value is None:
		return default
	return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_var: str, default: int) -> int:
	value = os.getenv(env_var)
	if value is None or not value.strip():
		return default
	try:
		return int(value)
	except ValueError:
		return default


OFFLINE_BY_DEFAULT: Final[bool] = _get_bool("CARESUBMIT_OFFLINE", False)
LOG_LEVEL: Final[str] = os.getenv("CARESUBMIT_LOG_LEVEL", "INFO").upper()

MAX_UPLOAD_BYTES: Final[int] = _get_int("CARESUBMIT_MAX_UPLOAD_MB", 5) * 1024 * 1024
ALLOWED_EXTENSIONS: Final[frozenset[str]] = frozenset({".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"})

GAP_DISPLAY_LIMIT: Final[int] = 5
MAX_SERVICE_SPAN_DAYS: Final[int] = _get_int("CARESUBMIT_MAX_SERVICE_SPAN_DAYS", 31)
CLINICAL_JUSTIFICATION_MIN_CHARS: Final[int] = 50
LICENSE_EXPIRY_WARNING_DAYS: Final[int] = 30

FACILITY_NAME: Final[str] = os.getenv("CARESUBMIT_FACILITY_NAME", "Reyada Homecare")
FACILITY_LICENSE: Final[str] = os.getenv("CARESUBMIT_FACILITY_LICENSE", "DOH-HC-2023-001")
FACILITY_ADDRESS: Final[str] = os.getenv("CARESUBMIT_FACILITY_ADDRESS", "Abu Dhabi, UAE")
PLATFORM_NAME: Final[str] = "Reyada Homecare Platform"
DOH_COMPLIANCE_VERSION: Final[str] = "DOH-2023-R4"
