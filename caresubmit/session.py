"""In-memory registry of form sessions."""

from __future__ import annotations

import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException

from caresubmit.forms import build_form
from caresubmit.models import StartSessionRequest

_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

_lock = threading.Lock()
_sessions: dict[str, dict[str, Any]] = {}
_current_session_id: str | None = None


def set_current_session(session_id: str | None) -> None:
    """Remember the active session id for subsequent requests."""

    global _current_session_id
    _current_session_id = session_id


def get_current_session() -> str | None:
    """Return the active session id if one is registered."""

    return _current_session_id


def _validate_id(session_id: str | None) -> str:
    normalized = str(session_id or "").strip()
    if not normalized:
        raise HTTPException(status_code=400, detail="session_id is required")
    if not _SAFE_ID_PATTERN.fullmatch(normalized):
        raise HTTPException(status_code=400, detail="invalid session_id")
    return normalized


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"error": "session not found", "session_id": session_id, "available_sessions": sorted(_sessions)},
    )


def start_session(request: StartSessionRequest | None = None, **form_options: Any) -> dict[str, str]:
    """Create a form session of the requested kind and register it as current.

    ``form_options`` are passed through to the form builder, which is how
    tests inject a clock, a random source or a gateway.
    """

    request = request or StartSessionRequest()
    form = build_form(
        request.kind,
        patient_id=request.patient_id,
        episode_id=request.episode_id,
        authorization_id=request.authorization_id,
        offline=request.offline,
        **form_options,
    )
    with _lock:
        session_id = str(uuid.uuid4())
        while session_id in _sessions:
            session_id = str(uuid.uuid4())
        _sessions[session_id] = {
            "form": form,
            "kind": request.kind,
            "created_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
    set_current_session(session_id)
    return {"session_id": session_id, "kind": request.kind}


def resolve_session(session_id: str | None, *, required: bool = True) -> str | None:
    """Return a usable session id, optionally falling back to the in-memory current session."""

    normalized = str(session_id or "").strip()
    if normalized:
        normalized = _validate_id(normalized)
        if normalized not in _sessions:
            raise _not_found(normalized)
        set_current_session(normalized)
        return normalized

    fallback = get_current_session()
    if fallback and fallback in _sessions:
        return fallback

    if required:
        raise HTTPException(status_code=400, detail="No session. Call /session/start first.")
    return None


def get_form(session_id: str | None) -> Any:
    resolved = resolve_session(session_id)
    return _sessions[resolved]["form"]


def list_sessions() -> dict[str, list[dict[str, Any]]]:
    """Return metadata about known sessions, newest first."""

    current = get_current_session()
    sessions = [
        {
            "session_id": session_id,
            "kind": entry["kind"],
            "created_at": entry["created_at"],
            "progress": entry["form"].progress,
            "history_count": len(entry["form"].ledger),
            "is_current": session_id == current,
        }
        for session_id, entry in list(_sessions.items())
    ]
    sessions.sort(key=lambda item: item["created_at"], reverse=True)
    return {"sessions": sessions}


def delete_session(session_id: str) -> dict[str, Any]:
    """Forget a session and everything it holds."""

    session_id = _validate_id(session_id)
    with _lock:
        if session_id not in _sessions:
            raise _not_found(session_id)
        del _sessions[session_id]

    if get_current_session() == session_id:
        set_current_session(None)

    return {"status": "deleted", "session_id": session_id}
