from __future__ import annotations

from typing import Any, Dict, Optional


def ok(**kwargs: Any) -> Dict[str, Any]:
    """
    Единый формат успешного ответа.
    """
    return {"ok": True, **kwargs}


def fail(error: Any, stage: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
    """
    Единый формат ошибки: ok + error (+ stage, details и т.п.).
    """
    payload: Dict[str, Any] = {"ok": False, "error": str(error)}
    if stage:
        payload["stage"] = stage
    payload.update(kwargs)
    return payload


class APIError(Exception):
    """
    Exception rendered by the app as a `fail(...)` JSON response.
    """
    def __init__(
        self,
        error: Any,
        stage: Optional[str] = None,
        status_code: int = 400,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(str(error))
        self.error = str(error)
        self.stage = stage
        self.status_code = status_code
        self.extra = extra or {}


class InvalidRequest(APIError):
    """Client-side mistake; surfaced as 400 and never retried."""

    def __init__(self, error: Any, extra: Optional[Dict[str, Any]] = None):
        super().__init__(error, stage="validation", status_code=400, extra=extra)
