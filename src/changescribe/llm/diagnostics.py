"""
Defensive serialization for error reports.

Fatal errors print everything we know about the failing call: the
exception chain, the HTTP status and body, the raw completion payload.
Those objects can be large or self-referencing, so they go through
:func:`safe_stringify`, which replaces reference cycles with
``"[Circular]"`` and never raises, and through :func:`truncate`, which
caps the output at a fixed character budget.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Dict, Optional, Set


MAX_DIAGNOSTIC_CHARS = 10_000
TRUNCATION_NOTICE = "\n...[truncated]..."
CIRCULAR_MARKER = "[Circular]"


def _to_plain(value: Any, active: Set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if id(value) in active:
        return CIRCULAR_MARKER
    active.add(id(value))
    try:
        if isinstance(value, dict):
            return {str(key): _to_plain(item, active) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [_to_plain(item, active) for item in value]
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {
                f.name: _to_plain(getattr(value, f.name), active)
                for f in dataclasses.fields(value)
            }
        if isinstance(value, BaseException):
            return _exception_to_plain(value, active)
        if hasattr(value, "__dict__"):
            return {
                key: _to_plain(item, active)
                for key, item in vars(value).items()
                if not key.startswith("_")
            }
        return str(value)
    finally:
        active.discard(id(value))


def _exception_to_plain(error: BaseException, active: Set[int]) -> Dict[str, Any]:
    plain: Dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
    for key, item in vars(error).items():
        if key.startswith("_") or key == "response":
            continue
        plain[key] = _to_plain(item, active)
    response = getattr(error, "response", None)
    if response is not None:
        plain["response"] = {
            "status": getattr(response, "status_code", None),
            "statusText": getattr(response, "reason", None),
            "headers": _to_plain(dict(getattr(response, "headers", None) or {}), active),
            "data": getattr(response, "text", None),
        }
    cause = error.__cause__ or error.__context__
    if cause is not None:
        plain["cause"] = _to_plain(cause, active)
    return plain


def safe_stringify(value: Any, indent: Optional[int] = 2) -> str:
    """Serialize ``value`` to JSON text without ever raising.

    Dataclasses, exceptions and plain objects are converted field by
    field. Objects that contain themselves are cut with ``"[Circular]"``.
    Anything that still cannot be encoded falls back to ``str(value)``.
    """
    try:
        return json.dumps(_to_plain(value, set()), indent=indent, default=str)
    except Exception:
        try:
            return str(value)
        except Exception:
            return "[Unstringifiable]"


def truncate(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    """Cap ``text`` at ``limit`` characters, appending a truncation notice."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}{TRUNCATION_NOTICE}"


def format_error(error: BaseException) -> str:
    """Render an exception, its HTTP details and its cause chain as JSON."""
    return truncate(safe_stringify(error))


def describe_completion(completion: Any) -> str:
    """Render a completion payload for a "failed to generate" report.

    Includes the raw payload and, when present, the usage block and
    finish reasons.
    """
    raw = getattr(completion, "raw", completion)
    parts = [truncate(safe_stringify(raw))]
    usage = getattr(completion, "usage", None)
    if usage:
        parts.append(f"Usage: {safe_stringify(usage)}")
    choices = raw.get("choices") if isinstance(raw, dict) else None
    if choices:
        meta = [
            {"finish_reason": choice.get("finish_reason"), "index": choice.get("index")}
            for choice in choices
            if isinstance(choice, dict)
        ]
        parts.append(f"Choices meta: {safe_stringify(meta)}")
    return "\n".join(parts)
