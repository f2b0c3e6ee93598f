"""Task, audit-entry and session ID generation and validation."""

from __future__ import annotations

import re
import secrets
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Final

TASK_ID_PREFIX: Final[str] = "T"
TASK_ID_MIN_DIGITS: Final[int] = 3
LOG_ID_PREFIX: Final[str] = "log_"
LOG_ID_RANDOM_BYTES: Final[int] = 6
SESSION_ID_PREFIX: Final[str] = "session_"
SESSION_ID_RANDOM_BYTES: Final[int] = 3

TASK_ID_PATTERN_DESCRIPTION: Final[str] = "T001"

_TASK_ID_RE: Final[re.Pattern[str]] = re.compile(r"^T([0-9]{3,})$")
_LOG_ID_RE: Final[re.Pattern[str]] = re.compile(r"^log_[0-9a-f]{12}$")
_SESSION_ID_RE: Final[re.Pattern[str]] = re.compile(r"^session_[0-9]{8}_[0-9]{6}_[0-9a-f]{6}$")

_RandBytes = Callable[[int], bytes]

__all__ = [
    "LOG_ID_PREFIX",
    "SESSION_ID_PREFIX",
    "TASK_ID_MIN_DIGITS",
    "TASK_ID_PATTERN_DESCRIPTION",
    "TASK_ID_PREFIX",
    "format_task_id",
    "generate_log_id",
    "generate_session_id",
    "is_valid_task_id",
    "next_task_id",
    "task_id_number",
    "validate_log_id",
    "validate_session_id",
    "validate_task_id",
]


def is_valid_task_id(value: object) -> bool:
    """Return ``True`` when ``value`` matches ``T`` followed by three or more digits."""
    return isinstance(value, str) and _TASK_ID_RE.fullmatch(value) is not None


def validate_task_id(value: str) -> None:
    """Validate a task ID and raise ``ValueError`` with precise context on failure."""
    if not isinstance(value, str):
        raise ValueError(f"task id must be a string, got {type(value).__name__}")
    if _TASK_ID_RE.fullmatch(value) is None:
        raise ValueError(
            f"invalid task id {value!r}: expected {TASK_ID_PREFIX} + >= {TASK_ID_MIN_DIGITS} "
            f"digits (example: {TASK_ID_PATTERN_DESCRIPTION})"
        )


def task_id_number(value: str) -> int:
    """Return the numeric part of a valid task ID."""
    match = _TASK_ID_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"invalid task id {value!r}")
    return int(match.group(1))


def format_task_id(number: int) -> str:
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValueError(f"task number must be a positive integer, got {number!r}")
    return f"{TASK_ID_PREFIX}{number:0{TASK_ID_MIN_DIGITS}d}"


def next_task_id(existing: Iterable[str]) -> str:
    """
    Return the next free task ID after the highest numbered ID in ``existing``.

    Malformed IDs are ignored. Archived IDs should be included by the caller so
    that retired numbers are never reused.
    """
    highest = 0
    for candidate in existing:
        match = _TASK_ID_RE.fullmatch(candidate) if isinstance(candidate, str) else None
        if match is not None:
            highest = max(highest, int(match.group(1)))
    return format_task_id(highest + 1)


def generate_log_id(*, randbytes: _RandBytes | None = None) -> str:
    """Generate an audit entry ID in the form ``log_<12 hex>``."""
    raw = _resolve_random_bytes(randbytes, LOG_ID_RANDOM_BYTES)
    return f"{LOG_ID_PREFIX}{raw.hex()}"


def validate_log_id(value: str) -> None:
    if not isinstance(value, str) or _LOG_ID_RE.fullmatch(value) is None:
        raise ValueError(f"invalid audit entry id {value!r}: expected log_<12 lowercase hex>")


def generate_session_id(
    *,
    now: datetime | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate a session ID in the form ``session_YYYYMMDD_HHMMSS_<6 hex>``."""
    moment = (now if now is not None else datetime.now(UTC)).astimezone(UTC)
    raw = _resolve_random_bytes(randbytes, SESSION_ID_RANDOM_BYTES)
    return f"{SESSION_ID_PREFIX}{moment:%Y%m%d_%H%M%S}_{raw.hex()}"


def validate_session_id(value: str) -> None:
    if not isinstance(value, str) or _SESSION_ID_RE.fullmatch(value) is None:
        raise ValueError(
            f"invalid session id {value!r}: expected session_YYYYMMDD_HHMMSS_<6 lowercase hex>"
        )


def _resolve_random_bytes(randbytes: _RandBytes | None, size: int) -> bytes:
    source = randbytes if randbytes is not None else secrets.token_bytes
    raw = source(size)
    if not isinstance(raw, (bytes, bytearray)):
        raise ValueError(f"randbytes must return bytes, got {type(raw).__name__}")
    if len(raw) != size:
        raise ValueError(f"randbytes must return exactly {size} bytes, got {len(raw)}")
    return bytes(raw)
