"""
todo-ledger — append-only audit log operations

File: src/todo_ledger/audit/log.py
Last updated: 2026-10-19

Purpose
- Pure operations over an ``AuditLog`` value: append, filter, lookup, legacy-schema
  migration, size-based rotation and age-based retention.

Functional requirements
- Append validates action, actor and payloads and updates ``_meta`` in the same new value.
- Append order is chronological; entries are never reordered or edited in place.
- Rotation keeps the newest entries and always accounts for removals in ``entriesPruned``.
- Migration is idempotent: a migrated log reports zero migrations on the next run.

Non-functional requirements
- No IO here; ``audit.trail`` owns the file.
"""

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Final

from todo_ledger.constants import LOG_SCHEMA_VERSION
from todo_ledger.domain import ids
from todo_ledger.domain.errors import MalformedInput, NotFound, PreconditionFailed
from todo_ledger.domain.events import (
    Actor,
    AuditAction,
    AuditEntry,
    AuditLog,
    build_log_meta,
    parse_action,
    parse_actor,
)
from todo_ledger.domain.models import (
    JSONValue,
    as_json_value,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from todo_ledger.utils.hashing import short_digest

LEGACY_KEY_MAP: Final[dict[str, str]] = {
    "operation": "action",
    "task_id": "taskId",
    "session_id": "sessionId",
    "user": "actor",
    "data": "details",
}

LEGACY_ACTION_MAP: Final[dict[str, AuditAction]] = {
    "create": AuditAction.TASK_CREATED,
    "add": AuditAction.TASK_CREATED,
    "update": AuditAction.TASK_UPDATED,
    "complete": AuditAction.STATUS_CHANGED,
    "status_change": AuditAction.STATUS_CHANGED,
    "archive": AuditAction.TASK_ARCHIVED,
    "focus": AuditAction.FOCUS_CHANGED,
    "session-start": AuditAction.SESSION_START,
    "session-end": AuditAction.SESSION_END,
    "validate": AuditAction.VALIDATION_RUN,
    "error": AuditAction.ERROR_OCCURRED,
}

LEGACY_ACTOR_MAP: Final[dict[str, Actor]] = {
    "user": Actor.HUMAN,
    "agent": Actor.CLAUDE,
    "ai": Actor.CLAUDE,
    "assistant": Actor.CLAUDE,
}

_CURRENT_KEYS: Final[frozenset[str]] = frozenset(
    {"id", "timestamp", "sessionId", "action", "actor", "taskId", "before", "after", "details"}
)
_DATE_ONLY_RE: Final[re.Pattern[str]] = re.compile(r"^\d{4}-\d{2}-\d{2}$")

IdFactory = Callable[[], str]


@dataclass(frozen=True, slots=True)
class AuditFilter:
    """Entry filter; ``limit`` keeps the last N matches (0 = all)."""

    action: AuditAction | None = None
    task_id: str | None = None
    actor: Actor | None = None
    since: datetime | None = None
    limit: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0:
            raise ValueError("limit must be a non-negative integer")

    def matches(self, entry: AuditEntry) -> bool:
        if self.action is not None and entry.action is not self.action:
            return False
        if self.task_id is not None and entry.task_id != self.task_id:
            return False
        if self.actor is not None and entry.actor is not self.actor:
            return False
        return self.since is None or entry.timestamp >= self.since


@dataclass(frozen=True, slots=True)
class RotationResult:
    log: AuditLog
    pruned: int
    rotated: bool
    size_bytes: int


@dataclass(frozen=True, slots=True)
class MigrationResult:
    log: AuditLog
    migrated: int


def empty_log(project: str = "") -> AuditLog:
    return AuditLog(project=project)


def append_entry(
    log: AuditLog,
    action: AuditAction | str,
    *,
    actor: Actor | str = Actor.SYSTEM,
    task_id: str | None = None,
    session_id: str | None = None,
    before: object = None,
    after: object = None,
    details: object = None,
    entry_id: str | None = None,
    now: datetime | None = None,
    id_factory: IdFactory = ids.generate_log_id,
) -> tuple[AuditLog, AuditEntry]:
    """Return the log with one more entry, plus the entry itself."""
    resolved_id = entry_id if entry_id is not None else id_factory()
    if any(existing.id == resolved_id for existing in log.entries):
        raise PreconditionFailed(f"audit entry id {resolved_id} already exists")

    moment = now if now is not None else utc_now()
    if log.entries and moment < log.entries[-1].timestamp:
        # Clock skew must not break chronological append order.
        moment = log.entries[-1].timestamp

    entry = AuditEntry(
        id=resolved_id,
        timestamp=moment,
        action=parse_action(action),
        actor=parse_actor(actor),
        session_id=session_id or None,
        task_id=task_id or None,
        before=as_json_value(before, "entry.before"),
        after=as_json_value(after, "entry.after"),
        details=as_json_value(details, "entry.details"),
    )
    entries = (*log.entries, entry)
    updated = replace(
        log,
        entries=entries,
        meta=build_log_meta(entries, entries_pruned=log.meta.entries_pruned),
    )
    return updated, entry


def list_entries(log: AuditLog, filters: AuditFilter | None = None) -> tuple[AuditEntry, ...]:
    criteria = filters if filters is not None else AuditFilter()
    matched = tuple(entry for entry in log.entries if criteria.matches(entry))
    if criteria.limit:
        return matched[-criteria.limit :]
    return matched


def show_entry(log: AuditLog, entry_id: str) -> AuditEntry:
    for entry in log.entries:
        if entry.id == entry_id:
            return entry
    raise NotFound("audit entry", entry_id)


def parse_since(value: str) -> datetime:
    """Accept ``YYYY-MM-DD`` (midnight UTC) or a full ISO-8601 timestamp."""
    text = value.strip()
    if _DATE_ONLY_RE.fullmatch(text):
        text = f"{text}T00:00:00Z"
    return parse_timestamp(text, "since")


def serialized_size(log: AuditLog) -> int:
    """Byte length of the exact text the trail writes for ``log``."""
    return len(log.to_json().encode("utf-8"))


def rotate_log(
    log: AuditLog,
    *,
    keep_entries: int,
    threshold_kb: int,
    force: bool = False,
) -> RotationResult:
    """
    Truncate to the newest ``keep_entries`` when over ``threshold_kb`` (or forced).

    ``entriesPruned`` grows by exactly the number of removed entries and the
    first/last timestamps are recomputed from what is retained.
    """
    if keep_entries < 0:
        raise ValueError("keep_entries must be >= 0")
    if threshold_kb < 0:
        raise ValueError("threshold_kb must be >= 0")

    size = serialized_size(log)
    if not force and size <= threshold_kb * 1024:
        return RotationResult(log=log, pruned=0, rotated=False, size_bytes=size)

    retained = log.entries[-keep_entries:] if keep_entries else ()
    return _retain(log, retained, size)


def prune_by_age(
    log: AuditLog,
    *,
    retention_days: int,
    now: datetime | None = None,
) -> RotationResult:
    """Drop entries older than ``retention_days``."""
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")
    moment = now if now is not None else utc_now()
    cutoff = moment - timedelta(days=retention_days)
    retained = tuple(entry for entry in log.entries if entry.timestamp >= cutoff)
    return _retain(log, retained, serialized_size(log))


def _retain(log: AuditLog, retained: tuple[AuditEntry, ...], size: int) -> RotationResult:
    pruned = len(log.entries) - len(retained)
    updated = replace(
        log,
        entries=retained,
        meta=build_log_meta(retained, entries_pruned=log.meta.entries_pruned + pruned),
    )
    return RotationResult(log=updated, pruned=pruned, rotated=pruned > 0, size_bytes=size)


def log_stats(log: AuditLog) -> dict[str, JSONValue]:
    by_action = Counter(entry.action.value for entry in log.entries)
    by_actor = Counter(entry.actor.value for entry in log.entries)
    return {
        **log.meta.to_dict(),
        "byAction": dict(sorted(by_action.items())),
        "byActor": dict(sorted(by_actor.items())),
        "sizeBytes": serialized_size(log),
    }


# ---------------------------------------------------------------------------
# Legacy schema migration
# ---------------------------------------------------------------------------


def migrate_log(payload: object, *, project: str = "") -> MigrationResult:
    """
    Convert a log payload written under an older schema into the current one.

    Accepts either the current document shape or a bare list of entries. The
    returned count covers entries whose encoding changed.
    """
    if isinstance(payload, list):
        raw_entries: list[object] = payload
        document: Mapping[str, object] = {}
    elif isinstance(payload, Mapping):
        document = payload
        entries_value = payload.get("entries", [])
        if not isinstance(entries_value, list):
            raise MalformedInput("log.entries: expected array")
        raw_entries = entries_value
    else:
        raise MalformedInput(f"log: expected object or array, got {type(payload).__name__}")

    entries: list[AuditEntry] = []
    migrated = 0
    for index, raw in enumerate(raw_entries):
        normalized, changed = _normalize_entry(raw, f"log.entries[{index}]")
        entries.append(AuditEntry.from_dict(normalized, f"log.entries[{index}]"))
        migrated += int(changed)

    meta_raw = document.get("_meta")
    pruned = meta_raw.get("entriesPruned", 0) if isinstance(meta_raw, Mapping) else 0
    if isinstance(pruned, bool) or not isinstance(pruned, int) or pruned < 0:
        pruned = 0
    name = document.get("project", project)
    ordered = tuple(entries)
    return MigrationResult(
        log=AuditLog(
            project=name if isinstance(name, str) else project,
            entries=ordered,
            meta=build_log_meta(ordered, entries_pruned=pruned),
            version=LOG_SCHEMA_VERSION,
        ),
        migrated=migrated,
    )


def needs_migration(payload: object) -> bool:
    entries = payload.get("entries") if isinstance(payload, Mapping) else None
    if not isinstance(entries, list):
        return True
    return any(
        _normalize_entry(raw, f"log.entries[{index}]")[1] for index, raw in enumerate(entries)
    )


def _normalize_entry(raw: object, path: str) -> tuple[dict[str, object], bool]:
    if not isinstance(raw, Mapping):
        raise MalformedInput(f"{path}: expected object, got {type(raw).__name__}")
    original = {str(key): value for key, value in raw.items()}
    entry: dict[str, object] = {}
    for key, value in original.items():
        target = LEGACY_KEY_MAP.get(key, key)
        if target in entry and target != key:
            continue
        entry[target] = value

    action = entry.get("action")
    if isinstance(action, str) and action in LEGACY_ACTION_MAP:
        entry["action"] = LEGACY_ACTION_MAP[action].value

    actor = entry.get("actor")
    if actor is None:
        entry["actor"] = Actor.SYSTEM.value
    elif isinstance(actor, str) and actor in LEGACY_ACTOR_MAP:
        entry["actor"] = LEGACY_ACTOR_MAP[actor].value

    if "timestamp" in entry:
        entry["timestamp"] = format_timestamp(
            parse_timestamp(entry["timestamp"], f"{path}.timestamp")
        )

    extras = {key: entry.pop(key) for key in sorted(entry) if key not in _CURRENT_KEYS}
    if extras:
        details = entry.get("details")
        if isinstance(details, Mapping):
            entry["details"] = {**details, "legacyFields": extras}
        elif details is None:
            entry["details"] = {"legacyFields": extras}
        else:
            entry["details"] = {"message": details, "legacyFields": extras}

    if not entry.get("id"):
        fingerprint = json.dumps(
            as_json_value(entry, path), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )
        entry["id"] = f"{ids.LOG_ID_PREFIX}{short_digest(f'{path}|{fingerprint}', 12)}"

    return entry, entry != original


__all__ = [
    "AuditFilter",
    "IdFactory",
    "LEGACY_ACTION_MAP",
    "LEGACY_ACTOR_MAP",
    "LEGACY_KEY_MAP",
    "MigrationResult",
    "RotationResult",
    "append_entry",
    "empty_log",
    "list_entries",
    "log_stats",
    "migrate_log",
    "needs_migration",
    "parse_since",
    "prune_by_age",
    "rotate_log",
    "serialized_size",
    "show_entry",
]
