"""Audit entry and audit log document definitions with strict parsing."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from todo_ledger.constants import LOG_SCHEMA_VERSION
from todo_ledger.domain.errors import MalformedInput
from todo_ledger.domain.models import (
    JSONValue,
    as_json_value,
    format_timestamp,
    parse_timestamp,
)


class AuditAction(StrEnum):
    """Closed set of state-changing actions recorded in the audit log."""

    SESSION_START = "session_start"
    SESSION_END = "session_end"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    STATUS_CHANGED = "status_changed"
    TASK_ARCHIVED = "task_archived"
    FOCUS_CHANGED = "focus_changed"
    CONFIG_CHANGED = "config_changed"
    VALIDATION_RUN = "validation_run"
    CHECKSUM_UPDATED = "checksum_updated"
    ERROR_OCCURRED = "error_occurred"
    PHASE_INHERITED = "phase_inherited"
    PHASE_CHANGED = "phase_changed"
    PHASE_STARTED = "phase_started"
    PHASE_COMPLETED = "phase_completed"
    PHASE_AUTO_ADVANCED = "phase_auto_advanced"
    BACKUP_RESTORED = "backup_restored"


class Actor(StrEnum):
    HUMAN = "human"
    CLAUDE = "claude"
    SYSTEM = "system"


_ENTRY_KEYS: frozenset[str] = frozenset(
    {"id", "timestamp", "sessionId", "action", "actor", "taskId", "before", "after", "details"}
)


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """One immutable audit record."""

    id: str
    timestamp: datetime
    action: AuditAction
    actor: Actor = Actor.SYSTEM
    session_id: str | None = None
    task_id: str | None = None
    before: JSONValue = None
    after: JSONValue = None
    details: JSONValue = None

    def __post_init__(self) -> None:
        if not isinstance(self.action, AuditAction):
            raise MalformedInput(f"AuditEntry.action: must be AuditAction, got {self.action!r}")
        if not isinstance(self.actor, Actor):
            raise MalformedInput(f"AuditEntry.actor: must be Actor, got {self.actor!r}")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "sessionId": self.session_id,
            "action": self.action.value,
            "actor": self.actor.value,
            "taskId": self.task_id,
            "before": self.before,
            "after": self.after,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: object, path: str = "entry") -> AuditEntry:
        parsed = _as_mapping(data, path)
        unknown = sorted(key for key in parsed if key not in _ENTRY_KEYS)
        if unknown:
            raise MalformedInput(f"{path}: unexpected fields: {unknown}")
        for key in ("id", "timestamp", "action"):
            if key not in parsed:
                raise MalformedInput(f"{path}: missing required field {key!r}")

        entry_id = parsed["id"]
        if not isinstance(entry_id, str) or not entry_id:
            raise MalformedInput(f"{path}.id: expected non-empty string")

        return cls(
            id=entry_id,
            timestamp=parse_timestamp(parsed["timestamp"], f"{path}.timestamp"),
            action=parse_action(parsed["action"], f"{path}.action"),
            actor=parse_actor(parsed.get("actor", Actor.SYSTEM.value), f"{path}.actor"),
            session_id=_optional_text(parsed.get("sessionId"), f"{path}.sessionId"),
            task_id=_optional_text(parsed.get("taskId"), f"{path}.taskId"),
            before=as_json_value(parsed.get("before"), f"{path}.before"),
            after=as_json_value(parsed.get("after"), f"{path}.after"),
            details=as_json_value(parsed.get("details"), f"{path}.details"),
        )


@dataclass(frozen=True, slots=True)
class LogMeta:
    total_entries: int = 0
    first_entry: datetime | None = None
    last_entry: datetime | None = None
    entries_pruned: int = 0

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "totalEntries": self.total_entries,
            "firstEntry": (
                format_timestamp(self.first_entry) if self.first_entry is not None else None
            ),
            "lastEntry": format_timestamp(self.last_entry) if self.last_entry is not None else None,
            "entriesPruned": self.entries_pruned,
        }


@dataclass(frozen=True, slots=True)
class AuditLog:
    """Append-only audit document; ``entries`` is in chronological append order."""

    project: str = ""
    entries: tuple[AuditEntry, ...] = ()
    meta: LogMeta = field(default_factory=LogMeta)
    version: str = LOG_SCHEMA_VERSION

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "version": self.version,
            "project": self.project,
            "_meta": self.meta.to_dict(),
            "entries": [entry.to_dict() for entry in self.entries],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: object) -> AuditLog:
        """Parse a current-schema log; legacy payloads must go through ``migrate_log``."""
        parsed = _as_mapping(data, "log")
        raw_entries = parsed.get("entries", [])
        if not isinstance(raw_entries, list):
            raise MalformedInput(f"log.entries: expected array, got {type(raw_entries).__name__}")
        entries = tuple(
            AuditEntry.from_dict(item, f"log.entries[{index}]")
            for index, item in enumerate(raw_entries)
        )
        meta_raw = _as_mapping(parsed.get("_meta") or {}, "log._meta")
        pruned = meta_raw.get("entriesPruned", 0)
        if isinstance(pruned, bool) or not isinstance(pruned, int) or pruned < 0:
            raise MalformedInput("log._meta.entriesPruned: must be a non-negative integer")
        project = parsed.get("project", "")
        if not isinstance(project, str):
            raise MalformedInput(f"log.project: expected string, got {type(project).__name__}")
        version = parsed.get("version", LOG_SCHEMA_VERSION)
        if not isinstance(version, str):
            raise MalformedInput(f"log.version: expected string, got {type(version).__name__}")
        return cls(
            project=project,
            entries=entries,
            meta=build_log_meta(entries, entries_pruned=pruned),
            version=version,
        )


def build_log_meta(entries: tuple[AuditEntry, ...], *, entries_pruned: int) -> LogMeta:
    """Derive ``_meta`` from the retained entries; only the prune counter is carried."""
    if not entries:
        return LogMeta(total_entries=0, entries_pruned=entries_pruned)
    return LogMeta(
        total_entries=len(entries),
        first_entry=entries[0].timestamp,
        last_entry=entries[-1].timestamp,
        entries_pruned=entries_pruned,
    )


def parse_action(value: object, path: str = "action") -> AuditAction:
    if isinstance(value, AuditAction):
        return value
    if isinstance(value, str):
        try:
            return AuditAction(value)
        except ValueError:
            pass
    allowed = ", ".join(item.value for item in AuditAction)
    raise MalformedInput(f"{path}: invalid action {value!r}; expected one of: {allowed}")


def parse_actor(value: object, path: str = "actor") -> Actor:
    if isinstance(value, Actor):
        return value
    if isinstance(value, str):
        try:
            return Actor(value)
        except ValueError:
            pass
    allowed = ", ".join(item.value for item in Actor)
    raise MalformedInput(f"{path}: invalid actor {value!r}; expected one of: {allowed}")


def _as_mapping(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        raise MalformedInput(f"{path}: expected object, got {type(value).__name__}")
    return {str(key): item for key, item in value.items()}


def _optional_text(value: object, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedInput(f"{path}: expected string, got {type(value).__name__}")
    return value or None


__all__ = [
    "Actor",
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    "LogMeta",
    "build_log_meta",
    "parse_action",
    "parse_actor",
]
