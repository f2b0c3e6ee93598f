"""
todo-ledger — task record model

File: src/todo_ledger/domain/models.py
Last updated: 2026-10-19

Purpose
- Define the canonical shape of tasks, focus, meta, the project document and the archive
  document, with parsing from and serialization to the on-disk JSON layout.

Functional requirements
- Parsing rejects unparseable structure with ``MalformedInput`` naming the offending path.
- Parsing tolerates invariant breaches (duplicate IDs, missing ``blockedBy``...) so the
  validator can report them instead of the loader refusing the file.
- Unknown keys are preserved and written back untouched.

Non-functional requirements
- Models are immutable values; every mutation produces a new document.
- Serialization key order is fixed so checksums and diffs are stable.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import NoReturn, TypeVar

from todo_ledger.constants import ARCHIVE_SCHEMA_VERSION, PRIORITY_WEIGHT, TODO_SCHEMA_VERSION
from todo_ledger.domain.errors import MalformedInput, NotFound

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=Enum)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_MAX_JSON_DEPTH = 32


class TaskStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    BLOCKED = "blocked"
    DONE = "done"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        return PRIORITY_WEIGHT[self.value]


class TransitionType(StrEnum):
    STARTED = "started"
    COMPLETED = "completed"
    ROLLBACK = "rollback"


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds (the on-disk precision)."""
    return datetime.now(UTC).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    normalized = _as_datetime(value, "timestamp")
    return normalized.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: object, path: str = "timestamp") -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` or explicit offset) into aware UTC."""
    return _as_datetime(value, path)


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

_TASK_KEYS: tuple[str, ...] = (
    "id",
    "title",
    "status",
    "priority",
    "phase",
    "description",
    "files",
    "acceptance",
    "depends",
    "blockedBy",
    "notes",
    "labels",
    "createdAt",
    "completedAt",
)


@dataclass(frozen=True, slots=True)
class Task:
    """One tracked unit of work."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    phase: str | None = None
    description: str | None = None
    files: tuple[str, ...] = ()
    acceptance: tuple[str, ...] = ()
    depends: tuple[str, ...] = ()
    blocked_by: str | None = None
    notes: tuple[str, ...] = ()
    labels: tuple[str, ...] = ()
    created_at: datetime | None = None
    completed_at: datetime | None = None
    extra: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            _fail("Task.id", "must be a non-empty string")
        if not isinstance(self.title, str) or not self.title.strip():
            _fail(f"Task[{self.id}].title", "must be a non-empty string")
        if not isinstance(self.status, TaskStatus):
            _fail(f"Task[{self.id}].status", "must be TaskStatus")
        if not isinstance(self.priority, TaskPriority):
            _fail(f"Task[{self.id}].priority", "must be TaskPriority")
        for name in ("files", "acceptance", "depends", "notes", "labels"):
            value = getattr(self, name)
            if not isinstance(value, tuple) or not all(isinstance(item, str) for item in value):
                _fail(f"Task[{self.id}].{name}", "must be a tuple of strings")
        # Blank optional text is absent text; to_dict drops both alike.
        for name in ("phase", "description", "blocked_by"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                _fail(f"Task[{self.id}].{name}", "must be a string or null")
            if isinstance(value, str) and not value.strip():
                object.__setattr__(self, name, None)

    @property
    def is_done(self) -> bool:
        return self.status is TaskStatus.DONE

    def with_note(self, text: str, *, at: datetime) -> Task:
        return replace(self, notes=(*self.notes, f"{format_timestamp(at)}: {text}"))

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
        }
        if self.phase:
            out["phase"] = self.phase
        if self.description:
            out["description"] = self.description
        if self.files:
            out["files"] = list(self.files)
        if self.acceptance:
            out["acceptance"] = list(self.acceptance)
        if self.depends:
            out["depends"] = list(self.depends)
        if self.blocked_by:
            out["blockedBy"] = self.blocked_by
        if self.notes:
            out["notes"] = list(self.notes)
        if self.labels:
            out["labels"] = list(self.labels)
        if self.created_at is not None:
            out["createdAt"] = format_timestamp(self.created_at)
        if self.completed_at is not None:
            out["completedAt"] = format_timestamp(self.completed_at)
        for key, value in self.extra.items():
            out[key] = value
        return out

    @classmethod
    def from_dict(cls, data: object, path: str = "Task") -> Task:
        parsed = _as_object(data, path)
        if "id" not in parsed:
            _fail(path, "missing required field 'id'")
        task_id = _as_str(parsed["id"], f"{path}.id")
        item_path = f"{path}[{task_id}]"
        if "title" not in parsed:
            _fail(item_path, "missing required field 'title'")

        return cls(
            id=task_id,
            title=_as_str(parsed["title"], f"{item_path}.title"),
            status=_as_enum(TaskStatus, parsed.get("status", "pending"), f"{item_path}.status"),
            priority=_as_enum(
                TaskPriority, parsed.get("priority", "medium"), f"{item_path}.priority"
            ),
            phase=_as_optional_str(parsed.get("phase"), f"{item_path}.phase"),
            description=_as_optional_str(parsed.get("description"), f"{item_path}.description"),
            files=_as_str_tuple(parsed.get("files"), f"{item_path}.files"),
            acceptance=_as_str_tuple(parsed.get("acceptance"), f"{item_path}.acceptance"),
            depends=_as_str_tuple(parsed.get("depends"), f"{item_path}.depends"),
            blocked_by=_as_optional_str(parsed.get("blockedBy"), f"{item_path}.blockedBy"),
            notes=_as_str_tuple(parsed.get("notes"), f"{item_path}.notes"),
            labels=_as_str_tuple(parsed.get("labels"), f"{item_path}.labels"),
            created_at=_as_optional_datetime(parsed.get("createdAt"), f"{item_path}.createdAt"),
            completed_at=_as_optional_datetime(
                parsed.get("completedAt"), f"{item_path}.completedAt"
            ),
            extra=_extra_fields(parsed, _TASK_KEYS, item_path),
        )


# ---------------------------------------------------------------------------
# Focus / Meta / phase history
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Focus:
    """Singleton record of the active task and session-level notes."""

    current_task: str | None = None
    current_phase: str | None = None
    blocked_until: str | None = None
    session_note: str | None = None
    next_action: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "currentTask": self.current_task,
            "currentPhase": self.current_phase,
            "blockedUntil": self.blocked_until,
            "sessionNote": self.session_note,
            "nextAction": self.next_action,
        }

    @classmethod
    def from_dict(cls, data: object, path: str = "focus") -> Focus:
        if data is None:
            return cls()
        parsed = _as_object(data, path)
        return cls(
            current_task=_as_optional_str(parsed.get("currentTask"), f"{path}.currentTask"),
            current_phase=_as_optional_str(parsed.get("currentPhase"), f"{path}.currentPhase"),
            blocked_until=_as_optional_str(parsed.get("blockedUntil"), f"{path}.blockedUntil"),
            session_note=_as_optional_str(parsed.get("sessionNote"), f"{path}.sessionNote"),
            next_action=_as_optional_str(parsed.get("nextAction"), f"{path}.nextAction"),
        )


_META_KEYS: tuple[str, ...] = ("version", "checksum", "lastUpdated", "activeSession")


@dataclass(frozen=True, slots=True)
class Meta:
    version: str = TODO_SCHEMA_VERSION
    checksum: str | None = None
    last_updated: datetime | None = None
    active_session: str | None = None
    extra: dict[str, JSONValue] = field(default_factory=dict)

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "version": self.version,
            "checksum": self.checksum,
            "lastUpdated": (
                format_timestamp(self.last_updated) if self.last_updated is not None else None
            ),
            "activeSession": self.active_session,
        }
        out.update(self.extra)
        return out

    @classmethod
    def from_dict(cls, data: object, path: str = "_meta") -> Meta:
        if data is None:
            return cls()
        parsed = _as_object(data, path)
        return cls(
            version=_as_optional_str(parsed.get("version"), f"{path}.version")
            or TODO_SCHEMA_VERSION,
            checksum=_as_optional_str(parsed.get("checksum"), f"{path}.checksum"),
            last_updated=_as_optional_datetime(parsed.get("lastUpdated"), f"{path}.lastUpdated"),
            active_session=_as_optional_str(
                parsed.get("activeSession"), f"{path}.activeSession"
            ),
            extra=_extra_fields(parsed, _META_KEYS, path),
        )


@dataclass(frozen=True, slots=True)
class PhaseTransition:
    phase: str
    transition_type: TransitionType
    timestamp: datetime
    task_count: int = 0
    from_phase: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "phase": self.phase,
            "transitionType": self.transition_type.value,
            "timestamp": format_timestamp(self.timestamp),
            "taskCount": self.task_count,
        }
        if self.from_phase is not None:
            out["fromPhase"] = self.from_phase
        if self.reason is not None:
            out["reason"] = self.reason
        return out

    @classmethod
    def from_dict(cls, data: object, path: str = "phaseHistory[]") -> PhaseTransition:
        parsed = _as_object(data, path)
        for key in ("phase", "transitionType", "timestamp"):
            if key not in parsed:
                _fail(path, f"missing required field {key!r}")
        task_count = parsed.get("taskCount", 0)
        if isinstance(task_count, bool) or not isinstance(task_count, int) or task_count < 0:
            _fail(f"{path}.taskCount", "must be a non-negative integer")
        return cls(
            phase=_as_str(parsed["phase"], f"{path}.phase"),
            transition_type=_as_enum(
                TransitionType, parsed["transitionType"], f"{path}.transitionType"
            ),
            timestamp=_as_datetime(parsed["timestamp"], f"{path}.timestamp"),
            task_count=task_count,
            from_phase=_as_optional_str(parsed.get("fromPhase"), f"{path}.fromPhase"),
            reason=_as_optional_str(parsed.get("reason"), f"{path}.reason"),
        )


# ---------------------------------------------------------------------------
# Project document
# ---------------------------------------------------------------------------

_PROJECT_DOCUMENT_KEYS: tuple[str, ...] = (
    "version",
    "project",
    "tasks",
    "focus",
    "_meta",
    "phaseHistory",
)


@dataclass(frozen=True, slots=True)
class ProjectDocument:
    """
    The live task document, replaced wholesale on every write.

    ``tasks`` keeps insertion order and may contain duplicate IDs read from disk;
    lookups resolve to the first occurrence and the validator reports the rest.
    ``project_info`` is ``None`` when the project was stored as a bare name string,
    otherwise it holds the remaining keys of the project object.
    """

    project: str
    tasks: tuple[Task, ...] = ()
    focus: Focus = field(default_factory=Focus)
    meta: Meta = field(default_factory=Meta)
    phase_history: tuple[PhaseTransition, ...] = ()
    version: str = TODO_SCHEMA_VERSION
    project_info: dict[str, JSONValue] | None = None
    extra: dict[str, JSONValue] = field(default_factory=dict)

    def task_ids(self) -> tuple[str, ...]:
        return tuple(task.id for task in self.tasks)

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def get_task(self, task_id: str) -> Task:
        task = self.find_task(task_id)
        if task is None:
            raise NotFound("task", task_id)
        return task

    def active_tasks(self) -> tuple[Task, ...]:
        return tuple(task for task in self.tasks if task.status is TaskStatus.ACTIVE)

    def with_task(self, updated: Task) -> ProjectDocument:
        """Replace the first task sharing ``updated.id``."""
        tasks = list(self.tasks)
        for index, task in enumerate(tasks):
            if task.id == updated.id:
                tasks[index] = updated
                return replace(self, tasks=tuple(tasks))
        raise NotFound("task", updated.id)

    def with_tasks(self, tasks: Iterable[Task]) -> ProjectDocument:
        return replace(self, tasks=tuple(tasks))

    def with_focus(self, **changes: str | None) -> ProjectDocument:
        return replace(self, focus=replace(self.focus, **changes))

    def with_meta(self, **changes: object) -> ProjectDocument:
        return replace(self, meta=replace(self.meta, **changes))

    def to_dict(self) -> dict[str, JSONValue]:
        project: JSONValue
        if self.project_info is None:
            project = self.project
        else:
            project = {"name": self.project, **self.project_info}
        out: dict[str, JSONValue] = {
            "version": self.version,
            "project": project,
            "_meta": self.meta.to_dict(),
            "focus": self.focus.to_dict(),
            "tasks": [task.to_dict() for task in self.tasks],
        }
        if self.phase_history:
            out["phaseHistory"] = [item.to_dict() for item in self.phase_history]
        out.update(self.extra)
        return out

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, raw: str) -> ProjectDocument:
        return cls.from_dict(_load_json(raw, "todo document"))

    @classmethod
    def from_dict(cls, data: object) -> ProjectDocument:
        parsed = _as_object(data, "todo")
        if "tasks" not in parsed:
            _fail("todo", "missing required field 'tasks'")
        raw_tasks = parsed["tasks"]
        if not isinstance(raw_tasks, list):
            _fail("todo.tasks", f"expected array, got {type(raw_tasks).__name__}")
        tasks = tuple(
            Task.from_dict(item, f"todo.tasks[{index}]") for index, item in enumerate(raw_tasks)
        )

        project_name, project_info = _parse_project(parsed.get("project"), "todo.project")

        raw_history = parsed.get("phaseHistory") or []
        if not isinstance(raw_history, list):
            _fail("todo.phaseHistory", f"expected array, got {type(raw_history).__name__}")

        return cls(
            project=project_name,
            tasks=tasks,
            focus=Focus.from_dict(parsed.get("focus"), "todo.focus"),
            meta=Meta.from_dict(parsed.get("_meta"), "todo._meta"),
            phase_history=tuple(
                PhaseTransition.from_dict(item, f"todo.phaseHistory[{index}]")
                for index, item in enumerate(raw_history)
            ),
            version=_as_optional_str(parsed.get("version"), "todo.version") or TODO_SCHEMA_VERSION,
            project_info=project_info,
            extra=_extra_fields(parsed, _PROJECT_DOCUMENT_KEYS, "todo"),
        )


# ---------------------------------------------------------------------------
# Archive document
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArchiveInfo:
    archived_at: datetime
    reason: str
    session_id: str | None = None
    cycle_time_days: float | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "archivedAt": format_timestamp(self.archived_at),
            "reason": self.reason,
            "sessionId": self.session_id,
            "cycleTimeDays": self.cycle_time_days,
        }

    @classmethod
    def from_dict(cls, data: object, path: str) -> ArchiveInfo:
        parsed = _as_object(data, path)
        cycle_time = parsed.get("cycleTimeDays")
        if cycle_time is not None:
            cycle_time = _as_number(cycle_time, f"{path}.cycleTimeDays")
        return cls(
            archived_at=_as_datetime(parsed.get("archivedAt"), f"{path}.archivedAt"),
            reason=_as_optional_str(parsed.get("reason"), f"{path}.reason") or "unknown",
            session_id=_as_optional_str(parsed.get("sessionId"), f"{path}.sessionId"),
            cycle_time_days=cycle_time,
        )


@dataclass(frozen=True, slots=True)
class ArchivedTask:
    task: Task
    info: ArchiveInfo

    def to_dict(self) -> dict[str, JSONValue]:
        out = self.task.to_dict()
        out["_archive"] = self.info.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: object, path: str) -> ArchivedTask:
        parsed = dict(_as_object(data, path))
        raw_info = parsed.pop("_archive", None)
        task = Task.from_dict(parsed, path)
        if raw_info is None:
            # Older archives did not stamp the block; fall back to completion time.
            fallback = task.completed_at or task.created_at
            if fallback is None:
                _fail(f"{path}._archive", "missing archive metadata and task timestamps")
            info = ArchiveInfo(archived_at=fallback, reason="legacy")
        else:
            info = ArchiveInfo.from_dict(raw_info, f"{path}._archive")
        return cls(task=task, info=info)


@dataclass(frozen=True, slots=True)
class ArchiveMeta:
    total_archived: int = 0
    last_archived: datetime | None = None
    oldest_task: str | None = None
    newest_task: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "totalArchived": self.total_archived,
            "lastArchived": (
                format_timestamp(self.last_archived) if self.last_archived is not None else None
            ),
            "oldestTask": self.oldest_task,
            "newestTask": self.newest_task,
        }

    @classmethod
    def from_dict(cls, data: object, path: str = "archive._meta") -> ArchiveMeta:
        if data is None:
            return cls()
        parsed = _as_object(data, path)
        total = parsed.get("totalArchived", 0)
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            _fail(f"{path}.totalArchived", "must be a non-negative integer")
        return cls(
            total_archived=total,
            last_archived=_as_optional_datetime(parsed.get("lastArchived"), f"{path}.lastArchived"),
            oldest_task=_as_optional_str(parsed.get("oldestTask"), f"{path}.oldestTask"),
            newest_task=_as_optional_str(parsed.get("newestTask"), f"{path}.newestTask"),
        )


_ARCHIVE_DOCUMENT_KEYS: tuple[str, ...] = (
    "version",
    "project",
    "_meta",
    "archivedTasks",
    "statistics",
)


@dataclass(frozen=True, slots=True)
class ArchiveDocument:
    project: str
    archived_tasks: tuple[ArchivedTask, ...] = ()
    meta: ArchiveMeta = field(default_factory=ArchiveMeta)
    statistics: dict[str, JSONValue] = field(default_factory=dict)
    version: str = ARCHIVE_SCHEMA_VERSION
    extra: dict[str, JSONValue] = field(default_factory=dict)

    def archived_ids(self) -> tuple[str, ...]:
        return tuple(item.task.id for item in self.archived_tasks)

    def to_dict(self) -> dict[str, JSONValue]:
        out: dict[str, JSONValue] = {
            "version": self.version,
            "project": self.project,
            "_meta": self.meta.to_dict(),
            "archivedTasks": [item.to_dict() for item in self.archived_tasks],
            "statistics": dict(self.statistics),
        }
        out.update(self.extra)
        return out

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, raw: str) -> ArchiveDocument:
        return cls.from_dict(_load_json(raw, "archive document"))

    @classmethod
    def from_dict(cls, data: object) -> ArchiveDocument:
        parsed = _as_object(data, "archive")
        raw_tasks = parsed.get("archivedTasks") or []
        if not isinstance(raw_tasks, list):
            _fail("archive.archivedTasks", f"expected array, got {type(raw_tasks).__name__}")
        project_name, _ = _parse_project(parsed.get("project"), "archive.project")
        raw_statistics = parsed.get("statistics") or {}
        statistics = _as_json_value(raw_statistics, "archive.statistics")
        if not isinstance(statistics, dict):
            _fail("archive.statistics", "expected object")
        return cls(
            project=project_name,
            archived_tasks=tuple(
                ArchivedTask.from_dict(item, f"archive.archivedTasks[{index}]")
                for index, item in enumerate(raw_tasks)
            ),
            meta=ArchiveMeta.from_dict(parsed.get("_meta")),
            statistics=statistics,
            version=_as_optional_str(parsed.get("version"), "archive.version")
            or ARCHIVE_SCHEMA_VERSION,
            extra=_extra_fields(parsed, _ARCHIVE_DOCUMENT_KEYS, "archive"),
        )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _fail(path: str, message: str) -> NoReturn:
    raise MalformedInput(f"{path}: {message}")


def _load_json(raw: str, label: str) -> object:
    if not isinstance(raw, str):
        _fail(label, f"expected JSON string, got {type(raw).__name__}")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        _fail(label, f"invalid JSON: {exc}")


def _parse_project(value: object, path: str) -> tuple[str, dict[str, JSONValue] | None]:
    if value is None:
        return "", None
    if isinstance(value, str):
        return value, None
    parsed = _as_object(value, path)
    name = parsed.get("name", "")
    if not isinstance(name, str):
        _fail(f"{path}.name", f"expected string, got {type(name).__name__}")
    info = _extra_fields(parsed, ("name",), path)
    return name, info


def _as_object(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item
    return parsed


def _extra_fields(
    parsed: Mapping[str, object], known: tuple[str, ...], path: str
) -> dict[str, JSONValue]:
    return {
        key: _as_json_value(value, f"{path}.{key}")
        for key, value in parsed.items()
        if key not in known
    }


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        _fail(path, "must not be empty")
    return normalized


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    return normalized or None


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return tuple(_as_str(item, f"{path}[{index}]") for index, item in enumerate(value))


def _as_number(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed):
        _fail(path, "must be finite")
    return parsed


def _as_datetime(value: object, path: str) -> datetime:
    parsed: datetime
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime: {value!r} ({exc})")
    else:
        _fail(path, f"expected ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware UTC")
    return parsed.astimezone(UTC)


def _as_optional_datetime(value: object, path: str) -> datetime | None:
    if value is None or value == "":
        return None
    return _as_datetime(value, path)


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_json_value(value: object, path: str, *, depth: int = 0) -> JSONValue:
    if depth > _MAX_JSON_DEPTH:
        _fail(path, f"JSON nesting exceeds max depth {_MAX_JSON_DEPTH}")
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, (list, tuple)):
        return [
            _as_json_value(item, f"{path}[{index}]", depth=depth + 1)
            for index, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        parsed: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                _fail(path, f"object key must be string, got {type(key).__name__}")
            parsed[key] = _as_json_value(item, f"{path}.{key}", depth=depth + 1)
        return parsed
    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def as_json_value(value: object, path: str) -> JSONValue:
    """Validate that ``value`` is plain JSON data; raise ``MalformedInput`` otherwise."""
    return _as_json_value(value, path)


__all__ = [
    "ArchiveDocument",
    "ArchiveInfo",
    "ArchiveMeta",
    "ArchivedTask",
    "Focus",
    "JSONScalar",
    "JSONValue",
    "Meta",
    "PhaseTransition",
    "ProjectDocument",
    "TIMESTAMP_FORMAT",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TransitionType",
    "as_json_value",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
