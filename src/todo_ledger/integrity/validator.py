"""
todo-ledger — dependency graph and invariant validator

File: src/todo_ledger/integrity/validator.py
Last updated: 2026-10-19

Purpose
- Certify a project document before any mutation: task identity, dependency existence,
  acyclicity, the single-active rule, status/field consistency, focus consistency,
  checksum integrity and stale work.

Functional requirements
- Never raise on a parsed document; every problem becomes an itemized ``Violation``.
- Checks run in a fixed order and collect everything (no short-circuit).
- Cycle reports are deterministic for identical input.
- Cycles and multiple active tasks are always blocking; strict mode makes every
  violation blocking; otherwise a configurable set of kinds are warnings.
- A done task found both live and archived (an interrupted archive batch) is repaired by
  dropping the live copy; a copy that is not done is left for a human.
- Auto-fix is limited to mechanically safe repairs and never touches the checksum of a
  document whose checksum already disagreed.

Non-functional requirements
- Pure function of its inputs (``now`` is injectable).
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Final

from todo_ledger.constants import DEFAULT_STALE_DAYS
from todo_ledger.domain import ids
from todo_ledger.domain.models import (
    ArchiveDocument,
    JSONValue,
    ProjectDocument,
    Task,
    TaskStatus,
    utc_now,
)
from todo_ledger.integrity.checksum import checksum_status, restamp
from todo_ledger.planning.dependency_graph import DependencyGraph


class ViolationKind(StrEnum):
    DUPLICATE_TASK_ID = "duplicate_task_id"
    INVALID_TASK_ID = "invalid_task_id"
    CROSS_FILE_DUPLICATE = "cross_file_duplicate"
    MISSING_DEPENDENCY = "missing_dependency"
    ARCHIVED_DEPENDENCY = "archived_dependency"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    MULTIPLE_ACTIVE_TASKS = "multiple_active_tasks"
    BLOCKED_WITHOUT_REASON = "blocked_without_reason"
    DONE_WITHOUT_COMPLETION = "done_without_completion"
    ACTIVE_WITH_UNMET_DEPENDENCY = "active_with_unmet_dependency"
    STALE_STATUS_FIELD = "stale_status_field"
    FOCUS_MISMATCH = "focus_mismatch"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    STALE_TASK = "stale_task"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


RULES: Final[dict[ViolationKind, str]] = {
    ViolationKind.DUPLICATE_TASK_ID: "task ids must be unique",
    ViolationKind.INVALID_TASK_ID: "task ids must match T + 3 or more digits",
    ViolationKind.CROSS_FILE_DUPLICATE: "a task id may not be both live and archived",
    ViolationKind.MISSING_DEPENDENCY: "every dependency must name an existing task",
    ViolationKind.ARCHIVED_DEPENDENCY: "dependency refers to an archived task",
    ViolationKind.CIRCULAR_DEPENDENCY: "the dependency graph must be acyclic",
    ViolationKind.MULTIPLE_ACTIVE_TASKS: "at most one task may be active",
    ViolationKind.BLOCKED_WITHOUT_REASON: "a blocked task needs a non-empty blockedBy",
    ViolationKind.DONE_WITHOUT_COMPLETION: "a done task needs completedAt",
    ViolationKind.ACTIVE_WITH_UNMET_DEPENDENCY: "an active task needs all dependencies done",
    ViolationKind.STALE_STATUS_FIELD: "blockedBy/completedAt only belong to blocked/done tasks",
    ViolationKind.FOCUS_MISMATCH: "focus.currentTask must name the active task (or be empty)",
    ViolationKind.CHECKSUM_MISMATCH: "_meta.checksum must match the task list",
    ViolationKind.STALE_TASK: "pending task has not moved for a long time",
}

ALWAYS_FATAL: Final[frozenset[ViolationKind]] = frozenset(
    {ViolationKind.CIRCULAR_DEPENDENCY, ViolationKind.MULTIPLE_ACTIVE_TASKS}
)
ALWAYS_WARNING: Final[frozenset[ViolationKind]] = frozenset({ViolationKind.STALE_TASK})
DEFAULT_WARNING_KINDS: Final[frozenset[ViolationKind]] = frozenset(
    {
        ViolationKind.ARCHIVED_DEPENDENCY,
        ViolationKind.ACTIVE_WITH_UNMET_DEPENDENCY,
        ViolationKind.CHECKSUM_MISMATCH,
        ViolationKind.STALE_TASK,
    }
)


@dataclass(frozen=True, slots=True)
class Violation:
    kind: ViolationKind
    task_ids: tuple[str, ...]
    message: str
    severity: Severity = Severity.ERROR
    details: dict[str, JSONValue] = field(default_factory=dict)

    @property
    def rule(self) -> str:
        return RULES[self.kind]

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR

    def describe(self) -> str:
        return f"[{self.severity.value}] {self.kind.value}: {self.message} ({self.rule})"

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "taskIds": list(self.task_ids),
            "message": self.message,
            "rule": self.rule,
            "details": dict(self.details),
        }


@dataclass(frozen=True, slots=True)
class ValidationReport:
    violations: tuple[Violation, ...]
    document: ProjectDocument
    fixed: tuple[str, ...] = ()
    strict: bool = False

    @property
    def errors(self) -> tuple[Violation, ...]:
        return tuple(item for item in self.violations if item.is_blocking)

    @property
    def warnings(self) -> tuple[Violation, ...]:
        return tuple(item for item in self.violations if not item.is_blocking)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        """0 clean (warnings allowed), 1 blocking violations or fixes applied."""
        return 1 if self.errors or self.fixed else 0

    def of_kind(self, kind: ViolationKind) -> tuple[Violation, ...]:
        return tuple(item for item in self.violations if item.kind is kind)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "valid": self.is_valid,
            "strict": self.strict,
            "exitCode": self.exit_code,
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "violations": [item.to_dict() for item in self.violations],
            "fixed": list(self.fixed),
        }


def validate(
    document: ProjectDocument,
    *,
    strict: bool = False,
    fix: bool = False,
    archive: ArchiveDocument | None = None,
    warning_kinds: Iterable[ViolationKind] = DEFAULT_WARNING_KINDS,
    stale_days: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> ValidationReport:
    """Validate ``document`` and optionally apply the safe auto-fix set."""
    moment = now if now is not None else utc_now()
    warnings = frozenset(warning_kinds)

    def run(doc: ProjectDocument) -> tuple[Violation, ...]:
        found = _collect(doc, archive=archive, stale_days=stale_days, now=moment)
        return tuple(
            replace(item, severity=severity_for(item.kind, strict=strict, warning_kinds=warnings))
            for item in found
        )

    violations = run(document)
    if not fix:
        return ValidationReport(violations=violations, document=document, strict=strict)

    fixed_document, fixed = apply_fixes(document, violations, now=moment)
    if not fixed:
        return ValidationReport(violations=violations, document=document, strict=strict)

    if checksum_status(document).matches:
        fixed_document = restamp(fixed_document, now=moment)
    return ValidationReport(
        violations=run(fixed_document),
        document=fixed_document,
        fixed=fixed,
        strict=strict,
    )


def severity_for(
    kind: ViolationKind,
    *,
    strict: bool,
    warning_kinds: frozenset[ViolationKind] = DEFAULT_WARNING_KINDS,
) -> Severity:
    if kind in ALWAYS_FATAL:
        return Severity.ERROR
    if kind in ALWAYS_WARNING:
        return Severity.WARNING
    if strict:
        return Severity.ERROR
    return Severity.WARNING if kind in warning_kinds else Severity.ERROR


def apply_fixes(
    document: ProjectDocument,
    violations: Iterable[Violation],
    *,
    now: datetime,
) -> tuple[ProjectDocument, tuple[str, ...]]:
    """Apply the safe repairs for ``violations``; returns the new document and a log."""
    violations = tuple(violations)
    kinds = {item.kind for item in violations}
    fixed: list[str] = []
    live_ids = set(document.task_ids())
    archived_copies = _archived_copy_ids(violations)

    tasks: list[Task] = []
    for task in document.tasks:
        if task.is_done and task.id in archived_copies:
            fixed.append(f"{task.id}: dropped live copy already in the archive")
            continue
        updated = task
        if ViolationKind.MISSING_DEPENDENCY in kinds:
            archived_ok = _archived_dependency_ids(violations, task.id)
            kept = tuple(dep for dep in task.depends if dep in live_ids or dep in archived_ok)
            for dep in task.depends:
                if dep not in kept:
                    fixed.append(f"{task.id}: removed missing dependency {dep}")
            updated = replace(updated, depends=kept)
        if ViolationKind.STALE_STATUS_FIELD in kinds:
            if updated.blocked_by is not None and updated.status is not TaskStatus.BLOCKED:
                fixed.append(f"{task.id}: cleared blockedBy on {updated.status.value} task")
                updated = replace(updated, blocked_by=None)
            if updated.completed_at is not None and updated.status is not TaskStatus.DONE:
                fixed.append(f"{task.id}: cleared completedAt on {updated.status.value} task")
                updated = replace(updated, completed_at=None)
        if (
            ViolationKind.DONE_WITHOUT_COMPLETION in kinds
            and updated.status is TaskStatus.DONE
            and updated.completed_at is None
        ):
            fixed.append(f"{task.id}: set completedAt")
            updated = replace(updated, completed_at=now)
        tasks.append(updated)

    result = document.with_tasks(tasks)

    if ViolationKind.FOCUS_MISMATCH in kinds:
        active = result.active_tasks()
        if len(active) <= 1:
            expected = active[0].id if active else None
            if result.focus.current_task != expected:
                fixed.append(
                    f"focus: currentTask {result.focus.current_task or '<empty>'} -> "
                    f"{expected or '<empty>'}"
                )
                result = result.with_focus(current_task=expected)

    return result, tuple(fixed)


def _archived_copy_ids(violations: Iterable[Violation]) -> set[str]:
    """Ids left in both files by an interrupted archive batch."""
    return {
        item.task_ids[0]
        for item in violations
        if item.kind is ViolationKind.CROSS_FILE_DUPLICATE
    }


def _archived_dependency_ids(violations: Iterable[Violation], task_id: str) -> set[str]:
    return {
        str(item.details.get("dependency"))
        for item in violations
        if item.kind is ViolationKind.ARCHIVED_DEPENDENCY and item.task_ids[0] == task_id
    }


def _collect(
    document: ProjectDocument,
    *,
    archive: ArchiveDocument | None,
    stale_days: int,
    now: datetime,
) -> list[Violation]:
    found: list[Violation] = []
    found.extend(_check_identity(document, archive))
    found.extend(_check_existence(document, archive))
    found.extend(_check_cycles(document))
    found.extend(_check_single_active(document))
    found.extend(_check_fields(document))
    found.extend(_check_focus(document))
    found.extend(_check_checksum(document))
    found.extend(_check_staleness(document, stale_days=stale_days, now=now))
    return found


def _check_identity(
    document: ProjectDocument, archive: ArchiveDocument | None
) -> Iterable[Violation]:
    counts = Counter(document.task_ids())
    for task_id, count in counts.items():
        if count > 1:
            yield Violation(
                ViolationKind.DUPLICATE_TASK_ID,
                (task_id,),
                f"task {task_id} appears {count} times in the live list",
                details={"count": count, "location": "live"},
            )
    for task_id in counts:
        if not ids.is_valid_task_id(task_id):
            yield Violation(
                ViolationKind.INVALID_TASK_ID,
                (task_id,),
                f"task id {task_id!r} is malformed",
            )

    if archive is None:
        return
    archived_counts = Counter(archive.archived_ids())
    for task_id, count in archived_counts.items():
        if count > 1:
            yield Violation(
                ViolationKind.DUPLICATE_TASK_ID,
                (task_id,),
                f"task {task_id} appears {count} times in the archive",
                details={"count": count, "location": "archive"},
            )
    for task_id in sorted(set(counts) & set(archived_counts)):
        yield Violation(
            ViolationKind.CROSS_FILE_DUPLICATE,
            (task_id,),
            f"task {task_id} exists in both the live list and the archive",
        )


def _check_existence(
    document: ProjectDocument, archive: ArchiveDocument | None
) -> Iterable[Violation]:
    live_ids = set(document.task_ids())
    archived_ids = set(archive.archived_ids()) if archive is not None else set()
    for task in document.tasks:
        for dep in task.depends:
            if dep in live_ids:
                continue
            if dep in archived_ids:
                yield Violation(
                    ViolationKind.ARCHIVED_DEPENDENCY,
                    (task.id, dep),
                    f"task {task.id} depends on archived task {dep}",
                    details={"dependency": dep},
                )
            else:
                yield Violation(
                    ViolationKind.MISSING_DEPENDENCY,
                    (task.id, dep),
                    f"task {task.id} depends on missing task {dep}",
                    details={"dependency": dep},
                )


def _check_cycles(document: ProjectDocument) -> Iterable[Violation]:
    for cycle in DependencyGraph.from_tasks(document.tasks).detect_cycles():
        members = tuple(dict.fromkeys(cycle))
        yield Violation(
            ViolationKind.CIRCULAR_DEPENDENCY,
            members,
            f"circular dependency: {' -> '.join(cycle)}",
            details={"cycle": list(cycle)},
        )


def _check_single_active(document: ProjectDocument) -> Iterable[Violation]:
    active = tuple(task.id for task in document.active_tasks())
    if len(active) > 1:
        yield Violation(
            ViolationKind.MULTIPLE_ACTIVE_TASKS,
            active,
            f"{len(active)} tasks are active: {', '.join(active)}",
        )


def _check_fields(document: ProjectDocument) -> Iterable[Violation]:
    status_by_id: dict[str, TaskStatus] = {}
    for task in document.tasks:
        status_by_id.setdefault(task.id, task.status)

    for task in document.tasks:
        if task.status is TaskStatus.BLOCKED and not task.blocked_by:
            yield Violation(
                ViolationKind.BLOCKED_WITHOUT_REASON,
                (task.id,),
                f"task {task.id} is blocked without a blockedBy reason",
            )
        if task.status is TaskStatus.DONE and task.completed_at is None:
            yield Violation(
                ViolationKind.DONE_WITHOUT_COMPLETION,
                (task.id,),
                f"task {task.id} is done without completedAt",
            )
        if task.status is TaskStatus.ACTIVE:
            unmet = tuple(
                dep
                for dep in task.depends
                if dep in status_by_id and status_by_id[dep] is not TaskStatus.DONE
            )
            if unmet:
                yield Violation(
                    ViolationKind.ACTIVE_WITH_UNMET_DEPENDENCY,
                    (task.id, *unmet),
                    f"task {task.id} is active but depends on unfinished {', '.join(unmet)}",
                    details={"unmet": list(unmet)},
                )
        stale_fields = []
        if task.blocked_by is not None and task.status is not TaskStatus.BLOCKED:
            stale_fields.append("blockedBy")
        if task.completed_at is not None and task.status is not TaskStatus.DONE:
            stale_fields.append("completedAt")
        if stale_fields:
            yield Violation(
                ViolationKind.STALE_STATUS_FIELD,
                (task.id,),
                f"task {task.id} is {task.status.value} but still has {', '.join(stale_fields)}",
                details={"fields": list(stale_fields)},
            )


def _check_focus(document: ProjectDocument) -> Iterable[Violation]:
    active = document.active_tasks()
    if len(active) > 1:
        # Ambiguous; the multiple-active violation already covers it.
        return
    expected = active[0].id if active else None
    actual = document.focus.current_task
    if expected != actual:
        subject = tuple(item for item in (expected, actual) if item)
        yield Violation(
            ViolationKind.FOCUS_MISMATCH,
            subject,
            f"focus.currentTask is {actual or '<empty>'} but expected {expected or '<empty>'}",
            details={"expected": expected, "actual": actual},
        )


def _check_checksum(document: ProjectDocument) -> Iterable[Violation]:
    status = checksum_status(document)
    if not status.matches:
        yield Violation(
            ViolationKind.CHECKSUM_MISMATCH,
            (),
            f"stored checksum {status.stored or '<none>'} != computed {status.computed}",
            details={"stored": status.stored, "computed": status.computed},
        )


def _check_staleness(
    document: ProjectDocument, *, stale_days: int, now: datetime
) -> Iterable[Violation]:
    if stale_days <= 0:
        return
    cutoff = now - timedelta(days=stale_days)
    for task in document.tasks:
        if task.status is TaskStatus.PENDING and task.created_at is not None:
            if task.created_at < cutoff:
                age = (now - task.created_at).days
                yield Violation(
                    ViolationKind.STALE_TASK,
                    (task.id,),
                    f"task {task.id} has been pending for {age} days",
                    details={"ageDays": age},
                )


__all__ = [
    "ALWAYS_FATAL",
    "ALWAYS_WARNING",
    "DEFAULT_WARNING_KINDS",
    "RULES",
    "Severity",
    "ValidationReport",
    "Violation",
    "ViolationKind",
    "apply_fixes",
    "severity_for",
    "validate",
]
