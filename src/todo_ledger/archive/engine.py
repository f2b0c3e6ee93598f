"""
todo-ledger — archive engine

File: src/todo_ledger/archive/engine.py
Last updated: 2026-10-19

Purpose
- Decide which completed tasks leave the live document (``plan_archive``) and move
  them into the archive document (``apply_archive``).

Functional requirements
- Three modes: ``policy`` (age + overflow), ``force`` (all but the preserved
  newest), ``all`` (every completed task).
- ``preserve_recent_count`` shields the newest completions in policy and force mode.
- Candidates are ordered oldest completion first; ties break on task ID.
- Apply executes exactly the plan and is all-or-nothing.

Non-functional requirements
- Pure: documents in, documents out. Persistence order is the store's concern.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Final

from todo_ledger.constants import (
    DEFAULT_DAYS_UNTIL_ARCHIVE,
    DEFAULT_MAX_COMPLETED_TASKS,
    DEFAULT_PRESERVE_RECENT_COUNT,
    PRIORITIES,
)
from todo_ledger.domain.errors import NotFound, PreconditionFailed
from todo_ledger.domain.models import (
    ArchiveDocument,
    ArchivedTask,
    ArchiveInfo,
    ArchiveMeta,
    JSONValue,
    ProjectDocument,
    Task,
    format_timestamp,
    utc_now,
)
from todo_ledger.integrity.checksum import restamp

_EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=UTC)
_SECONDS_PER_DAY: Final[int] = 86_400


class ArchiveMode(StrEnum):
    POLICY = "policy"
    FORCE = "force"
    ALL = "all"


class ArchiveReason(StrEnum):
    AGE = "age"
    OVERFLOW = "overflow"
    FORCED = "forced"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class ArchivePolicy:
    """Retention settings; ``max_completed_tasks=0`` disables the overflow cap."""

    days_until_archive: int = DEFAULT_DAYS_UNTIL_ARCHIVE
    max_completed_tasks: int = DEFAULT_MAX_COMPLETED_TASKS
    preserve_recent_count: int = DEFAULT_PRESERVE_RECENT_COUNT
    mode: ArchiveMode = ArchiveMode.POLICY

    def __post_init__(self) -> None:
        for name in ("days_until_archive", "max_completed_tasks", "preserve_recent_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"ArchivePolicy.{name} must be a non-negative integer")
        if not isinstance(self.mode, ArchiveMode):
            raise ValueError(f"ArchivePolicy.mode must be ArchiveMode, got {self.mode!r}")


@dataclass(frozen=True, slots=True)
class ArchiveCandidate:
    task_id: str
    reason: ArchiveReason
    completed_at: datetime | None
    referenced_by: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "taskId": self.task_id,
            "reason": self.reason.value,
            "completedAt": (
                format_timestamp(self.completed_at) if self.completed_at is not None else None
            ),
            "referencedBy": list(self.referenced_by),
        }


@dataclass(frozen=True, slots=True)
class ArchivePlan:
    mode: ArchiveMode
    candidates: tuple[ArchiveCandidate, ...] = ()
    preserved: tuple[str, ...] = ()

    @property
    def task_ids(self) -> tuple[str, ...]:
        return tuple(candidate.task_id for candidate in self.candidates)

    @property
    def is_empty(self) -> bool:
        return not self.candidates

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "mode": self.mode.value,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "preserved": list(self.preserved),
        }


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    document: ProjectDocument
    archive: ArchiveDocument
    archived_ids: tuple[str, ...]
    plan: ArchivePlan

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "archived": list(self.archived_ids),
            "count": len(self.archived_ids),
            "totalArchived": self.archive.meta.total_archived,
            "checksum": self.document.meta.checksum,
        }


def plan_archive(
    document: ProjectDocument,
    policy: ArchivePolicy | None = None,
    *,
    now: datetime | None = None,
) -> ArchivePlan:
    """Select the done tasks that ``policy`` retires; never mutates ``document``."""
    active_policy = policy if policy is not None else ArchivePolicy()
    moment = now if now is not None else utc_now()

    done = [task for task in document.tasks if task.is_done]
    newest_first = sorted(done, key=lambda task: (_completion_key(task), task.id), reverse=True)

    if active_policy.mode is ArchiveMode.ALL:
        preserved: list[Task] = []
        selected = [(task, ArchiveReason.ALL) for task in newest_first]
    else:
        keep = active_policy.preserve_recent_count
        preserved = newest_first[:keep]
        eligible = newest_first[keep:]
        if active_policy.mode is ArchiveMode.FORCE:
            selected = [(task, ArchiveReason.FORCED) for task in eligible]
        else:
            selected = _select_by_policy(eligible, len(done), active_policy, moment)

    chosen = {task.id for task, _ in selected}
    candidates = tuple(
        ArchiveCandidate(
            task_id=task.id,
            reason=reason,
            completed_at=task.completed_at,
            referenced_by=_live_dependents(document, task.id, chosen),
        )
        for task, reason in sorted(
            selected, key=lambda item: (_completion_key(item[0]), item[0].id)
        )
    )
    return ArchivePlan(
        mode=active_policy.mode,
        candidates=candidates,
        preserved=tuple(task.id for task in preserved),
    )


def apply_archive(
    document: ProjectDocument,
    archive: ArchiveDocument,
    policy: ArchivePolicy | None = None,
    *,
    plan: ArchivePlan | None = None,
    now: datetime | None = None,
    session_id: str | None = None,
) -> ArchiveResult:
    """
    Move the planned tasks into ``archive``.

    Every candidate is checked before anything moves: a candidate that is not a
    live done task, or whose ID is already archived, raises and leaves both
    documents untouched. Dependency edges pointing at archived tasks are kept.
    """
    moment = now if now is not None else utc_now()
    batch_plan = plan if plan is not None else plan_archive(document, policy, now=moment)
    if batch_plan.is_empty:
        return ArchiveResult(
            document=document, archive=archive, archived_ids=(), plan=batch_plan
        )

    already_archived = set(archive.archived_ids())
    moving: list[Task] = []
    for candidate in batch_plan.candidates:
        task = document.find_task(candidate.task_id)
        if task is None:
            raise NotFound("task", candidate.task_id)
        if not task.is_done:
            raise PreconditionFailed(
                f"cannot archive {task.id}: task is {task.status.value}, not done",
                task_ids=(task.id,),
            )
        if task.id in already_archived:
            raise PreconditionFailed(
                f"cannot archive {task.id}: id already exists in the archive",
                task_ids=(task.id,),
            )
        moving.append(task)

    reasons = {candidate.task_id: candidate.reason for candidate in batch_plan.candidates}
    stamped = tuple(
        ArchivedTask(
            task=task,
            info=ArchiveInfo(
                archived_at=moment,
                reason=reasons[task.id].value,
                session_id=session_id,
                cycle_time_days=cycle_time_days(task),
            ),
        )
        for task in moving
    )
    archived_tasks = (*archive.archived_tasks, *stamped)

    completions = [task.completed_at for task in moving if task.completed_at is not None]
    meta = ArchiveMeta(
        total_archived=archive.meta.total_archived + len(stamped),
        last_archived=moment,
        oldest_task=archive.meta.oldest_task
        or (format_timestamp(min(completions)) if completions else None),
        newest_task=format_timestamp(max(completions)) if completions else archive.meta.newest_task,
    )
    updated_archive = replace(
        archive,
        archived_tasks=archived_tasks,
        meta=meta,
        statistics=archive_statistics(archived_tasks),
    )

    moved_ids = {task.id for task in moving}
    remaining = tuple(task for task in document.tasks if task.id not in moved_ids)
    updated_document = restamp(document.with_tasks(remaining), now=moment)
    return ArchiveResult(
        document=updated_document,
        archive=updated_archive,
        archived_ids=tuple(task.id for task in moving),
        plan=batch_plan,
    )


def cycle_time_days(task: Task) -> int | None:
    """Whole days between creation and completion, or ``None`` when unknown."""
    if task.created_at is None or task.completed_at is None:
        return None
    elapsed = (task.completed_at - task.created_at).total_seconds()
    return max(0, int(elapsed // _SECONDS_PER_DAY))


def archive_statistics(archived: Iterable[ArchivedTask]) -> dict[str, JSONValue]:
    items = tuple(archived)
    by_phase = Counter(item.task.phase or "unassigned" for item in items)
    by_priority = {priority: 0 for priority in reversed(PRIORITIES)}
    for item in items:
        by_priority[item.task.priority.value] += 1
    by_label = Counter(label for item in items for label in item.task.labels)
    cycle_times = [
        item.info.cycle_time_days for item in items if item.info.cycle_time_days is not None
    ]
    average = round(sum(cycle_times) / len(cycle_times), 1) if cycle_times else None
    return {
        "byPhase": dict(sorted(by_phase.items())),
        "byPriority": dict(by_priority),
        "byLabel": dict(sorted(by_label.items())),
        "averageCycleTime": average,
    }


def _select_by_policy(
    eligible: list[Task],
    done_count: int,
    policy: ArchivePolicy,
    now: datetime,
) -> list[tuple[Task, ArchiveReason]]:
    cutoff = now - timedelta(days=policy.days_until_archive)
    aged = [task for task in eligible if _completion_key(task) < cutoff]
    selected = [(task, ArchiveReason.AGE) for task in aged]

    if policy.max_completed_tasks:
        remaining = done_count - len(aged)
        overflow = remaining - policy.max_completed_tasks
        if overflow > 0:
            aged_ids = {task.id for task in aged}
            oldest_first = [task for task in reversed(eligible) if task.id not in aged_ids]
            selected.extend((task, ArchiveReason.OVERFLOW) for task in oldest_first[:overflow])
    return selected


def _completion_key(task: Task) -> datetime:
    if task.completed_at is not None:
        return task.completed_at
    if task.created_at is not None:
        return task.created_at
    return _EPOCH


def _live_dependents(
    document: ProjectDocument, task_id: str, leaving: set[str]
) -> tuple[str, ...]:
    return tuple(
        sorted(
            task.id
            for task in document.tasks
            if task.id not in leaving and task_id in task.depends
        )
    )


__all__ = [
    "ArchiveCandidate",
    "ArchiveMode",
    "ArchivePlan",
    "ArchivePolicy",
    "ArchiveReason",
    "ArchiveResult",
    "apply_archive",
    "archive_statistics",
    "cycle_time_days",
    "plan_archive",
]
