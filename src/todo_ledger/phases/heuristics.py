"""
todo-ledger — phase heuristics

File: src/todo_ledger/phases/heuristics.py
Last updated: 2026-10-19

Purpose
- Infer the working phase, detect phases whose tasks are all done, and pick the
  next phase when auto-advance is enabled.

Functional requirements
- Completion is reported once: a phase whose latest ``phaseHistory`` transition is
  ``completed`` is not reported again until a later ``started`` transition reopens it.
- Phases with zero tasks are never complete.
- Auto-advance refuses to choose between several simultaneously completed phases.
- Manual control (set, start, complete, advance) resolves what auto-advance refused to pick;
  completing a phase by hand requires every one of its tasks to be done.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Final

from todo_ledger.domain.errors import NotFound, PolicyAmbiguous, PreconditionFailed
from todo_ledger.domain.models import (
    JSONValue,
    PhaseTransition,
    ProjectDocument,
    Task,
    TaskStatus,
    TransitionType,
    utc_now,
)

_OPEN_STATUSES: Final[frozenset[TaskStatus]] = frozenset({TaskStatus.ACTIVE, TaskStatus.PENDING})
_UNDATED: Final[datetime] = datetime.max.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class PhaseSummary:
    phase: str
    total: int
    done: int
    active: int
    pending: int
    blocked: int
    state: str

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.done == self.total

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "phase": self.phase,
            "total": self.total,
            "done": self.done,
            "active": self.active,
            "pending": self.pending,
            "blocked": self.blocked,
            "state": self.state,
        }


def infer_current_phase(document: ProjectDocument) -> str:
    """Focus task's phase, else the phase with most open tasks (ties alphabetical), else ``""``."""
    if document.focus.current_task:
        focused = document.find_task(document.focus.current_task)
        if focused is not None and focused.phase:
            return focused.phase

    open_counts = Counter(
        task.phase for task in document.tasks if task.phase and task.status in _OPEN_STATUSES
    )
    if not open_counts:
        return ""
    return min(open_counts, key=lambda phase: (-open_counts[phase], phase))


def assign_phase_to_new_task(task: Task, document: ProjectDocument) -> str:
    """Phase for a task about to be inserted into ``document``."""
    if task.phase:
        return task.phase
    return infer_current_phase(document)


def latest_transition(document: ProjectDocument, phase: str) -> PhaseTransition | None:
    for transition in reversed(document.phase_history):
        if transition.phase == phase:
            return transition
    return None


def is_phase_marked_completed(document: ProjectDocument, phase: str) -> bool:
    latest = latest_transition(document, phase)
    return latest is not None and latest.transition_type is TransitionType.COMPLETED


def detect_phase_completion(
    document: ProjectDocument,
    just_completed_ids: Iterable[str],
) -> tuple[str, ...]:
    """Phases touched by ``just_completed_ids`` that are now fully done and not yet recorded."""
    touched: set[str] = set()
    for task_id in just_completed_ids:
        task = document.find_task(task_id)
        if task is not None and task.phase:
            touched.add(task.phase)

    completed: list[str] = []
    for phase in sorted(touched):
        members = [task for task in document.tasks if task.phase == phase]
        if not members or not all(task.is_done for task in members):
            continue
        if is_phase_marked_completed(document, phase):
            continue
        completed.append(phase)
    return tuple(completed)


def mark_phases_completed(
    document: ProjectDocument,
    phases: Iterable[str],
    *,
    now: datetime | None = None,
) -> ProjectDocument:
    moment = now if now is not None else utc_now()
    history = list(document.phase_history)
    for phase in phases:
        if is_phase_marked_completed(replace(document, phase_history=tuple(history)), phase):
            continue
        history.append(
            PhaseTransition(
                phase=phase,
                transition_type=TransitionType.COMPLETED,
                timestamp=moment,
                task_count=_task_count(document, phase),
            )
        )
    return replace(document, phase_history=tuple(history))


def auto_advance(
    document: ProjectDocument,
    completed_phases: Iterable[str],
    *,
    enabled: bool,
) -> str | None:
    """
    Pick the phase to move to after ``completed_phases`` finished.

    Returns ``None`` when disabled, when nothing completed, or when no phase has
    open work. The next phase is the earliest created (first task ``createdAt``,
    ties by label) that still has a task not done.
    """
    finished = tuple(dict.fromkeys(completed_phases))
    if not enabled or not finished:
        return None
    if len(finished) > 1:
        raise PolicyAmbiguous(
            "several phases completed at once; choose the next phase explicitly",
            candidates=sorted(finished),
        )
    return next_phase_after(document, finished)


def next_phase_after(document: ProjectDocument, finished: Iterable[str]) -> str | None:
    """Earliest-created phase outside ``finished`` that still has a task not done."""
    excluded = frozenset(finished)
    first_created: dict[str, datetime] = {}
    has_open: set[str] = set()
    for task in document.tasks:
        if not task.phase or task.phase in excluded:
            continue
        created = task.created_at if task.created_at is not None else _UNDATED
        current = first_created.get(task.phase)
        if current is None or created < current:
            first_created[task.phase] = created
        if not task.is_done:
            has_open.add(task.phase)

    if not has_open:
        return None
    return min(has_open, key=lambda phase: (first_created[phase], phase))


def record_phase_started(
    document: ProjectDocument,
    phase: str,
    *,
    from_phase: str | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> ProjectDocument:
    """Append a ``started`` transition and move ``focus.currentPhase`` to ``phase``."""
    transition = PhaseTransition(
        phase=phase,
        transition_type=TransitionType.STARTED,
        timestamp=now if now is not None else utc_now(),
        task_count=_task_count(document, phase),
        from_phase=from_phase,
        reason=reason,
    )
    updated = replace(document, phase_history=(*document.phase_history, transition))
    return updated.with_focus(current_phase=phase)


def reopen_phase_if_completed(
    document: ProjectDocument,
    phase: str | None,
    *,
    now: datetime | None = None,
) -> ProjectDocument:
    """New work in a completed phase reopens it so completion can be reported again."""
    if not phase or not is_phase_marked_completed(document, phase):
        return document
    transition = PhaseTransition(
        phase=phase,
        transition_type=TransitionType.STARTED,
        timestamp=now if now is not None else utc_now(),
        task_count=_task_count(document, phase),
        reason="reopened: task added",
    )
    return replace(document, phase_history=(*document.phase_history, transition))


def set_current_phase(document: ProjectDocument, phase: str) -> ProjectDocument:
    """Point ``focus.currentPhase`` at ``phase`` without recording a transition."""
    return document.with_focus(current_phase=_require_label(phase))


def start_phase(
    document: ProjectDocument,
    phase: str,
    *,
    now: datetime | None = None,
) -> ProjectDocument:
    label = _require_label(phase)
    latest = latest_transition(document, label)
    if latest is not None and latest.transition_type is TransitionType.STARTED:
        raise PreconditionFailed(f"cannot start phase {label}: it is already started")
    previous = document.focus.current_phase
    return record_phase_started(
        document,
        label,
        from_phase=previous if previous != label else None,
        reason="manual",
        now=now,
    )


def complete_phase(
    document: ProjectDocument,
    phase: str,
    *,
    now: datetime | None = None,
) -> ProjectDocument:
    """Record ``phase`` as completed; every task in it must already be done."""
    label = _require_label(phase)
    members = [task for task in document.tasks if task.phase == label]
    if not members:
        raise NotFound("phase", label)
    open_ids = [task.id for task in members if not task.is_done]
    if open_ids:
        raise PreconditionFailed(
            f"cannot complete phase {label}: tasks not done: {', '.join(open_ids)}",
            task_ids=open_ids,
        )
    if is_phase_marked_completed(document, label):
        raise PreconditionFailed(f"cannot complete phase {label}: it is already completed")
    return mark_phases_completed(document, (label,), now=now)


def advance_phase(
    document: ProjectDocument,
    *,
    now: datetime | None = None,
) -> tuple[ProjectDocument, str, str]:
    """
    Complete the current phase and start the next one that has open work.

    The current phase is ``focus.currentPhase``, else the inferred phase. A phase
    already recorded as completed is not completed twice. Returns the new
    document, the phase left and the phase entered.
    """
    current = document.focus.current_phase or infer_current_phase(document)
    if not current:
        raise PreconditionFailed("cannot advance: there is no current phase")
    moment = now if now is not None else utc_now()
    updated = document
    if not is_phase_marked_completed(document, current):
        updated = complete_phase(document, current, now=moment)
    target = next_phase_after(updated, (current,))
    if target is None:
        raise PreconditionFailed(f"cannot advance from {current}: no other phase has open work")
    advanced = record_phase_started(
        updated, target, from_phase=current, reason="manual advance", now=moment
    )
    return advanced, current, target


def phase_summaries(document: ProjectDocument) -> tuple[PhaseSummary, ...]:
    phases = sorted({task.phase for task in document.tasks if task.phase})
    summaries: list[PhaseSummary] = []
    for phase in phases:
        statuses = Counter(task.status for task in document.tasks if task.phase == phase)
        latest = latest_transition(document, phase)
        summaries.append(
            PhaseSummary(
                phase=phase,
                total=sum(statuses.values()),
                done=statuses[TaskStatus.DONE],
                active=statuses[TaskStatus.ACTIVE],
                pending=statuses[TaskStatus.PENDING],
                blocked=statuses[TaskStatus.BLOCKED],
                state=latest.transition_type.value if latest is not None else "untracked",
            )
        )
    return tuple(summaries)


def _require_label(phase: object) -> str:
    if not isinstance(phase, str) or not phase.strip():
        raise PreconditionFailed("phase must be a non-empty label")
    return phase.strip()


def _task_count(document: ProjectDocument, phase: str) -> int:
    return sum(1 for task in document.tasks if task.phase == phase)


__all__ = [
    "PhaseSummary",
    "advance_phase",
    "assign_phase_to_new_task",
    "auto_advance",
    "complete_phase",
    "detect_phase_completion",
    "infer_current_phase",
    "is_phase_marked_completed",
    "latest_transition",
    "mark_phases_completed",
    "next_phase_after",
    "phase_summaries",
    "record_phase_started",
    "reopen_phase_if_completed",
    "set_current_phase",
    "start_phase",
]
