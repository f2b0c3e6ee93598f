"""
todo-ledger — task lifecycle transitions

File: src/todo_ledger/lifecycle/transitions.py
Last updated: 2026-10-19

Purpose
- Pure status transitions over a project document: create, start, complete, block,
  unblock, reopen, annotate and focus bookkeeping.

Functional requirements
- Every operation returns a new document; the input is never modified.
- Illegal transitions raise ``PreconditionFailed`` naming the task and rule.
- Starting work requires every dependency done and no other active task.
- Focus follows the active task so the single-active invariant keeps holding.

Non-functional requirements
- Checksum recomputation and audit recording are the caller's job.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Final

from todo_ledger.domain import ids
from todo_ledger.domain.errors import PreconditionFailed
from todo_ledger.domain.models import (
    ProjectDocument,
    Task,
    TaskPriority,
    TaskStatus,
    utc_now,
)

ALLOWED_TRANSITIONS: Final[dict[TaskStatus, frozenset[TaskStatus]]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ACTIVE, TaskStatus.BLOCKED, TaskStatus.DONE}),
    TaskStatus.ACTIVE: frozenset({TaskStatus.DONE, TaskStatus.BLOCKED, TaskStatus.PENDING}),
    TaskStatus.BLOCKED: frozenset({TaskStatus.PENDING, TaskStatus.ACTIVE}),
    TaskStatus.DONE: frozenset({TaskStatus.PENDING}),
}


def start_task(
    document: ProjectDocument,
    task_id: str,
    *,
    archived_ids: Collection[str] = (),
) -> ProjectDocument:
    """
    Make ``task_id`` the active task and point focus at it.

    Dependencies that were archived count as done. Raises ``PreconditionFailed``
    when another task is active or a dependency is unfinished or missing.
    """
    task = document.get_task(task_id)
    _require_transition(task, TaskStatus.ACTIVE)

    others = tuple(item.id for item in document.active_tasks() if item.id != task_id)
    if others:
        raise PreconditionFailed(
            f"cannot start {task_id}: {', '.join(others)} is already active "
            "(only one task may be active)",
            task_ids=(task_id, *others),
        )

    unmet = unmet_dependencies(document, task, archived_ids=archived_ids)
    if unmet:
        raise PreconditionFailed(
            f"cannot start {task_id}: dependencies not done: {', '.join(unmet)}",
            task_ids=(task_id, *unmet),
        )

    started = replace(task, status=TaskStatus.ACTIVE, blocked_by=None)
    updated = document.with_task(started)
    return updated.with_focus(
        current_task=task_id,
        current_phase=task.phase or document.focus.current_phase,
    )


def complete_task(
    document: ProjectDocument,
    task_id: str,
    completed_at: datetime | None = None,
    *,
    strict: bool = False,
) -> ProjectDocument:
    """
    Mark ``task_id`` done, stamping ``completedAt`` and clearing its blocker.

    Focus is cleared when it pointed at this task. ``strict`` rejects the
    conventional-but-legal pending -> done shortcut.
    """
    task = document.get_task(task_id)
    _require_transition(task, TaskStatus.DONE)
    if strict and task.status is TaskStatus.PENDING:
        raise PreconditionFailed(
            f"cannot complete {task_id}: task was never started (strict transitions)",
            task_ids=(task_id,),
        )

    done = replace(
        task,
        status=TaskStatus.DONE,
        completed_at=completed_at if completed_at is not None else utc_now(),
        blocked_by=None,
    )
    updated = document.with_task(done)
    if updated.focus.current_task == task_id:
        updated = updated.with_focus(current_task=None)
    return updated


def block_task(document: ProjectDocument, task_id: str, reason: str) -> ProjectDocument:
    if not isinstance(reason, str) or not reason.strip():
        raise PreconditionFailed(
            f"cannot block {task_id}: a non-empty reason is required", task_ids=(task_id,)
        )
    task = document.get_task(task_id)
    _require_transition(task, TaskStatus.BLOCKED)

    blocked = replace(task, status=TaskStatus.BLOCKED, blocked_by=reason.strip())
    updated = document.with_task(blocked)
    if updated.focus.current_task == task_id:
        updated = updated.with_focus(current_task=None)
    return updated


def unblock_task(document: ProjectDocument, task_id: str) -> ProjectDocument:
    task = document.get_task(task_id)
    if task.status is not TaskStatus.BLOCKED:
        raise PreconditionFailed(
            f"cannot unblock {task_id}: task is {task.status.value}, not blocked",
            task_ids=(task_id,),
        )
    return document.with_task(replace(task, status=TaskStatus.PENDING, blocked_by=None))


def reopen_task(
    document: ProjectDocument,
    task_id: str,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> ProjectDocument:
    task = document.get_task(task_id)
    if task.status is not TaskStatus.DONE:
        raise PreconditionFailed(
            f"cannot reopen {task_id}: task is {task.status.value}, not done",
            task_ids=(task_id,),
        )
    reopened = replace(task, status=TaskStatus.PENDING, completed_at=None)
    if reason:
        reopened = reopened.with_note(
            f"reopened: {reason}", at=now if now is not None else utc_now()
        )
    return document.with_task(reopened)


def add_task(
    document: ProjectDocument,
    title: str,
    *,
    task_id: str | None = None,
    reserved_ids: Collection[str] = (),
    priority: TaskPriority = TaskPriority.MEDIUM,
    phase: str | None = None,
    description: str | None = None,
    depends: Sequence[str] = (),
    labels: Sequence[str] = (),
    files: Sequence[str] = (),
    acceptance: Sequence[str] = (),
    now: datetime | None = None,
) -> tuple[ProjectDocument, Task]:
    """
    Append a new pending task.

    ``reserved_ids`` holds archived IDs: they are never reused and count as valid
    dependency targets.
    """
    if not isinstance(title, str) or not title.strip():
        raise PreconditionFailed("cannot add task: title must not be empty")

    live_ids = set(document.task_ids())
    taken = live_ids | set(reserved_ids)
    if task_id is None:
        new_id = ids.next_task_id(taken)
    else:
        try:
            ids.validate_task_id(task_id)
        except ValueError as exc:
            raise PreconditionFailed(f"cannot add task: {exc}", task_ids=(task_id,)) from exc
        if task_id in taken:
            raise PreconditionFailed(
                f"cannot add task: id {task_id} is already in use", task_ids=(task_id,)
            )
        new_id = task_id

    missing = tuple(dep for dep in dict.fromkeys(depends) if dep not in taken)
    if missing:
        raise PreconditionFailed(
            f"cannot add {new_id}: unknown dependencies {', '.join(missing)}",
            task_ids=(new_id, *missing),
        )

    task = Task(
        id=new_id,
        title=title.strip(),
        priority=priority,
        phase=phase or None,
        description=description or None,
        depends=tuple(dict.fromkeys(depends)),
        labels=tuple(dict.fromkeys(labels)),
        files=tuple(files),
        acceptance=tuple(acceptance),
        created_at=now if now is not None else utc_now(),
    )
    return document.with_tasks((*document.tasks, task)), task


def add_note(
    document: ProjectDocument,
    task_id: str,
    text: str,
    *,
    now: datetime | None = None,
) -> ProjectDocument:
    if not isinstance(text, str) or not text.strip():
        raise PreconditionFailed(f"cannot annotate {task_id}: note text must not be empty")
    task = document.get_task(task_id)
    moment = now if now is not None else utc_now()
    return document.with_task(task.with_note(text.strip(), at=moment))


def set_focus(
    document: ProjectDocument,
    task_id: str,
    *,
    archived_ids: Collection[str] = (),
) -> ProjectDocument:
    """Switch focus to ``task_id``: any other active task goes back to pending first."""
    document.get_task(task_id)
    paused = tuple(
        replace(task, status=TaskStatus.PENDING)
        if task.status is TaskStatus.ACTIVE and task.id != task_id
        else task
        for task in document.tasks
    )
    updated = document.with_tasks(paused)
    if updated.get_task(task_id).status is TaskStatus.ACTIVE:
        return updated.with_focus(current_task=task_id)
    return start_task(updated, task_id, archived_ids=archived_ids)


def clear_focus(document: ProjectDocument) -> ProjectDocument:
    """Return active work to pending and empty ``focus.currentTask``."""
    tasks = tuple(
        replace(task, status=TaskStatus.PENDING) if task.status is TaskStatus.ACTIVE else task
        for task in document.tasks
    )
    return document.with_tasks(tasks).with_focus(current_task=None)


def set_session_note(document: ProjectDocument, note: str | None) -> ProjectDocument:
    return document.with_focus(session_note=(note or "").strip() or None)


def set_next_action(document: ProjectDocument, action: str | None) -> ProjectDocument:
    return document.with_focus(next_action=(action or "").strip() or None)


def unmet_dependencies(
    document: ProjectDocument,
    task: Task,
    *,
    archived_ids: Collection[str] = (),
) -> tuple[str, ...]:
    unmet: list[str] = []
    for dep in task.depends:
        if dep in archived_ids:
            continue
        dependency = document.find_task(dep)
        if dependency is None or dependency.status is not TaskStatus.DONE:
            unmet.append(dep)
    return tuple(unmet)


def _require_transition(task: Task, target: TaskStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[task.status]:
        raise PreconditionFailed(
            f"cannot move {task.id} from {task.status.value} to {target.value}",
            task_ids=(task.id,),
        )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "add_note",
    "add_task",
    "block_task",
    "clear_focus",
    "complete_task",
    "reopen_task",
    "set_focus",
    "set_next_action",
    "set_session_note",
    "start_task",
    "unblock_task",
    "unmet_dependencies",
]
