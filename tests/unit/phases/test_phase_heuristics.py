"""
todo-ledger — unit tests for phase heuristics

File: tests/unit/phases/test_phase_heuristics.py
Last updated: 2026-10-19

Purpose
- Check phase inference, completion detection, auto-advance and manual phase control
  as pure functions over in-memory documents.

What this test file should cover
- Completion is reported once and reopened by new work.
- Auto-advance picks the earliest open phase and refuses to guess between several.
- Manual set, start, complete and advance validate their preconditions.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from todo_ledger.domain.errors import NotFound, PolicyAmbiguous, PreconditionFailed
from todo_ledger.domain.models import (
    Focus,
    ProjectDocument,
    Task,
    TaskStatus,
    TransitionType,
)
from todo_ledger.phases import heuristics

NOW = datetime(2026, 8, 1, tzinfo=UTC)


def _task(
    task_id: str, phase: str | None, status: TaskStatus = TaskStatus.PENDING, day: int = 0
) -> Task:
    return Task(
        id=task_id,
        title=f"task {task_id}",
        status=status,
        phase=phase,
        created_at=NOW + timedelta(days=day),
        completed_at=NOW if status is TaskStatus.DONE else None,
    )


@pytest.mark.unit
def test_setup_phase_is_reported_once() -> None:
    tasks = tuple(_task(f"T{n:03d}", "setup", TaskStatus.DONE) for n in range(1, 11))
    document = ProjectDocument(project="demo", tasks=(*tasks, _task("T011", "core", day=1)))

    assert heuristics.detect_phase_completion(document, ["T010"]) == ("setup",)
    marked = heuristics.mark_phases_completed(document, ["setup"], now=NOW)
    (transition,) = marked.phase_history
    assert transition.transition_type is TransitionType.COMPLETED
    assert transition.task_count == 10

    assert heuristics.detect_phase_completion(marked, ["T010"]) == ()
    assert heuristics.mark_phases_completed(marked, ["setup"], now=NOW) == marked


@pytest.mark.unit
def test_partially_done_or_phaseless_tasks_complete_nothing() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _task("T001", "setup", TaskStatus.DONE),
            _task("T002", "setup"),
            _task("T003", None, TaskStatus.DONE),
        ),
    )
    assert heuristics.detect_phase_completion(document, ["T001", "T003", "T404"]) == ()


@pytest.mark.unit
def test_adding_work_reopens_a_completed_phase() -> None:
    document = ProjectDocument(project="demo", tasks=(_task("T001", "setup", TaskStatus.DONE),))
    marked = heuristics.mark_phases_completed(document, ["setup"], now=NOW)
    reopened = heuristics.reopen_phase_if_completed(marked, "setup", now=NOW)
    assert reopened.phase_history[-1].transition_type is TransitionType.STARTED
    assert not heuristics.is_phase_marked_completed(reopened, "setup")
    assert heuristics.reopen_phase_if_completed(document, "setup") is document


@pytest.mark.unit
def test_current_phase_prefers_focus_then_open_work() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _task("T001", "core"),
            _task("T002", "docs"),
            _task("T003", "docs"),
            _task("T004", "setup", TaskStatus.DONE),
        ),
    )
    assert heuristics.infer_current_phase(document) == "docs"
    focused = ProjectDocument(
        project="demo", tasks=document.tasks, focus=Focus(current_task="T001")
    )
    assert heuristics.infer_current_phase(focused) == "core"
    assert heuristics.infer_current_phase(ProjectDocument(project="empty")) == ""

    new_task = Task(id="T005", title="new")
    assert heuristics.assign_phase_to_new_task(new_task, document) == "docs"


@pytest.mark.unit
def test_auto_advance_picks_earliest_open_phase() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _task("T001", "setup", TaskStatus.DONE),
            _task("T002", "polish", day=3),
            _task("T003", "core", day=1),
        ),
    )
    assert heuristics.auto_advance(document, ["setup"], enabled=True) == "core"
    assert heuristics.auto_advance(document, ["setup"], enabled=False) is None
    assert heuristics.auto_advance(document, [], enabled=True) is None

    started = heuristics.record_phase_started(document, "core", from_phase="setup", now=NOW)
    assert started.focus.current_phase == "core"
    assert started.phase_history[-1].from_phase == "setup"


@pytest.mark.unit
def test_auto_advance_refuses_to_guess_between_phases() -> None:
    document = ProjectDocument(project="demo", tasks=(_task("T001", "core"),))
    with pytest.raises(PolicyAmbiguous) as excinfo:
        heuristics.auto_advance(document, ["setup", "docs"], enabled=True)
    assert excinfo.value.candidates == ("docs", "setup")


@pytest.mark.unit
def test_phase_summaries_count_statuses() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(_task("T001", "core", TaskStatus.DONE), _task("T002", "core", TaskStatus.ACTIVE)),
    )
    (summary,) = heuristics.phase_summaries(document)
    assert summary.to_dict() == {
        "phase": "core",
        "total": 2,
        "done": 1,
        "active": 1,
        "pending": 0,
        "blocked": 0,
        "state": "untracked",
    }
    assert not summary.is_complete


@pytest.mark.unit
def test_manual_set_and_start_move_the_current_phase() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(_task("T001", "setup", TaskStatus.DONE), _task("T002", "core", day=1)),
    )
    pointed = heuristics.set_current_phase(document, " core ")
    assert pointed.focus.current_phase == "core"
    assert pointed.phase_history == ()
    with pytest.raises(PreconditionFailed, match="non-empty label"):
        heuristics.set_current_phase(document, "  ")

    started = heuristics.start_phase(pointed, "setup", now=NOW)
    transition = started.phase_history[-1]
    assert transition.transition_type is TransitionType.STARTED
    assert transition.from_phase == "core"
    assert transition.reason == "manual"
    assert started.focus.current_phase == "setup"
    with pytest.raises(PreconditionFailed, match="already started"):
        heuristics.start_phase(started, "setup", now=NOW)


@pytest.mark.unit
def test_manual_completion_requires_every_task_done() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(_task("T001", "setup", TaskStatus.DONE), _task("T002", "core", day=1)),
    )
    with pytest.raises(PreconditionFailed) as excinfo:
        heuristics.complete_phase(document, "core", now=NOW)
    assert excinfo.value.task_ids == ("T002",)
    with pytest.raises(NotFound):
        heuristics.complete_phase(document, "polish", now=NOW)

    completed = heuristics.complete_phase(document, "setup", now=NOW)
    assert heuristics.is_phase_marked_completed(completed, "setup")
    with pytest.raises(PreconditionFailed, match="already completed"):
        heuristics.complete_phase(completed, "setup", now=NOW)


@pytest.mark.unit
def test_advance_completes_current_and_starts_earliest_open_phase() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _task("T001", "setup", TaskStatus.DONE),
            _task("T002", "docs", day=2),
            _task("T003", "core", day=1),
        ),
        focus=Focus(current_phase="setup"),
    )
    advanced, left, entered = heuristics.advance_phase(document, now=NOW)
    assert (left, entered) == ("setup", "core")
    assert [item.transition_type for item in advanced.phase_history] == [
        TransitionType.COMPLETED,
        TransitionType.STARTED,
    ]
    assert advanced.phase_history[-1].from_phase == "setup"
    assert advanced.focus.current_phase == "core"

    with pytest.raises(PreconditionFailed) as excinfo:
        heuristics.advance_phase(advanced, now=NOW)
    assert excinfo.value.task_ids == ("T003",)


@pytest.mark.unit
def test_advance_after_an_ambiguous_completion_does_not_complete_twice() -> None:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _task("T001", "setup", TaskStatus.DONE),
            _task("T002", "docs", TaskStatus.DONE),
            _task("T003", "core", day=1),
        ),
        focus=Focus(current_phase="setup"),
    )
    marked = heuristics.mark_phases_completed(document, ["docs", "setup"], now=NOW)
    advanced, left, entered = heuristics.advance_phase(marked, now=NOW)
    assert (left, entered) == ("setup", "core")
    assert len(advanced.phase_history) == len(marked.phase_history) + 1

    finished = ProjectDocument(
        project="demo",
        tasks=(_task("T001", "setup", TaskStatus.DONE),),
        focus=Focus(current_phase="setup"),
    )
    with pytest.raises(PreconditionFailed, match="no other phase"):
        heuristics.advance_phase(finished, now=NOW)
    with pytest.raises(PreconditionFailed, match="no current phase"):
        heuristics.advance_phase(ProjectDocument(project="empty"), now=NOW)
