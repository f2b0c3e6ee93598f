"""
todo-ledger — unit tests for the archive engine

File: tests/unit/archive/test_archive_engine.py
Last updated: 2026-10-19

Purpose
- Check archive planning and application under each archive mode.

What this test file should cover
- Age, cap and preserve-recent rules pick the right candidates.
- Applying executes exactly the plan and refuses ids already archived.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from todo_ledger.archive.engine import (
    ArchiveMode,
    ArchivePolicy,
    ArchiveReason,
    apply_archive,
    cycle_time_days,
    plan_archive,
)
from todo_ledger.domain.errors import PreconditionFailed
from todo_ledger.domain.models import (
    ArchiveDocument,
    ProjectDocument,
    Task,
    TaskPriority,
    TaskStatus,
)
from todo_ledger.integrity.checksum import compute_checksum, restamp, verify_checksum

NOW = datetime(2026, 7, 15, 12, 0, tzinfo=UTC)


def _done(task_id: str, days_ago: int, **fields: object) -> Task:
    return Task(
        id=task_id,
        title=f"task {task_id}",
        status=TaskStatus.DONE,
        created_at=NOW - timedelta(days=days_ago + 2),
        completed_at=NOW - timedelta(days=days_ago),
        **fields,  # type: ignore[arg-type]
    )


def _document() -> ProjectDocument:
    document = ProjectDocument(
        project="demo",
        tasks=(
            _done("T001", 10, phase="setup", labels=("infra",)),
            _done("T002", 2, priority=TaskPriority.HIGH),
            _done("T003", 1),
            Task(id="T004", title="follow-up", depends=("T001",)),
        ),
    )
    return restamp(document, now=NOW)


@pytest.mark.unit
def test_policy_mode_archives_by_age_and_reports_live_dependents() -> None:
    plan = plan_archive(
        _document(), ArchivePolicy(days_until_archive=7, max_completed_tasks=0), now=NOW
    )
    (candidate,) = plan.candidates
    assert candidate.task_id == "T001"
    assert candidate.reason is ArchiveReason.AGE
    assert candidate.referenced_by == ("T004",)


@pytest.mark.unit
def test_overflow_retires_oldest_completions_first() -> None:
    plan = plan_archive(
        _document(), ArchivePolicy(days_until_archive=30, max_completed_tasks=1), now=NOW
    )
    assert plan.task_ids == ("T001", "T002")
    assert {candidate.reason for candidate in plan.candidates} == {ArchiveReason.OVERFLOW}


@pytest.mark.unit
def test_force_preserves_newest_and_all_takes_everything() -> None:
    forced = plan_archive(
        _document(), ArchivePolicy(preserve_recent_count=1, mode=ArchiveMode.FORCE), now=NOW
    )
    assert forced.task_ids == ("T001", "T002")
    assert forced.preserved == ("T003",)

    everything = plan_archive(
        _document(), ArchivePolicy(preserve_recent_count=1, mode=ArchiveMode.ALL), now=NOW
    )
    assert everything.task_ids == ("T001", "T002", "T003")
    assert everything.preserved == ()


@pytest.mark.unit
def test_ties_on_completion_time_break_on_task_id() -> None:
    document = ProjectDocument(project="demo", tasks=(_done("T002", 9), _done("T001", 9)))
    plan = plan_archive(document, ArchivePolicy(mode=ArchiveMode.ALL), now=NOW)
    assert plan.task_ids == ("T001", "T002")


@pytest.mark.unit
def test_apply_executes_exactly_the_plan() -> None:
    document = _document()
    policy = ArchivePolicy(mode=ArchiveMode.FORCE, preserve_recent_count=1)
    plan = plan_archive(document, policy, now=NOW)
    result = apply_archive(
        document, ArchiveDocument(project="demo"), plan=plan, now=NOW, session_id="s1"
    )

    assert result.archived_ids == plan.task_ids
    assert result.document.task_ids() == ("T003", "T004")
    assert result.document.meta.checksum == compute_checksum(result.document.tasks)
    assert verify_checksum(result.document)
    assert result.document.get_task("T004").depends == ("T001",)

    archive = result.archive
    assert archive.archived_ids() == ("T001", "T002")
    assert archive.meta.total_archived == 2
    assert archive.meta.last_archived == NOW
    assert archive.meta.oldest_task == "2026-07-05T12:00:00Z"
    assert archive.meta.newest_task == "2026-07-13T12:00:00Z"
    first = archive.archived_tasks[0].info
    assert first.reason == "forced"
    assert first.session_id == "s1"
    assert first.cycle_time_days == 2

    stats = archive.statistics
    assert stats["byPhase"] == {"setup": 1, "unassigned": 1}
    assert stats["byPriority"] == {"critical": 0, "high": 1, "medium": 1, "low": 0}
    assert stats["byLabel"] == {"infra": 1}
    assert stats["averageCycleTime"] == 2.0


@pytest.mark.unit
def test_empty_plan_returns_inputs_unchanged() -> None:
    document = _document()
    archive = ArchiveDocument(project="demo")
    result = apply_archive(
        document, archive, ArchivePolicy(days_until_archive=365, max_completed_tasks=0), now=NOW
    )
    assert result.archived_ids == ()
    assert result.document is document
    assert result.archive is archive


@pytest.mark.unit
def test_apply_refuses_ids_already_in_the_archive() -> None:
    document = _document()
    first = apply_archive(
        document, ArchiveDocument(project="demo"), ArchivePolicy(mode=ArchiveMode.ALL), now=NOW
    )
    with pytest.raises(PreconditionFailed, match="already exists in the archive"):
        apply_archive(
            document, first.archive, ArchivePolicy(mode=ArchiveMode.ALL), now=NOW
        )


@pytest.mark.unit
def test_policy_rejects_negative_settings_and_cycle_time_needs_both_stamps() -> None:
    with pytest.raises(ValueError, match="days_until_archive"):
        ArchivePolicy(days_until_archive=-1)
    assert cycle_time_days(Task(id="T001", title="a")) is None
    assert cycle_time_days(_done("T001", 0)) == 2
