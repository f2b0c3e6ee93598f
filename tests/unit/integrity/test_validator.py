"""
todo-ledger — unit tests for the document validator

File: tests/unit/integrity/test_validator.py
Last updated: 2026-10-19

Purpose
- Run the invariant checks and the safe auto-fix set over in-memory documents.

What this test file should cover
- Every problem is collected without short-circuit at the right severity.
- Cycles and multiple active tasks can never be downgraded.
- Auto-fix repairs only safe problems, including live copies of archived done tasks.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from todo_ledger.domain.models import (
    ArchiveDocument,
    ArchivedTask,
    ArchiveInfo,
    Focus,
    ProjectDocument,
    Task,
    TaskStatus,
)
from todo_ledger.integrity.checksum import restamp, verify_checksum
from todo_ledger.integrity.validator import (
    ALWAYS_FATAL,
    Severity,
    ViolationKind,
    severity_for,
    validate,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _task(task_id: str, status: TaskStatus = TaskStatus.PENDING, **fields: object) -> Task:
    if status is TaskStatus.DONE:
        fields.setdefault("completed_at", NOW - timedelta(days=1))
    if status is TaskStatus.BLOCKED:
        fields.setdefault("blocked_by", "waiting")
    return Task(
        id=task_id, title=f"task {task_id}", status=status, **fields  # type: ignore[arg-type]
    )


def _doc(*tasks: Task, current: str | None = None, stamped: bool = True) -> ProjectDocument:
    document = ProjectDocument(project="demo", tasks=tasks, focus=Focus(current_task=current))
    return restamp(document, now=NOW) if stamped else document


def _kinds(report) -> list[ViolationKind]:  # type: ignore[no-untyped-def]
    return [item.kind for item in report.violations]


@pytest.mark.unit
def test_clean_document_has_no_violations() -> None:
    document = _doc(
        _task("T001", TaskStatus.DONE),
        _task("T002", TaskStatus.ACTIVE, depends=("T001",)),
        current="T002",
    )
    report = validate(document, now=NOW)
    assert report.violations == ()
    assert report.is_valid
    assert report.exit_code == 0


@pytest.mark.unit
@pytest.mark.parametrize("strict", [False, True])
def test_two_task_cycle_is_one_blocking_violation(strict: bool) -> None:
    document = _doc(_task("T001", depends=("T002",)), _task("T002", depends=("T001",)))
    report = validate(document, strict=strict, now=NOW)
    cycles = report.of_kind(ViolationKind.CIRCULAR_DEPENDENCY)
    assert len(cycles) == 1
    assert set(cycles[0].task_ids) == {"T001", "T002"}
    assert cycles[0].severity is Severity.ERROR
    assert "T001 -> T002 -> T001" in cycles[0].message
    assert report.exit_code == 1


@pytest.mark.unit
def test_every_problem_is_collected_without_short_circuit() -> None:
    document = _doc(
        _task("T001", TaskStatus.ACTIVE),
        _task("T001"),
        _task("T002", TaskStatus.ACTIVE, depends=("T404",)),
        _task("T003", TaskStatus.BLOCKED, blocked_by=None),
        _task("T004", TaskStatus.DONE, completed_at=None),
        _task("T005", blocked_by="stale", completed_at=NOW),
        _task("bad-id"),
    )
    kinds = _kinds(validate(document, now=NOW))
    assert kinds == [
        ViolationKind.DUPLICATE_TASK_ID,
        ViolationKind.INVALID_TASK_ID,
        ViolationKind.MISSING_DEPENDENCY,
        ViolationKind.MULTIPLE_ACTIVE_TASKS,
        ViolationKind.BLOCKED_WITHOUT_REASON,
        ViolationKind.DONE_WITHOUT_COMPLETION,
        ViolationKind.STALE_STATUS_FIELD,
    ]


@pytest.mark.unit
def test_multiple_active_cannot_be_downgraded() -> None:
    document = _doc(_task("T001", TaskStatus.ACTIVE), _task("T002", TaskStatus.ACTIVE))
    report = validate(document, warning_kinds=set(ViolationKind), now=NOW)
    (violation,) = report.of_kind(ViolationKind.MULTIPLE_ACTIVE_TASKS)
    assert violation.severity is Severity.ERROR
    assert violation.task_ids == ("T001", "T002")
    assert ViolationKind.MULTIPLE_ACTIVE_TASKS in ALWAYS_FATAL


@pytest.mark.unit
def test_active_with_unmet_dependency_is_flag_only_warning() -> None:
    document = _doc(
        _task("T001"),
        _task("T002", TaskStatus.ACTIVE, depends=("T001",)),
        current="T002",
    )
    lenient = validate(document, now=NOW)
    (violation,) = lenient.violations
    assert violation.kind is ViolationKind.ACTIVE_WITH_UNMET_DEPENDENCY
    assert violation.severity is Severity.WARNING
    assert lenient.is_valid

    strict = validate(document, strict=True, now=NOW)
    assert not strict.is_valid


@pytest.mark.unit
def test_archived_dependency_is_a_warning_and_cross_file_duplicate_is_an_error() -> None:
    archive = ArchiveDocument(
        project="demo",
        archived_tasks=(
            ArchivedTask(
                task=_task("T001", TaskStatus.DONE),
                info=ArchiveInfo(archived_at=NOW, reason="age"),
            ),
        ),
    )
    dependent = _doc(_task("T002", depends=("T001",)))
    report = validate(dependent, archive=archive, now=NOW)
    (violation,) = report.violations
    assert violation.kind is ViolationKind.ARCHIVED_DEPENDENCY
    assert violation.severity is Severity.WARNING

    duplicated = _doc(_task("T001", TaskStatus.DONE))
    report = validate(duplicated, archive=archive, now=NOW)
    assert _kinds(report) == [ViolationKind.CROSS_FILE_DUPLICATE]
    assert not report.is_valid


@pytest.mark.unit
def test_focus_and_checksum_mismatches() -> None:
    document = _doc(_task("T001", TaskStatus.ACTIVE), current=None, stamped=False)
    report = validate(document, now=NOW)
    assert _kinds(report) == [ViolationKind.FOCUS_MISMATCH, ViolationKind.CHECKSUM_MISMATCH]
    focus, checksum = report.violations
    assert focus.severity is Severity.ERROR
    assert focus.details == {"expected": "T001", "actual": None}
    assert checksum.severity is Severity.WARNING


@pytest.mark.unit
def test_stale_task_stays_a_warning_in_strict_mode() -> None:
    document = _doc(_task("T001", created_at=NOW - timedelta(days=45)))
    report = validate(document, strict=True, stale_days=30, now=NOW)
    (violation,) = report.violations
    assert violation.kind is ViolationKind.STALE_TASK
    assert violation.severity is Severity.WARNING
    assert violation.details == {"ageDays": 45}
    assert validate(document, stale_days=0, now=NOW).violations == ()


@pytest.mark.unit
def test_severity_table_covers_every_kind() -> None:
    for kind in ViolationKind:
        assert severity_for(kind, strict=False) in (Severity.ERROR, Severity.WARNING)
        assert severity_for(kind, strict=True) in (Severity.ERROR, Severity.WARNING)


@pytest.mark.unit
def test_fix_repairs_safe_problems_and_restamps_trusted_checksum() -> None:
    document = _doc(
        _task("T001", depends=("T404",), blocked_by="leftover"),
        _task("T002", TaskStatus.DONE, completed_at=None),
        _task("T003", TaskStatus.ACTIVE),
        current="T002",
    )
    report = validate(document, fix=True, now=NOW)

    assert report.fixed == (
        "T001: removed missing dependency T404",
        "T001: cleared blockedBy on pending task",
        "T002: set completedAt",
        "focus: currentTask T002 -> T003",
    )
    repaired = report.document
    assert repaired.get_task("T001").depends == ()
    assert repaired.get_task("T001").blocked_by is None
    assert repaired.get_task("T002").completed_at == NOW
    assert repaired.focus.current_task == "T003"
    assert verify_checksum(repaired)
    assert report.violations == ()
    assert report.exit_code == 1


@pytest.mark.unit
def test_fix_never_blesses_an_untrusted_checksum() -> None:
    document = _doc(_task("T001", blocked_by="leftover"), stamped=False)
    report = validate(document, fix=True, now=NOW)
    assert report.fixed == ("T001: cleared blockedBy on pending task",)
    assert not verify_checksum(report.document)
    assert _kinds(report) == [ViolationKind.CHECKSUM_MISMATCH]


@pytest.mark.unit
def test_fix_drops_done_live_copies_left_by_an_interrupted_archive() -> None:
    archive = ArchiveDocument(
        project="demo",
        archived_tasks=tuple(
            ArchivedTask(
                task=_task(task_id, TaskStatus.DONE),
                info=ArchiveInfo(archived_at=NOW, reason="age"),
            )
            for task_id in ("T001", "T003")
        ),
    )
    document = _doc(_task("T001", TaskStatus.DONE), _task("T002"), _task("T003"))

    report = validate(document, archive=archive, fix=True, now=NOW)
    assert report.fixed == ("T001: dropped live copy already in the archive",)
    assert report.document.task_ids() == ("T002", "T003")
    assert verify_checksum(report.document)
    assert _kinds(report) == [ViolationKind.CROSS_FILE_DUPLICATE]
    assert report.violations[0].task_ids == ("T003",)
