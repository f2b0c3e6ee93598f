"""
todo-ledger — unit tests for the document models

File: tests/unit/domain/test_models.py
Last updated: 2026-10-19

Purpose
- Check parsing and encoding of the project and archive documents.

What this test file should cover
- Defaults are applied and unknown fields survive a round trip.
- Malformed payloads name the offending path.
- Blank optional text encodes the same as absent text.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from todo_ledger.domain.errors import MalformedInput, NotFound
from todo_ledger.domain.models import (
    ArchiveDocument,
    Focus,
    ProjectDocument,
    Task,
    TaskPriority,
    TaskStatus,
    format_timestamp,
    parse_timestamp,
)
from todo_ledger.integrity.checksum import compute_checksum

CREATED = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def _document_payload() -> dict[str, object]:
    return {
        "version": "2.1.0",
        "project": {"name": "demo", "owner": "ops"},
        "_meta": {"version": "2.1.0", "checksum": None, "lastUpdated": None},
        "focus": {"currentTask": None, "sessionNote": "resume here"},
        "tasks": [
            {
                "id": "T001",
                "title": "Write parser",
                "status": "done",
                "priority": "high",
                "phase": "core",
                "createdAt": "2026-01-02T03:04:05Z",
                "completedAt": "2026-01-03T00:00:00+00:00",
                "estimate": 3,
            },
            {"id": "T002", "title": "Ship", "depends": ["T001"]},
        ],
        "customTopLevel": {"kept": True},
    }


@pytest.mark.unit
def test_parse_applies_defaults_and_preserves_unknown_fields() -> None:
    document = ProjectDocument.from_dict(_document_payload())

    assert document.project == "demo"
    assert document.project_info == {"owner": "ops"}
    assert document.task_ids() == ("T001", "T002")
    first, second = document.tasks
    assert first.status is TaskStatus.DONE
    assert first.priority is TaskPriority.HIGH
    assert first.extra == {"estimate": 3}
    assert second.status is TaskStatus.PENDING
    assert second.priority is TaskPriority.MEDIUM
    assert second.depends == ("T001",)
    assert document.focus.session_note == "resume here"

    encoded = document.to_dict()
    assert encoded["customTopLevel"] == {"kept": True}
    assert encoded["project"] == {"name": "demo", "owner": "ops"}
    assert encoded["tasks"][0]["estimate"] == 3
    assert encoded["tasks"][0]["completedAt"] == "2026-01-03T00:00:00Z"


@pytest.mark.unit
def test_task_encoding_omits_empty_fields_in_fixed_order() -> None:
    task = Task(id="T001", title="Write parser", created_at=CREATED)
    assert list(task.to_dict()) == ["id", "title", "status", "priority", "createdAt"]


@pytest.mark.unit
def test_blank_optional_text_is_the_same_as_absent_text() -> None:
    blank = Task(
        id="T001", title="a", phase="", description="  ", blocked_by="", created_at=CREATED
    )
    plain = Task(id="T001", title="a", created_at=CREATED)
    assert blank == plain
    assert (blank.phase, blank.description, blank.blocked_by) == (None, None, None)
    assert compute_checksum([blank]) == compute_checksum([plain])
    assert Task(id="T001", title="a", phase=" core ").phase == " core "
    with pytest.raises(MalformedInput, match=r"Task\[T001\].phase"):
        Task(id="T001", title="a", phase=3)  # type: ignore[arg-type]


@pytest.mark.unit
def test_malformed_documents_name_the_offending_path() -> None:
    with pytest.raises(MalformedInput, match="invalid JSON"):
        ProjectDocument.from_json("{not json")
    with pytest.raises(MalformedInput, match="missing required field 'tasks'"):
        ProjectDocument.from_dict({"project": "demo"})

    payload = _document_payload()
    payload["tasks"][1]["status"] = "paused"  # type: ignore[index]
    with pytest.raises(MalformedInput, match=r"todo.tasks\[1\]\[T002\].status"):
        ProjectDocument.from_dict(payload)


@pytest.mark.unit
def test_naive_timestamps_are_rejected() -> None:
    with pytest.raises(MalformedInput, match="timezone-aware"):
        parse_timestamp("2026-01-02T03:04:05")
    assert format_timestamp(parse_timestamp("2026-01-02T04:04:05+01:00")) == "2026-01-02T03:04:05Z"


@pytest.mark.unit
def test_document_lookup_and_replacement_are_pure() -> None:
    document = ProjectDocument.from_dict(_document_payload())
    updated = document.with_task(Task(id="T002", title="Ship it"))

    assert document.get_task("T002").title == "Ship"
    assert updated.get_task("T002").title == "Ship it"
    with pytest.raises(NotFound, match="task not found: T404"):
        document.get_task("T404")
    assert document.with_focus(current_task="T002").focus == Focus(
        current_task="T002", session_note="resume here"
    )


@pytest.mark.unit
def test_json_round_trip_is_stable() -> None:
    document = ProjectDocument.from_dict(_document_payload())
    text = document.to_json()
    assert ProjectDocument.from_json(text).to_json() == text
    assert json.loads(text)["_meta"]["checksum"] is None


@pytest.mark.unit
def test_archive_without_stamp_falls_back_to_completion_time() -> None:
    archive = ArchiveDocument.from_dict(
        {
            "project": "demo",
            "archivedTasks": [
                {
                    "id": "T001",
                    "title": "Old work",
                    "status": "done",
                    "completedAt": "2025-12-01T00:00:00Z",
                }
            ],
        }
    )
    (item,) = archive.archived_tasks
    assert archive.archived_ids() == ("T001",)
    assert item.info.reason == "legacy"
    assert format_timestamp(item.info.archived_at) == "2025-12-01T00:00:00Z"
