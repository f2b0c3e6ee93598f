"""
todo-ledger — unit tests for the audit trail

File: tests/unit/audit/test_audit_trail.py
Last updated: 2026-10-19

Purpose
- Check the file-backed audit trail against real files in ``tmp_path``.

What this test file should cover
- A missing log reads empty; a corrupt or legacy log is never overwritten.
- Rotation and pruning persist.
"""

from __future__ import annotations

import itertools
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from todo_ledger.audit.log import AuditFilter
from todo_ledger.audit.trail import AuditTrail
from todo_ledger.domain.errors import MalformedInput
from todo_ledger.domain.events import AuditAction

START = datetime(2026, 4, 1, tzinfo=UTC)


def _trail(path: Path, **overrides: object) -> AuditTrail:
    ticks = itertools.count()
    counter = itertools.count(1)
    options: dict[str, object] = {
        "project": "demo",
        "clock": lambda: START + timedelta(minutes=next(ticks)),
        "id_factory": lambda: f"log_{next(counter):012x}",
    }
    options.update(overrides)
    return AuditTrail(path, **options)  # type: ignore[arg-type]


@pytest.mark.unit
def test_missing_file_reads_empty_and_is_created_on_append(tmp_path: Path) -> None:
    path = tmp_path / ".claude" / "todo-log.json"
    trail = _trail(path)
    assert trail.load().entries == ()
    assert not trail.exists()

    entry = trail.append(AuditAction.TASK_CREATED, task_id="T001", after={"title": "a"})
    assert entry is not None
    assert trail.exists()
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["project"] == "demo"
    assert stored["entries"][0]["id"] == "log_000000000001"
    assert trail.show("log_000000000001").after == {"title": "a"}


@pytest.mark.unit
def test_disabled_trail_ignores_appends(tmp_path: Path) -> None:
    trail = _trail(tmp_path / "log.json", enabled=False)
    assert trail.append(AuditAction.TASK_CREATED) is None
    assert not trail.exists()


@pytest.mark.unit
def test_corrupt_log_is_never_overwritten(tmp_path: Path) -> None:
    path = tmp_path / "log.json"
    path.write_text("{broken", encoding="utf-8")
    trail = _trail(path)
    with pytest.raises(MalformedInput, match="invalid JSON"):
        trail.append(AuditAction.TASK_CREATED)
    assert path.read_text(encoding="utf-8") == "{broken"


@pytest.mark.unit
def test_legacy_log_requires_explicit_migration(tmp_path: Path) -> None:
    path = tmp_path / "log.json"
    path.write_text(
        json.dumps(
            [{"operation": "create", "task_id": "T001", "timestamp": "2026-01-01T00:00:00Z"}]
        ),
        encoding="utf-8",
    )
    trail = _trail(path)
    with pytest.raises(MalformedInput, match="log migrate"):
        trail.load()

    assert trail.migrate().migrated == 1
    assert trail.list(AuditFilter(task_id="T001"))[0].action is AuditAction.TASK_CREATED
    before = path.read_text(encoding="utf-8")
    assert trail.migrate().migrated == 0
    assert path.read_text(encoding="utf-8") == before


@pytest.mark.unit
def test_rotate_and_prune_persist_changes(tmp_path: Path) -> None:
    trail = _trail(tmp_path / "log.json", keep_entries=2, rotate_threshold_kb=0, retention_days=0)
    for task in ("T001", "T002", "T003"):
        trail.append(AuditAction.TASK_CREATED, task_id=task)

    rotated = trail.rotate(force=True)
    assert rotated.pruned == 1
    assert [entry.task_id for entry in trail.list()] == ["T002", "T003"]

    pruned = trail.prune(now=START + timedelta(minutes=2))
    assert pruned.pruned == 1
    stats = trail.stats()
    assert stats["totalEntries"] == 1
    assert stats["entriesPruned"] == 2
