"""
todo-ledger — unit tests for audit documents

File: tests/unit/domain/test_events.py
Last updated: 2026-10-19

Purpose
- Check parsing and encoding of audit entries and audit log documents.

What this test file should cover
- Log meta is derived from entries and recomputed on a round trip.
- Unknown actions and fields are malformed.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from todo_ledger.domain.errors import MalformedInput
from todo_ledger.domain.events import (
    Actor,
    AuditAction,
    AuditEntry,
    AuditLog,
    build_log_meta,
    parse_action,
)


def _entry(entry_id: str, hour: int, action: AuditAction = AuditAction.TASK_CREATED) -> AuditEntry:
    return AuditEntry(
        id=entry_id,
        timestamp=datetime(2026, 2, 1, hour, tzinfo=UTC),
        action=action,
        actor=Actor.HUMAN,
        task_id="T001",
    )


@pytest.mark.unit
def test_meta_is_derived_from_entries() -> None:
    entries = (_entry("log_000000000001", 1), _entry("log_000000000002", 5))
    meta = build_log_meta(entries, entries_pruned=3)
    assert meta.total_entries == 2
    assert meta.first_entry == entries[0].timestamp
    assert meta.last_entry == entries[1].timestamp
    assert meta.entries_pruned == 3


@pytest.mark.unit
def test_log_round_trip_recomputes_meta() -> None:
    entries = (_entry("log_000000000001", 1),)
    log = AuditLog(project="demo", entries=entries, meta=build_log_meta(entries, entries_pruned=0))
    payload = log.to_dict()
    payload["_meta"]["totalEntries"] = 99  # type: ignore[index]

    parsed = AuditLog.from_dict(payload)
    assert parsed.meta.total_entries == 1
    assert parsed.entries[0].to_dict() == entries[0].to_dict()


@pytest.mark.unit
def test_unknown_actions_and_fields_are_malformed() -> None:
    with pytest.raises(MalformedInput, match="invalid action 'create'"):
        parse_action("create")
    with pytest.raises(MalformedInput, match="unexpected fields"):
        AuditEntry.from_dict(
            {
                "id": "log_000000000001",
                "timestamp": "2026-02-01T00:00:00Z",
                "action": "task_created",
                "operation": "create",
            }
        )


@pytest.mark.unit
def test_entry_type_checks_enums() -> None:
    with pytest.raises(MalformedInput, match="AuditEntry.action"):
        AuditEntry(
            id="log_000000000001",
            timestamp=datetime(2026, 2, 1, tzinfo=UTC),
            action="task_created",  # type: ignore[arg-type]
        )
