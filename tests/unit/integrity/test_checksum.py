"""
todo-ledger — unit tests for the task checksum

File: tests/unit/integrity/test_checksum.py
Last updated: 2026-10-19

Purpose
- Check the canonical task encoding and the checksum computed over it.

What this test file should cover
- The checksum is sixteen lowercase hex, sensitive to every field and to task order.
- Restamping fixes a mismatch and sets lastUpdated.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from todo_ledger.domain.models import ProjectDocument, Task, TaskPriority, TaskStatus
from todo_ledger.integrity.checksum import (
    checksum_status,
    compute_checksum,
    restamp,
    verify_checksum,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)

_TITLES = st.text(alphabet="abcdefghijklmnopqrstuvwxyz ", min_size=1, max_size=20).filter(
    lambda value: value.strip() != ""
)


@st.composite
def _task_lists(draw: st.DrawFn) -> tuple[Task, ...]:
    count = draw(st.integers(min_value=0, max_value=6))
    return tuple(
        Task(
            id=f"T{index:03d}",
            title=draw(_TITLES).strip(),
            status=draw(st.sampled_from(list(TaskStatus))),
            priority=draw(st.sampled_from(list(TaskPriority))),
        )
        for index in range(1, count + 1)
    )


@pytest.mark.unit
def test_checksum_is_sixteen_lowercase_hex() -> None:
    value = compute_checksum([Task(id="T001", title="Write parser")])
    assert len(value) == 16
    assert int(value, 16) >= 0
    assert value == value.lower()


@pytest.mark.unit
def test_any_single_field_change_alters_checksum() -> None:
    base = Task(id="T001", title="Write parser", created_at=NOW)
    variants = [
        replace(base, title="Write lexer"),
        replace(base, status=TaskStatus.ACTIVE),
        replace(base, priority=TaskPriority.HIGH),
        replace(base, phase="core"),
        replace(base, depends=("T000",)),
        replace(base, notes=("note",)),
        replace(base, created_at=NOW.replace(second=1)),
    ]
    original = compute_checksum([base])
    assert all(compute_checksum([variant]) != original for variant in variants)


@pytest.mark.unit
def test_task_order_is_part_of_the_fingerprint() -> None:
    first = Task(id="T001", title="a")
    second = Task(id="T002", title="b")
    assert compute_checksum([first, second]) != compute_checksum([second, first])


@pytest.mark.unit
def test_restamp_fixes_mismatch_and_sets_last_updated() -> None:
    document = ProjectDocument(project="demo", tasks=(Task(id="T001", title="a"),))
    assert not verify_checksum(document)
    assert checksum_status(document).stored is None

    stamped = restamp(document, now=NOW)
    assert verify_checksum(stamped)
    assert stamped.meta.last_updated == NOW
    assert checksum_status(stamped).to_dict()["matches"] is True


@pytest.mark.unit
@given(tasks=_task_lists())
@settings(max_examples=60, deadline=None)
def test_checksum_is_a_pure_function_of_the_task_list(tasks: tuple[Task, ...]) -> None:
    assert compute_checksum(tasks) == compute_checksum(list(tasks))
    document = ProjectDocument(project="p", tasks=tasks)
    assert verify_checksum(restamp(document, now=NOW))
