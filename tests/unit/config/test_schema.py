"""
todo-ledger — unit tests for config schema

File: tests/unit/config/test_schema.py
Last updated: 2026-10-19

Purpose
- Validate config payloads and the deep merge of config layers.

What this test file should cover
- Issues carry dotted field paths; always-fatal kinds cannot be downgraded.
- Merging is deep and never aliases its inputs.
"""

from __future__ import annotations

import pytest

from todo_ledger.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _issue_paths(payload: object) -> list[str]:
    return [issue.path for issue in validate_config(payload).issues]


@pytest.mark.unit
def test_defaults_are_valid_and_independent_copies() -> None:
    config = default_config()
    assert validate_config(config).is_valid
    config["archive"]["days_until_archive"] = 99
    assert default_config()["archive"]["days_until_archive"] == 7


@pytest.mark.unit
def test_issues_carry_field_paths() -> None:
    payload = merge_config(
        default_config(),
        {
            "archive": {"max_completed_tasks": -1},
            "audit": {"enabled": "yes"},
            "observability": {"log_level": "TRACE"},
            "extra": {},
        },
    )
    assert _issue_paths(payload) == [
        "extra",
        "archive.max_completed_tasks",
        "audit.enabled",
        "observability.log_level",
    ]


@pytest.mark.unit
def test_always_fatal_kinds_cannot_be_downgraded() -> None:
    payload = merge_config(
        default_config(),
        {"validation": {"warning_kinds": ["circular_dependency", "bogus"]}},
    )
    result = validate_config(payload)
    messages = [issue.message for issue in result.issues]
    assert "circular_dependency is always an error and cannot be downgraded" in messages
    assert any(message.startswith("unknown violation kind 'bogus'") for message in messages)


@pytest.mark.unit
def test_schema_version_mismatch_gives_guidance() -> None:
    payload = merge_config(default_config(), {"meta": {"schema_version": 2}})
    with pytest.raises(ConfigValidationError, match="upgrade the todo-ledger package"):
        assert_valid_config(payload)
    assert "older than supported" in migration_guidance(0)


@pytest.mark.unit
def test_merge_is_deep_and_does_not_alias_inputs() -> None:
    base = {"a": {"b": 1, "c": [1]}}
    merged = merge_config(base, {"a": {"b": 2}})
    assert merged == {"a": {"b": 2, "c": [1]}}
    merged["a"]["c"].append(2)
    assert base["a"]["c"] == [1]


@pytest.mark.unit
def test_empty_observability_log_file_means_stderr() -> None:
    payload = merge_config(default_config(), {"observability": {"log_file": "   "}})
    assert assert_valid_config(payload)["observability"]["log_file"] == ""
