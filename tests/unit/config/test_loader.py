"""
todo-ledger — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-19

Purpose
- Validate config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Env var mapping and type coercion, including list values.
- Path normalization relative to the project root.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from todo_ledger.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    env_name_for_path,
    load_config,
)
from todo_ledger.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.mark.unit
def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    _write_config(tmp_path / "todo.toml", "[archive]\ndays_until_archive = 3\n")

    defaults = load_config(root=tmp_path / "empty", environ={})
    from_file = load_config(root=tmp_path, environ={})
    from_env = load_config(
        root=tmp_path, environ={"TODO_LEDGER_ARCHIVE_DAYS_UNTIL_ARCHIVE": "5"}
    )
    from_cli = load_config(
        root=tmp_path,
        environ={"TODO_LEDGER_ARCHIVE_DAYS_UNTIL_ARCHIVE": "5"},
        cli_overrides={"archive.days_until_archive": 9},
    )

    assert defaults["archive"]["days_until_archive"] == 7
    assert from_file["archive"]["days_until_archive"] == 3
    assert from_env["archive"]["days_until_archive"] == 5
    assert from_cli["archive"]["days_until_archive"] == 9


@pytest.mark.unit
def test_env_coercion_for_bool_and_list_values(tmp_path: Path) -> None:
    loaded = load_config(
        root=tmp_path,
        environ={
            "TODO_LEDGER_VALIDATION_STRICT": "yes",
            "TODO_LEDGER_VALIDATION_WARNING_KINDS": "stale_task, checksum_mismatch",
        },
    )
    assert loaded["validation"]["strict"] is True
    assert loaded["validation"]["warning_kinds"] == ["checksum_mismatch", "stale_task"]
    assert env_name_for_path(("audit", "keep_entries")) == "TODO_LEDGER_AUDIT_KEEP_ENTRIES"


@pytest.mark.unit
def test_bad_env_values_fail_with_the_variable_name(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="TODO_LEDGER_AUDIT_KEEP_ENTRIES"):
        load_config(root=tmp_path, environ={"TODO_LEDGER_AUDIT_KEEP_ENTRIES": "many"})
    with pytest.raises(ConfigLoadError, match="must be a boolean"):
        load_config(root=tmp_path, environ={"TODO_LEDGER_PHASES_AUTO_ADVANCE": "maybe"})


@pytest.mark.unit
def test_explicit_config_must_exist_and_parse(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", root=tmp_path, environ={})

    broken = tmp_path / "broken.toml"
    _write_config(broken, "[archive\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, root=tmp_path, environ={})

    typo = tmp_path / "typo.toml"
    _write_config(typo, "[archive]\ndays_untill_archive = 1\n")
    with pytest.raises(ConfigValidationError, match="archive.days_untill_archive: unknown field"):
        load_config(typo, root=tmp_path, environ={})


@pytest.mark.unit
def test_paths_are_normalized_against_root(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "todo.toml",
        '[paths]\ntodo_file = "state/../state/todo.json"\n\n'
        '[observability]\nlog_file = "logs/ledger.log"\n',
    )
    loaded = load_config(root=tmp_path, environ={})
    root = tmp_path.resolve().as_posix()
    assert loaded["paths"]["todo_file"] == f"{root}/state/todo.json"
    assert loaded["paths"]["log_file"] == f"{root}/.claude/todo-log.json"
    assert loaded["observability"]["log_file"] == f"{root}/logs/ledger.log"


@pytest.mark.unit
def test_dump_is_stable_across_loads(tmp_path: Path) -> None:
    first = dump_effective_config(load_config(root=tmp_path, environ={}))
    second = dump_effective_config(load_config(root=tmp_path, environ={}))
    assert first == second
    assert json.loads(first)["meta"]["schema_version"] == 1
