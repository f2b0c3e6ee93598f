"""
todo-ledger — unit tests for CLI routing

File: tests/unit/ui/test_cli.py
Last updated: 2026-10-19

Purpose
- Drive the CLI in-process and assert on exit codes and emitted payloads.

What this test file should cover
- Exit code contract: 0 success, 1 violation or rejected transition, 2 malformed input,
  3 config error.
- JSON and YAML output shapes for representative commands.
- Manual phase commands and backup restore.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from todo_ledger.main import cli_entrypoint
from todo_ledger.ui.cli import build_parser


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    for name in ("TODO_LEDGER_VALIDATION_STRICT", "TODO_LEDGER_ARCHIVE_ARCHIVE_ON_COMPLETE"):
        monkeypatch.delenv(name, raising=False)


def _run(
    capsys: pytest.CaptureFixture[str], root: Path, *argv: str
) -> tuple[int, str, str]:
    code = cli_entrypoint([*argv, "--root", str(root)])
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def _json(
    capsys: pytest.CaptureFixture[str], root: Path, *argv: str
) -> tuple[int, dict[str, object]]:
    code, out, _ = _run(capsys, root, *argv, "--json")
    return code, json.loads(out)


@pytest.mark.unit
def test_init_add_start_complete_round_trip(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code, out, _ = _run(capsys, tmp_path, "init", "--project", "demo")
    assert code == 0
    assert "Initialized demo" in out

    code, payload = _json(capsys, tmp_path, "add", "Write parser", "--phase", "core")
    assert code == 0
    assert payload["command"] == "add"
    assert payload["task"]["id"] == "T001"  # type: ignore[index]

    code, payload = _json(capsys, tmp_path, "add", "Ship", "--depends", "T001", "--label", "rel")
    assert payload["task"]["depends"] == ["T001"]  # type: ignore[index]

    code, payload = _json(capsys, tmp_path, "start", "T001")
    assert payload["focus"]["currentTask"] == "T001"  # type: ignore[index]
    code, out, _ = _run(capsys, tmp_path, "complete", "T001", "--actor", "claude")
    assert code == 0
    assert "complete: T001 is done" in out

    code, payload = _json(capsys, tmp_path, "list", "--status", "pending")
    assert [task["id"] for task in payload["tasks"]] == ["T002"]  # type: ignore[union-attr, index]

    code, payload = _json(capsys, tmp_path, "log", "list", "--actor", "claude")
    actions = [entry["action"] for entry in payload["entries"]]  # type: ignore[union-attr, index]
    assert actions == ["status_changed", "focus_changed"]


@pytest.mark.unit
def test_rejected_transition_exits_one(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a")
    _run(capsys, tmp_path, "add", "b", "--depends", "T001")

    code, _, err = _run(capsys, tmp_path, "start", "T002")
    assert code == 1
    assert "error: cannot start T002: dependencies not done: T001" in err

    code, _, err = _run(capsys, tmp_path, "show", "T404")
    assert code == 1
    assert "task not found: T404" in err


@pytest.mark.unit
def test_missing_and_malformed_documents(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code, _, err = _run(capsys, tmp_path, "list")
    assert code == 1
    assert "todo document not found" in err

    todo = tmp_path / ".claude" / "todo.json"
    todo.parent.mkdir()
    todo.write_text("{not json", encoding="utf-8")
    code, _, err = _run(capsys, tmp_path, "list")
    assert code == 2
    assert "invalid JSON" in err


@pytest.mark.unit
def test_config_errors_exit_three(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "todo.toml").write_text("[archive]\nbogus = 1\n", encoding="utf-8")
    code, _, err = _run(capsys, tmp_path, "config")
    assert code == 3
    assert "archive.bogus: unknown field" in err

    code, _, err = _run(capsys, tmp_path, "config", "--config", str(tmp_path / "nope.toml"))
    assert code == 3
    assert "config file not found" in err


@pytest.mark.unit
def test_validate_and_checksum_exit_codes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(capsys, tmp_path, "init", "--project", "demo")
    _run(capsys, tmp_path, "add", "a")

    code, payload = _json(capsys, tmp_path, "validate", "--strict")
    assert code == 0
    assert payload["valid"] is True
    assert payload["violations"] == []

    todo = tmp_path / ".claude" / "todo.json"
    document = json.loads(todo.read_text(encoding="utf-8"))
    document["tasks"][0]["title"] = "changed by hand"
    todo.write_text(json.dumps(document), encoding="utf-8")

    code, out, _ = _run(capsys, tmp_path, "checksum")
    assert code == 1
    assert "checksum mismatch" in out
    code, payload = _json(capsys, tmp_path, "validate")
    assert code == 0
    kinds = [item["kind"] for item in payload["violations"]]  # type: ignore[union-attr, index]
    assert kinds == ["checksum_mismatch"]

    code, payload = _json(capsys, tmp_path, "checksum", "--update")
    assert code == 0
    assert payload["updated"] is True
    assert _run(capsys, tmp_path, "checksum")[0] == 0


@pytest.mark.unit
def test_yaml_output_and_focus_commands(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a")
    _run(capsys, tmp_path, "focus", "set", "T001")
    _run(capsys, tmp_path, "focus", "next", "write the lexer")

    code, out, _ = _run(capsys, tmp_path, "focus", "show", "--format", "yaml")
    assert code == 0
    payload = yaml.safe_load(out)
    assert payload["focus"]["currentTask"] == "T001"
    assert payload["focus"]["nextAction"] == "write the lexer"
    assert payload["task"]["status"] == "active"


@pytest.mark.unit
def test_archive_dry_run_and_phase_show(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a", "--phase", "setup")
    _run(capsys, tmp_path, "complete", "T001")

    code, out, _ = _run(capsys, tmp_path, "archive", "--dry-run")
    assert code == 0
    assert "Nothing to archive." in out

    code, payload = _json(capsys, tmp_path, "archive", "--force", "--dry-run")
    candidates = payload["candidates"]
    assert [item["taskId"] for item in candidates] == ["T001"]  # type: ignore[union-attr, index]

    code, payload = _json(capsys, tmp_path, "phase", "show")
    (summary,) = payload["phases"]  # type: ignore[misc]
    assert summary["state"] == "completed"  # type: ignore[index]


@pytest.mark.unit
def test_session_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, tmp_path, "init")
    code, payload = _json(capsys, tmp_path, "session", "start")
    assert code == 0
    code, _, err = _run(capsys, tmp_path, "session", "start")
    assert code == 1
    assert "already active" in err
    code, out, _ = _run(capsys, tmp_path, "session", "end", "--note", "done for today")
    assert code == 0
    assert "session end: ok" in out


@pytest.mark.unit
def test_parser_rejects_conflicting_archive_modes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code, _, err = _run(capsys, tmp_path, "archive", "--force", "--all")
    assert code == 2
    assert "not allowed with argument" in err

    args = build_parser().parse_args(["log", "list", "--actor", "human", "--limit", "3"])
    assert args.filter_actor == "human"
    assert args.limit == 3


@pytest.mark.unit
def test_manual_phase_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a", "--phase", "setup")
    _run(capsys, tmp_path, "add", "b", "--phase", "core")
    _run(capsys, tmp_path, "complete", "T001")

    code, payload = _json(capsys, tmp_path, "phase", "start", "core")
    assert code == 0
    assert payload["focus"]["currentPhase"] == "core"  # type: ignore[index]

    code, _, err = _run(capsys, tmp_path, "phase", "complete", "core")
    assert code == 1
    assert "tasks not done: T002" in err

    code, out, _ = _run(capsys, tmp_path, "phase", "set", "setup")
    assert code == 0
    assert "phase set: ok" in out
    code, _, _ = _run(capsys, tmp_path, "phase", "advance")
    assert code == 0

    code, payload = _json(capsys, tmp_path, "log", "list", "--action", "phase_started")
    details = [entry["details"] for entry in payload["entries"]]  # type: ignore[union-attr, index]
    assert details == [{"phase": "core"}, {"phase": "core", "from": "setup"}]


@pytest.mark.unit
def test_completing_twice_prints_a_warning(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a")
    _run(capsys, tmp_path, "complete", "T001")
    code, out, _ = _run(capsys, tmp_path, "complete", "T001")
    assert code == 0
    assert "Warning: T001 is already done; nothing changed" in out


@pytest.mark.unit
def test_restore_lists_and_restores_backups(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(capsys, tmp_path, "init")
    _run(capsys, tmp_path, "add", "a")
    _run(capsys, tmp_path, "add", "b")

    code, payload = _json(capsys, tmp_path, "restore", "--list")
    assert code == 0
    names = payload["backups"]
    assert isinstance(names, list) and len(names) == 2

    code, payload = _json(capsys, tmp_path, "restore", str(names[-1]))
    assert code == 0
    assert payload["command"] == "restore"
    code, payload = _json(capsys, tmp_path, "list")
    assert [task["id"] for task in payload["tasks"]] == ["T001"]  # type: ignore[union-attr, index]

    corrupt = tmp_path / ".claude" / ".backups" / "todo.json.20260101T000000000000Z.bak"
    corrupt.write_text("{", encoding="utf-8")
    code, _, err = _run(capsys, tmp_path, "restore", corrupt.name)
    assert code == 2
    assert corrupt.name in err
    code, _, err = _run(capsys, tmp_path, "restore", "../todo.json")
    assert code == 1
    assert "backup not found" in err
