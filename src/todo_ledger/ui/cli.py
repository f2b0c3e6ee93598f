"""Command-line interface router for todo-ledger."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import yaml

from todo_ledger.archive import ArchiveMode
from todo_ledger.audit import AuditFilter, parse_since
from todo_ledger.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
)
from todo_ledger.control_plane import MutationOutcome, TodoController
from todo_ledger.domain.events import Actor, AuditAction
from todo_ledger.domain.models import TaskPriority, TaskStatus
from todo_ledger.observability import correlation_scope, setup_logging, shutdown_logging
from todo_ledger.ui.render import CLIRenderer, create_renderer

OUTPUT_FORMATS: Final[tuple[str, ...]] = ("text", "json", "yaml")

_EXIT_VIOLATIONS: Final[int] = 1
_EXIT_CONFIG_ERROR: Final[int] = 3


@dataclass(eq=False)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code.

    Not frozen: ``contextlib`` assigns ``__traceback__`` while it unwinds.
    """

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


Handler = Callable[[argparse.Namespace], int]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="todo-ledger",
        description=(
            "todo-ledger — integrity-checked task ledger with an audit trail.\n\n"
            "Common workflows:\n"
            "  todo-ledger init                  Create empty documents\n"
            "  todo-ledger add 'Write parser'    Append a pending task\n"
            "  todo-ledger start T001            Make a task active\n"
            "  todo-ledger complete T001         Finish it (runs phase/archive passes)\n"
            "  todo-ledger validate --strict     Check every invariant\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        default=".",
        help="Project root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./todo.toml if present).",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit deterministic JSON output (same as --format json).",
    )
    common.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="text",
        help="Output format (default: text).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable emphasis (also respects NO_COLOR env var).",
    )

    # Read-only commands share the options above; writers also record an actor.
    writer = argparse.ArgumentParser(add_help=False, parents=[common])
    writer.add_argument(
        "--actor",
        choices=tuple(actor.value for actor in Actor),
        default=Actor.HUMAN.value,
        help="Actor recorded on audit entries (default: human).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    def leaf(
        group: Any,
        name: str,
        handler: Handler,
        help_text: str,
        examples: Sequence[str] = (),
        *,
        reads_only: bool = False,
    ) -> argparse.ArgumentParser:
        description = help_text
        if examples:
            description += "\n\nExamples:\n" + "".join(f"  {line}\n" for line in examples)
        child: argparse.ArgumentParser = group.add_parser(
            name,
            parents=[common if reads_only else writer],
            help=help_text,
            description=description,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        child.set_defaults(handler=handler)
        return child

    # init ----------------------------------------------------------------
    init_parser = leaf(
        subparsers,
        "init",
        _cmd_init,
        "Create empty todo, archive and log documents",
        ("todo-ledger init --project demo",),
    )
    init_parser.add_argument(
        "--project", default=None, help="Project name (default: root dir name)"
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite an existing todo document"
    )

    # add -----------------------------------------------------------------
    add_parser = leaf(
        subparsers,
        "add",
        _cmd_add,
        "Append a pending task",
        (
            "todo-ledger add 'Write parser' --priority high --phase core",
            "todo-ledger add 'Ship' --depends T001,T002 --label release",
        ),
    )
    add_parser.add_argument("title", help="Task title")
    add_parser.add_argument(
        "--priority",
        choices=tuple(priority.value for priority in TaskPriority),
        default=TaskPriority.MEDIUM.value,
    )
    add_parser.add_argument("--phase", default=None, help="Phase label (default: inferred)")
    add_parser.add_argument(
        "--depends",
        action="append",
        default=[],
        help="Comma separated dependency ids; may be repeated",
    )
    add_parser.add_argument("--label", action="append", default=[], dest="labels")
    add_parser.add_argument("--file", action="append", default=[], dest="files")
    add_parser.add_argument("--acceptance", action="append", default=[])
    add_parser.add_argument("--description", default=None)

    # list / show ---------------------------------------------------------
    list_parser = leaf(subparsers, "list", _cmd_list, "List live tasks")
    list_parser.add_argument(
        "--status", choices=tuple(status.value for status in TaskStatus), default=None
    )
    list_parser.add_argument("--phase", default=None)

    show_parser = leaf(subparsers, "show", _cmd_show, "Show one task")
    show_parser.add_argument("task_id")

    # lifecycle -----------------------------------------------------------
    start_parser = leaf(subparsers, "start", _cmd_start, "Make a task active and focus it")
    start_parser.add_argument("task_id")

    complete_parser = leaf(
        subparsers,
        "complete",
        _cmd_complete,
        "Mark a task done",
        ("todo-ledger complete T001", "todo-ledger complete T001 --no-archive"),
    )
    complete_parser.add_argument("task_id")
    complete_parser.add_argument(
        "--no-archive",
        action="store_true",
        help="Skip the archive pass even when archive.archive_on_complete is set",
    )

    block_parser = leaf(subparsers, "block", _cmd_block, "Block a task with a reason")
    block_parser.add_argument("task_id")
    block_parser.add_argument("--reason", required=True)

    unblock_parser = leaf(subparsers, "unblock", _cmd_unblock, "Return a blocked task to pending")
    unblock_parser.add_argument("task_id")

    reopen_parser = leaf(subparsers, "reopen", _cmd_reopen, "Return a done task to pending")
    reopen_parser.add_argument("task_id")
    reopen_parser.add_argument("--reason", default=None)

    note_parser = leaf(subparsers, "note", _cmd_note, "Append a timestamped note to a task")
    note_parser.add_argument("task_id")
    note_parser.add_argument("text")

    # focus ---------------------------------------------------------------
    focus_parser = subparsers.add_parser("focus", help="Inspect or change the focus record")
    focus_sub = focus_parser.add_subparsers(dest="focus_command", required=True)
    leaf(focus_sub, "show", _cmd_focus_show, "Show the focus record")
    focus_set = leaf(focus_sub, "set", _cmd_focus_set, "Focus a task (pauses other active work)")
    focus_set.add_argument("task_id")
    leaf(focus_sub, "clear", _cmd_focus_clear, "Clear focus and pause active work")
    focus_note = leaf(focus_sub, "note", _cmd_focus_note, "Set the session note")
    focus_note.add_argument("text", nargs="?", default=None)
    focus_next = leaf(focus_sub, "next", _cmd_focus_next, "Set the next action")
    focus_next.add_argument("text", nargs="?", default=None)

    # validate / checksum -------------------------------------------------
    validate_parser = leaf(
        subparsers,
        "validate",
        _cmd_validate,
        "Check every document invariant",
        (
            "todo-ledger validate",
            "todo-ledger validate --strict --json",
            "todo-ledger validate --fix",
        ),
    )
    validate_parser.add_argument(
        "--strict", action="store_true", help="Treat every violation as blocking"
    )
    validate_parser.add_argument("--fix", action="store_true", help="Apply safe repairs")

    checksum_parser = leaf(subparsers, "checksum", _cmd_checksum, "Verify the task checksum")
    checksum_parser.add_argument(
        "--update", action="store_true", help="Restamp a mismatching checksum"
    )

    # log -----------------------------------------------------------------
    log_parser = subparsers.add_parser("log", help="Inspect and maintain the audit log")
    log_sub = log_parser.add_subparsers(dest="log_command", required=True)
    log_list = leaf(
        log_sub,
        "list",
        _cmd_log_list,
        "List audit entries (oldest first)",
        ("todo-ledger log list --task T001 --limit 5", "todo-ledger log list --since 2026-01-01"),
        reads_only=True,
    )
    log_list.add_argument("--action", choices=tuple(action.value for action in AuditAction))
    log_list.add_argument("--task", dest="task_id", default=None)
    log_list.add_argument("--actor", dest="filter_actor", choices=tuple(a.value for a in Actor))
    log_list.add_argument("--since", default=None, help="YYYY-MM-DD or ISO-8601 timestamp")
    log_list.add_argument("--limit", type=int, default=0, help="Keep the last N matches")
    log_show = leaf(log_sub, "show", _cmd_log_show, "Show one audit entry")
    log_show.add_argument("entry_id")
    leaf(log_sub, "migrate", _cmd_log_migrate, "Rewrite a legacy log in the current schema")
    log_rotate = leaf(log_sub, "rotate", _cmd_log_rotate, "Trim the log to audit.keep_entries")
    log_rotate.add_argument("--force", action="store_true", help="Rotate below the size threshold")
    leaf(log_sub, "prune", _cmd_log_prune, "Drop entries older than audit.retention_days")
    leaf(log_sub, "stats", _cmd_log_stats, "Summarize the audit log")

    # archive -------------------------------------------------------------
    archive_parser = leaf(
        subparsers,
        "archive",
        _cmd_archive,
        "Move done tasks into the archive document",
        (
            "todo-ledger archive --dry-run",
            "todo-ledger archive --force",
            "todo-ledger archive --all",
        ),
    )
    archive_parser.add_argument("--dry-run", action="store_true", help="Only print the plan")
    mode_group = archive_parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--force", action="store_true", help="Ignore age and cap; keep preserve_recent_count"
    )
    mode_group.add_argument("--all", action="store_true", help="Archive every done task")

    # phase ---------------------------------------------------------------
    phase_parser = subparsers.add_parser("phase", help="Inspect or move phase progress")
    phase_sub = phase_parser.add_subparsers(dest="phase_command", required=True)
    leaf(phase_sub, "show", _cmd_phase_show, "Show per-phase task counts and state")
    leaf(
        phase_sub,
        "complete-check",
        _cmd_phase_complete_check,
        "Record every fully-done phase not yet marked completed",
    )
    phase_set = leaf(
        phase_sub, "set", _cmd_phase_set, "Point the current phase at a label (no history entry)"
    )
    phase_set.add_argument("phase")
    phase_start = leaf(
        phase_sub,
        "start",
        _cmd_phase_start,
        "Record a phase as started and make it current",
        ("todo-ledger phase start core",),
    )
    phase_start.add_argument("phase")
    phase_complete = leaf(
        phase_sub, "complete", _cmd_phase_complete, "Record a fully-done phase as completed"
    )
    phase_complete.add_argument("phase")
    leaf(
        phase_sub,
        "advance",
        _cmd_phase_advance,
        "Complete the current phase and start the next one with open work",
    )

    # session -------------------------------------------------------------
    session_parser = subparsers.add_parser("session", help="Start or end a work session")
    session_sub = session_parser.add_subparsers(dest="session_command", required=True)
    leaf(session_sub, "start", _cmd_session_start, "Open a session")
    session_end = leaf(session_sub, "end", _cmd_session_end, "Close the active session")
    session_end.add_argument("--note", default=None, help="Session note to keep")

    # restore -------------------------------------------------------------
    restore_parser = leaf(
        subparsers,
        "restore",
        _cmd_restore,
        "List todo document backups or restore one",
        ("todo-ledger restore --list", "todo-ledger restore todo.json.20261019T101500000000Z.bak"),
    )
    restore_parser.add_argument("name", nargs="?", default=None, help="Backup file name")
    restore_parser.add_argument("--list", action="store_true", help="Only list the backups")

    # config --------------------------------------------------------------
    leaf(subparsers, "config", _cmd_config, "Print the effective config")

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        namespace.effective_config = _load_effective_config(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code

    setup_logging(namespace.effective_config["observability"])
    try:
        with correlation_scope(command=_command_name(namespace)):
            result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_init(args: argparse.Namespace) -> int:
    root = _project_root(args)
    project = _optional_str(getattr(args, "project", None)) or root.name
    controller = _controller(args)
    document = controller.init_project(project, force=_flag(args, "force"))

    payload: dict[str, object] = {
        "command": "init",
        "project": document.project,
        "checksum": document.meta.checksum,
        "todoFile": controller.store.paths.todo_file.as_posix(),
    }
    if _emit_structured(args, payload):
        return 0

    renderer = _get_renderer(args)
    renderer.text(f"Initialized {project} at {controller.store.paths.todo_file}")
    renderer.next_steps(["todo-ledger add 'First task'"])
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    outcome = _controller(args).add_task(
        args.title,
        priority=args.priority,
        phase=_optional_str(args.phase),
        description=_optional_str(args.description),
        depends=_split_ids(args.depends),
        labels=tuple(args.labels),
        files=tuple(args.files),
        acceptance=tuple(args.acceptance),
    )
    return _emit_outcome(args, "add", outcome)


def _cmd_list(args: argparse.Namespace) -> int:
    document = _controller(args).load()
    status = _optional_str(getattr(args, "status", None))
    phase = _optional_str(getattr(args, "phase", None))
    tasks = [
        task
        for task in document.tasks
        if (status is None or task.status.value == status)
        and (phase is None or task.phase == phase)
    ]
    payload: dict[str, object] = {
        "command": "list",
        "tasks": [task.to_dict() for task in tasks],
        "focus": document.focus.to_dict(),
    }
    if _emit_structured(args, payload):
        return 0
    _get_renderer(args).tasks(tasks, title=document.project or None)
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    task = _controller(args).show_task(args.task_id)
    if _emit_structured(args, {"command": "show", "task": task.to_dict()}):
        return 0
    _get_renderer(args).task_detail(task)
    return 0


def _cmd_start(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "start", _controller(args).start_task(args.task_id))


def _cmd_complete(args: argparse.Namespace) -> int:
    archive = False if _flag(args, "no_archive") else None
    outcome = _controller(args).complete_task(args.task_id, archive=archive)
    return _emit_outcome(args, "complete", outcome)


def _cmd_block(args: argparse.Namespace) -> int:
    outcome = _controller(args).block_task(args.task_id, args.reason)
    return _emit_outcome(args, "block", outcome)


def _cmd_unblock(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "unblock", _controller(args).unblock_task(args.task_id))


def _cmd_reopen(args: argparse.Namespace) -> int:
    outcome = _controller(args).reopen_task(args.task_id, reason=_optional_str(args.reason))
    return _emit_outcome(args, "reopen", outcome)


def _cmd_note(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "note", _controller(args).add_note(args.task_id, args.text))


def _cmd_focus_show(args: argparse.Namespace) -> int:
    document = _controller(args).load()
    focus = document.focus
    current = document.find_task(focus.current_task) if focus.current_task else None
    payload: dict[str, object] = {
        "command": "focus show",
        "focus": focus.to_dict(),
        "task": current.to_dict() if current is not None else None,
        "activeSession": document.meta.active_session,
    }
    if _emit_structured(args, payload):
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Current task", focus.current_task)
    renderer.kv("Current phase", focus.current_phase)
    renderer.kv("Session note", focus.session_note)
    renderer.kv("Next action", focus.next_action)
    renderer.kv("Active session", document.meta.active_session)
    if current is not None:
        renderer.blank()
        renderer.task_detail(current)
    return 0


def _cmd_focus_set(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "focus set", _controller(args).set_focus(args.task_id))


def _cmd_focus_clear(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "focus clear", _controller(args).clear_focus())


def _cmd_focus_note(args: argparse.Namespace) -> int:
    outcome = _controller(args).set_session_note(_optional_str(args.text))
    return _emit_outcome(args, "focus note", outcome)


def _cmd_focus_next(args: argparse.Namespace) -> int:
    outcome = _controller(args).set_next_action(_optional_str(args.text))
    return _emit_outcome(args, "focus next", outcome)


def _cmd_validate(args: argparse.Namespace) -> int:
    strict = True if _flag(args, "strict") else None
    report = _controller(args).run_validation(strict=strict, fix=_flag(args, "fix"))
    payload: dict[str, object] = {"command": "validate", **report.to_dict()}
    if _emit_structured(args, payload):
        return report.exit_code

    renderer = _get_renderer(args)
    if report.is_valid and not report.violations:
        renderer.text("Valid: no violations.")
    else:
        renderer.heading(
            f"{'Valid' if report.is_valid else 'Invalid'}: "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
        renderer.violations(report.violations)
    if report.fixed:
        renderer.section("Fixed:")
        renderer.items(list(report.fixed))
    return report.exit_code


def _cmd_checksum(args: argparse.Namespace) -> int:
    update = _flag(args, "update")
    status = _controller(args).checksum(update=update)
    ok = status.matches or update
    payload: dict[str, object] = {
        "command": "checksum",
        **status.to_dict(),
        "updated": update and not status.matches,
    }
    if _emit_structured(args, payload):
        return 0 if ok else _EXIT_VIOLATIONS

    renderer = _get_renderer(args)
    renderer.kv("Stored", status.stored)
    renderer.kv("Computed", status.computed)
    if status.matches:
        renderer.text("Checksum OK.")
    elif update:
        renderer.text("Checksum restamped.")
    else:
        renderer.warning("checksum mismatch")
        renderer.next_steps(["todo-ledger checksum --update"])
    return 0 if ok else _EXIT_VIOLATIONS


def _cmd_log_list(args: argparse.Namespace) -> int:
    since_raw = _optional_str(getattr(args, "since", None))
    action = _optional_str(getattr(args, "action", None))
    actor = _optional_str(getattr(args, "filter_actor", None))
    try:
        filters = AuditFilter(
            action=AuditAction(action) if action else None,
            task_id=_optional_str(getattr(args, "task_id", None)),
            actor=Actor(actor) if actor else None,
            since=parse_since(since_raw) if since_raw else None,
            limit=args.limit,
        )
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    entries = _controller(args).trail.list(filters)
    payload: dict[str, object] = {
        "command": "log list",
        "entries": [entry.to_dict() for entry in entries],
    }
    if _emit_structured(args, payload):
        return 0
    _get_renderer(args).audit_entries(entries)
    return 0


def _cmd_log_show(args: argparse.Namespace) -> int:
    entry = _controller(args).trail.show(args.entry_id)
    payload: dict[str, object] = {"command": "log show", "entry": entry.to_dict()}
    if _emit_structured(args, payload):
        return 0
    renderer = _get_renderer(args)
    for key, value in entry.to_dict().items():
        rendered = value if isinstance(value, str) or value is None else json.dumps(value)
        renderer.kv(key, rendered)
    return 0


def _cmd_log_migrate(args: argparse.Namespace) -> int:
    result = _controller(args).trail.migrate()
    payload: dict[str, object] = {
        "command": "log migrate",
        "migrated": result.migrated,
        "entries": len(result.log.entries),
    }
    if _emit_structured(args, payload):
        return 0
    _get_renderer(args).text(
        f"Migrated {result.migrated} of {len(result.log.entries)} entries."
    )
    return 0


def _cmd_log_rotate(args: argparse.Namespace) -> int:
    result = _controller(args).trail.rotate(force=_flag(args, "force"))
    return _emit_rotation(args, "log rotate", result.rotated, result.pruned, result.size_bytes)


def _cmd_log_prune(args: argparse.Namespace) -> int:
    result = _controller(args).trail.prune()
    return _emit_rotation(args, "log prune", result.rotated, result.pruned, result.size_bytes)


def _cmd_log_stats(args: argparse.Namespace) -> int:
    stats = _controller(args).trail.stats()
    if _emit_structured(args, {"command": "log stats", "stats": stats}):
        return 0
    renderer = _get_renderer(args)
    for key in sorted(stats):
        value = stats[key]
        renderer.kv(key, json.dumps(value, sort_keys=True) if isinstance(value, dict) else value)
    return 0


def _cmd_archive(args: argparse.Namespace) -> int:
    if _flag(args, "all"):
        mode = ArchiveMode.ALL
    elif _flag(args, "force"):
        mode = ArchiveMode.FORCE
    else:
        mode = ArchiveMode.POLICY

    controller = _controller(args)
    if _flag(args, "dry_run"):
        plan = controller.plan_archive(mode)
        payload: dict[str, object] = {"command": "archive", "dryRun": True, **plan.to_dict()}
        if _emit_structured(args, payload):
            return 0
        renderer = _get_renderer(args)
        if plan.is_empty:
            renderer.text("Nothing to archive.")
            return 0
        renderer.table(
            ("task", "reason", "completed", "referenced by"),
            [
                (
                    str(row["taskId"]),
                    str(row["reason"]),
                    str(row["completedAt"] or ""),
                    ",".join(str(item) for item in row["referencedBy"]),
                )
                for row in (candidate.to_dict() for candidate in plan.candidates)
            ],
            title=f"Would archive ({mode.value}):",
        )
        return 0

    result = controller.archive(mode)
    payload = {
        "command": "archive",
        "dryRun": False,
        "mode": mode.value,
        **result.to_dict(),
    }
    if _emit_structured(args, payload):
        return 0
    renderer = _get_renderer(args)
    if not result.archived_ids:
        renderer.text("Nothing to archive.")
    else:
        renderer.text(f"Archived {len(result.archived_ids)} task(s):")
        renderer.items(list(result.archived_ids))
    return 0


def _cmd_phase_show(args: argparse.Namespace) -> int:
    controller = _controller(args)
    summaries = controller.phases()
    current = controller.current_phase()
    payload: dict[str, object] = {
        "command": "phase show",
        "currentPhase": current or None,
        "phases": [summary.to_dict() for summary in summaries],
    }
    if _emit_structured(args, payload):
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Current phase", current)
    if not summaries:
        renderer.text("No phases.")
        return 0
    renderer.table(
        ("phase", "done", "total", "active", "blocked", "state"),
        [
            (
                summary.phase,
                str(summary.done),
                str(summary.total),
                str(summary.active),
                str(summary.blocked),
                summary.state,
            )
            for summary in summaries
        ],
    )
    return 0


def _cmd_phase_complete_check(args: argparse.Namespace) -> int:
    outcome = _controller(args).check_phase_completion()
    return _emit_outcome(args, "phase complete-check", outcome)


def _cmd_phase_set(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "phase set", _controller(args).set_phase(args.phase))


def _cmd_phase_start(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "phase start", _controller(args).start_phase(args.phase))


def _cmd_phase_complete(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "phase complete", _controller(args).complete_phase(args.phase))


def _cmd_phase_advance(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "phase advance", _controller(args).advance_phase())


def _cmd_session_start(args: argparse.Namespace) -> int:
    return _emit_outcome(args, "session start", _controller(args).start_session())


def _cmd_session_end(args: argparse.Namespace) -> int:
    outcome = _controller(args).end_session(note=_optional_str(getattr(args, "note", None)))
    return _emit_outcome(args, "session end", outcome)


def _cmd_restore(args: argparse.Namespace) -> int:
    controller = _controller(args)
    name = _optional_str(args.name)
    if _flag(args, "list") or name is None:
        backups = controller.list_backups()
        payload: dict[str, object] = {
            "command": "restore",
            "backups": [path.name for path in backups],
        }
        if _emit_structured(args, payload):
            return 0
        renderer = _get_renderer(args)
        if not backups:
            renderer.text("No backups.")
        else:
            renderer.items([path.name for path in backups])
        return 0
    return _emit_outcome(args, "restore", controller.restore_backup(name))


def _cmd_config(args: argparse.Namespace) -> int:
    config = args.effective_config
    if _emit_structured(args, {"command": "config", "config": config}):
        return 0
    _get_renderer(args).text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _emit_yaml(payload: Mapping[str, object]) -> None:
    sys.stdout.write(
        yaml.safe_dump(dict(payload), sort_keys=True, allow_unicode=True, default_flow_style=False)
    )


def _emit_structured(args: argparse.Namespace, payload: Mapping[str, object]) -> bool:
    """Write ``payload`` as JSON or YAML when requested; ``False`` means render text."""

    output_format = _output_format(args)
    if output_format == "json":
        _emit_json(payload)
        return True
    if output_format == "yaml":
        _emit_yaml(payload)
        return True
    return False


def _emit_outcome(args: argparse.Namespace, command: str, outcome: MutationOutcome) -> int:
    payload: dict[str, object] = {"command": command, **outcome.to_dict()}
    if _emit_structured(args, payload):
        return 0
    _render_outcome(_get_renderer(args), command, outcome)
    return 0


def _render_outcome(renderer: CLIRenderer, command: str, outcome: MutationOutcome) -> None:
    if outcome.task is not None:
        renderer.text(f"{command}: {outcome.task.id} is {outcome.task.status.value}")
        if renderer.verbose:
            renderer.task_detail(outcome.task)
    else:
        renderer.text(f"{command}: ok")
    focus = outcome.document.focus
    renderer.kv("Focus", focus.current_task)
    if outcome.document.meta.active_session:
        renderer.kv("Session", outcome.document.meta.active_session)
    if outcome.completed_phases:
        renderer.kv("Phases completed", ", ".join(outcome.completed_phases))
    if outcome.advanced_phase:
        renderer.kv("Advanced to phase", outcome.advanced_phase)
    if outcome.ambiguous_phases:
        renderer.warning(
            "several phases completed at once; pick the next one with "
            "`todo-ledger phase start <phase>`: " + ", ".join(outcome.ambiguous_phases)
        )
    if outcome.archived_ids:
        renderer.kv("Archived", ", ".join(outcome.archived_ids))
    for violation in outcome.warnings:
        renderer.warning(violation.describe())
    for notice in outcome.notices:
        renderer.warning(notice)


def _emit_rotation(
    args: argparse.Namespace, command: str, rotated: bool, pruned: int, size_bytes: int
) -> int:
    payload: dict[str, object] = {
        "command": command,
        "rotated": rotated,
        "pruned": pruned,
        "sizeBytes": size_bytes,
    }
    if _emit_structured(args, payload):
        return 0
    renderer = _get_renderer(args)
    if rotated:
        renderer.text(f"Pruned {pruned} entries; log is now {size_bytes} bytes.")
    else:
        renderer.text(f"Nothing to prune; log is {size_bytes} bytes.")
    return 0


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _output_format(args: argparse.Namespace) -> str:
    if _flag(args, "json"):
        return "json"
    value = getattr(args, "output_format", "text")
    return value if value in OUTPUT_FORMATS else "text"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _project_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "root", None), "root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.exists() or not candidate.is_dir():
        raise CLIError(f"project root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    root = _project_root(args)
    config_path = _optional_str(getattr(args, "config_path", None))
    try:
        return load_config(config_path, root=root)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=_EXIT_CONFIG_ERROR) from exc


def _controller(args: argparse.Namespace) -> TodoController:
    return TodoController.from_config(
        args.effective_config,
        root=_project_root(args),
        actor=Actor(getattr(args, "actor", Actor.HUMAN.value)),
    )


def _command_name(args: argparse.Namespace) -> str:
    parts = [str(args.command)]
    for attr in ("focus_command", "log_command", "phase_command", "session_command"):
        value = getattr(args, attr, None)
        if isinstance(value, str):
            parts.append(value)
    return " ".join(parts)


def _split_ids(values: Sequence[str]) -> tuple[str, ...]:
    out: list[str] = []
    for value in values:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(dict.fromkeys(out))


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CLIError(f"{name} must be a non-empty string", exit_code=2)
    return value.strip()


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return str(value)
    stripped = value.strip()
    return stripped or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "OUTPUT_FORMATS", "build_parser", "main", "run_cli"]
