"""Output rendering for the todo-ledger CLI.

File: src/todo_ledger/ui/render.py
Last updated: 2026-10-19

Purpose
- Provide a thin text rendering layer for task lists, reports and audit entries.
- Keep structured (``json`` / ``yaml``) output out of this module; the CLI emits
  those directly so they stay byte-for-byte deterministic.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- ``NO_COLOR`` and ``--no-color`` suppress the status markers' emphasis.

Non-functional requirements
- Writes only to the configured stream (stdout by default).
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

from todo_ledger.domain.models import format_timestamp

if TYPE_CHECKING:
    from collections.abc import Sequence

    from todo_ledger.domain.events import AuditEntry
    from todo_ledger.domain.models import Task
    from todo_ledger.integrity.validator import Violation

_STATUS_MARKERS = {
    "pending": "[ ]",
    "active": "[>]",
    "blocked": "[!]",
    "done": "[x]",
}


def _emphasis_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Deterministic plain-text renderer."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout
        self._emphasis = _emphasis_allowed(no_color, self._stream)

    def _emit(self, line: str = "") -> None:
        print(line, file=self._stream)

    def heading(self, text: str) -> None:
        self._emit(f"\033[1m{text}\033[0m" if self._emphasis else text)

    def kv(self, key: str, value: object) -> None:
        self._emit(f"{key}: {'-' if value is None or value == '' else value}")

    def text(self, line: str) -> None:
        self._emit(line)

    def blank(self) -> None:
        self._emit()

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._emit()
        self.heading(title)

    def warning(self, text: str) -> None:
        self._emit(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._emit(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a column-aligned table; nothing is printed for zero rows."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self._emit(f"  {_pad(list(headers))}")
        self._emit(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            self._emit(f"  {_pad(list(row))}")

    def tasks(self, tasks: Sequence[Task], *, title: str | None = None) -> None:
        rows = [
            (
                f"{_STATUS_MARKERS.get(task.status.value, '[?]')} {task.id}",
                task.priority.value,
                task.phase or "",
                ",".join(task.depends),
                task.title,
            )
            for task in tasks
        ]
        if not rows:
            self.text("No tasks.")
            return
        self.table(("task", "priority", "phase", "depends", "title"), rows, title=title)

    def task_detail(self, task: Task) -> None:
        self.heading(f"{task.id}  {task.title}")
        self.kv("  status", task.status.value)
        self.kv("  priority", task.priority.value)
        self.kv("  phase", task.phase)
        if task.depends:
            self.kv("  depends", ", ".join(task.depends))
        if task.blocked_by:
            self.kv("  blocked by", task.blocked_by)
        if self.verbose:
            if task.description:
                self.kv("  description", task.description)
            if task.labels:
                self.kv("  labels", ", ".join(task.labels))
            for note in task.notes:
                self.text(f"    - {note}")

    def violations(self, violations: Sequence[Violation]) -> None:
        for violation in violations:
            self._emit(f"  {violation.describe()}")

    def audit_entries(self, entries: Sequence[AuditEntry]) -> None:
        rows = [
            (
                entry.id,
                format_timestamp(entry.timestamp),
                entry.action.value,
                entry.actor.value,
                entry.task_id or "",
            )
            for entry in entries
        ]
        if not rows:
            self.text("No audit entries.")
            return
        self.table(("id", "timestamp", "action", "actor", "task"), rows)

    def next_steps(self, steps: Sequence[str]) -> None:
        """Print actionable next-step hints."""

        if not steps:
            return
        self.section("Next steps:")
        for step in steps:
            self._emit(f"  $ {step}")


def create_renderer(
    *, no_color: bool = False, verbose: bool = False, stream: TextIO | None = None
) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
