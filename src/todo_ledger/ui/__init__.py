"""UI package exports for the CLI and its text renderer."""

from todo_ledger.ui.cli import CLIError, build_parser, main, run_cli
from todo_ledger.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
