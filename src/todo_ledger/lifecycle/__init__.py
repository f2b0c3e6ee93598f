"""Pure task lifecycle transitions."""

from todo_ledger.lifecycle.transitions import (
    ALLOWED_TRANSITIONS,
    add_note,
    add_task,
    block_task,
    clear_focus,
    complete_task,
    reopen_task,
    set_focus,
    set_next_action,
    set_session_note,
    start_task,
    unblock_task,
    unmet_dependencies,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "add_note",
    "add_task",
    "block_task",
    "clear_focus",
    "complete_task",
    "reopen_task",
    "set_focus",
    "set_next_action",
    "set_session_note",
    "start_task",
    "unblock_task",
    "unmet_dependencies",
]
