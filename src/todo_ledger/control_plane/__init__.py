"""Control-plane public API."""

from todo_ledger.control_plane.controller import (
    ControllerSettings,
    MutationOutcome,
    TodoController,
)

__all__ = [
    "ControllerSettings",
    "MutationOutcome",
    "TodoController",
]
