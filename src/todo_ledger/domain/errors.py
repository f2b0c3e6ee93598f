"""Error taxonomy shared by the engine, the stores and the CLI boundary."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from todo_ledger.integrity.validator import Violation


class TodoLedgerError(Exception):
    """Base class for every failure raised by todo-ledger."""


class MalformedInput(TodoLedgerError, ValueError):
    """A document could not be parsed; nothing in it is trusted."""


class StructuralViolation(TodoLedgerError):
    """Validation found blocking invariant breaches; carries each violation."""

    def __init__(self, violations: Iterable[Violation]) -> None:
        self.violations: tuple[Violation, ...] = tuple(violations)
        if not self.violations:
            rendered = "unknown structural violation"
        else:
            rendered = "\n".join(f"- {item.describe()}" for item in self.violations)
        super().__init__(f"document failed validation:\n{rendered}")


class PreconditionFailed(TodoLedgerError):
    """A transition was rejected; the input document is untouched."""

    def __init__(self, message: str, *, task_ids: Sequence[str] = ()) -> None:
        self.task_ids = tuple(task_ids)
        super().__init__(message)


class NotFound(TodoLedgerError, KeyError):
    """A referenced task, entry or document does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")

    def __str__(self) -> str:
        return f"{self.kind} not found: {self.identifier}"


class IntegrityMismatch(TodoLedgerError):
    """The stored checksum does not match the task collection."""

    def __init__(self, stored: str | None, computed: str) -> None:
        self.stored = stored
        self.computed = computed
        super().__init__(
            f"checksum mismatch: stored {stored or '<none>'} != computed {computed}; "
            "the task list was edited outside todo-ledger or is corrupt"
        )


class PolicyAmbiguous(TodoLedgerError):
    """A heuristic had several equally valid outcomes and refused to pick one."""

    def __init__(self, message: str, *, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        super().__init__(f"{message}: {', '.join(self.candidates)}")


__all__ = [
    "IntegrityMismatch",
    "MalformedInput",
    "NotFound",
    "PolicyAmbiguous",
    "PreconditionFailed",
    "StructuralViolation",
    "TodoLedgerError",
]
