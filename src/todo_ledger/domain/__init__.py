"""
todo-ledger — domain layer

File: src/todo_ledger/domain/__init__.py
Last updated: 2026-10-19

Purpose
- Task, focus, meta, project/archive documents and audit records shared by every engine.

Functional requirements
- Domain objects are immutable values with explicit JSON (de)serialization.
- The domain layer performs no IO.
"""

from todo_ledger.domain.errors import (
    IntegrityMismatch,
    MalformedInput,
    NotFound,
    PolicyAmbiguous,
    PreconditionFailed,
    StructuralViolation,
    TodoLedgerError,
)
from todo_ledger.domain.events import Actor, AuditAction, AuditEntry, AuditLog, LogMeta
from todo_ledger.domain.models import (
    ArchiveDocument,
    ArchivedTask,
    ArchiveInfo,
    ArchiveMeta,
    Focus,
    JSONValue,
    Meta,
    PhaseTransition,
    ProjectDocument,
    Task,
    TaskPriority,
    TaskStatus,
    TransitionType,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

__all__ = [
    "Actor",
    "ArchiveDocument",
    "ArchiveInfo",
    "ArchiveMeta",
    "ArchivedTask",
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    "Focus",
    "IntegrityMismatch",
    "JSONValue",
    "LogMeta",
    "MalformedInput",
    "Meta",
    "NotFound",
    "PhaseTransition",
    "PolicyAmbiguous",
    "PreconditionFailed",
    "ProjectDocument",
    "StructuralViolation",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TodoLedgerError",
    "TransitionType",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
