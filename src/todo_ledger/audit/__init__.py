"""Append-only audit log: pure operations and the file-backed trail."""

from todo_ledger.audit.log import (
    AuditFilter,
    MigrationResult,
    RotationResult,
    append_entry,
    empty_log,
    list_entries,
    log_stats,
    migrate_log,
    needs_migration,
    parse_since,
    prune_by_age,
    rotate_log,
    serialized_size,
    show_entry,
)
from todo_ledger.audit.trail import AuditTrail

__all__ = [
    "AuditFilter",
    "AuditTrail",
    "MigrationResult",
    "RotationResult",
    "append_entry",
    "empty_log",
    "list_entries",
    "log_stats",
    "migrate_log",
    "needs_migration",
    "parse_since",
    "prune_by_age",
    "rotate_log",
    "serialized_size",
    "show_entry",
]
