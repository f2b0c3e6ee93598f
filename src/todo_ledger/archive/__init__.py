"""Archive engine: retire completed tasks from the live document."""

from todo_ledger.archive.engine import (
    ArchiveCandidate,
    ArchiveMode,
    ArchivePlan,
    ArchivePolicy,
    ArchiveReason,
    ArchiveResult,
    apply_archive,
    archive_statistics,
    cycle_time_days,
    plan_archive,
)

__all__ = [
    "ArchiveCandidate",
    "ArchiveMode",
    "ArchivePlan",
    "ArchivePolicy",
    "ArchiveReason",
    "ArchiveResult",
    "apply_archive",
    "archive_statistics",
    "cycle_time_days",
    "plan_archive",
]
