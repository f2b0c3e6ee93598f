"""Stable constants shared across the engine, stores and CLI."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted documents.
CONFIG_SCHEMA_VERSION: Final[int] = 1
TODO_SCHEMA_VERSION: Final[str] = "2.1.0"
ARCHIVE_SCHEMA_VERSION: Final[str] = "2.1.0"
LOG_SCHEMA_VERSION: Final[str] = "2.1.0"

# Default storage layout (relative to the project root unless overridden by config).
DATA_DIR: Final[PurePosixPath] = PurePosixPath(".claude")
TODO_FILE: Final[PurePosixPath] = DATA_DIR / "todo.json"
ARCHIVE_FILE: Final[PurePosixPath] = DATA_DIR / "todo-archive.json"
LOG_FILE: Final[PurePosixPath] = DATA_DIR / "todo-log.json"
BACKUP_DIR: Final[PurePosixPath] = DATA_DIR / ".backups"

CHECKSUM_LENGTH: Final[int] = 16

# Archive policy defaults.
DEFAULT_DAYS_UNTIL_ARCHIVE: Final[int] = 7
DEFAULT_MAX_COMPLETED_TASKS: Final[int] = 15
DEFAULT_PRESERVE_RECENT_COUNT: Final[int] = 0

# Audit log defaults.
DEFAULT_LOG_RETENTION_DAYS: Final[int] = 30
DEFAULT_ROTATE_THRESHOLD_KB: Final[int] = 512
DEFAULT_KEEP_ENTRIES: Final[int] = 30

DEFAULT_STALE_DAYS: Final[int] = 30

# Priority ordering for deterministic sorting.
PRIORITIES: Final[tuple[str, ...]] = ("low", "medium", "high", "critical")
PRIORITY_WEIGHT: Final[dict[str, int]] = {
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}

__all__ = [
    "ARCHIVE_FILE",
    "ARCHIVE_SCHEMA_VERSION",
    "BACKUP_DIR",
    "CHECKSUM_LENGTH",
    "CONFIG_SCHEMA_VERSION",
    "DATA_DIR",
    "DEFAULT_DAYS_UNTIL_ARCHIVE",
    "DEFAULT_KEEP_ENTRIES",
    "DEFAULT_LOG_RETENTION_DAYS",
    "DEFAULT_MAX_COMPLETED_TASKS",
    "DEFAULT_PRESERVE_RECENT_COUNT",
    "DEFAULT_ROTATE_THRESHOLD_KB",
    "DEFAULT_STALE_DAYS",
    "LOG_FILE",
    "LOG_SCHEMA_VERSION",
    "PRIORITIES",
    "PRIORITY_WEIGHT",
    "TODO_FILE",
    "TODO_SCHEMA_VERSION",
]
