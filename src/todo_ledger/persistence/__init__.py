"""Document persistence for the live todo file and the archive."""

from todo_ledger.persistence.store import DEFAULT_MAX_BACKUPS, StorePaths, TodoStore

__all__ = ["DEFAULT_MAX_BACKUPS", "StorePaths", "TodoStore"]
