"""Utility exports for filesystem and hashing helpers."""

from todo_ledger.utils.fs import atomic_write, is_within, prune_backups, snapshot_file
from todo_ledger.utils.hashing import sha256_bytes, sha256_text, short_digest

__all__ = [
    "atomic_write",
    "is_within",
    "prune_backups",
    "sha256_bytes",
    "sha256_text",
    "short_digest",
    "snapshot_file",
]
