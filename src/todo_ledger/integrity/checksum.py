"""
todo-ledger — task collection fingerprinting

File: src/todo_ledger/integrity/checksum.py
Last updated: 2026-10-19

Purpose
- Compute and verify the 16-hex fingerprint stored in ``_meta.checksum`` so edits made
  outside the tool (or on-disk corruption) are detected on the next load.

Functional requirements
- The fingerprint is SHA-256 over the compact JSON encoding of the task array,
  truncated to 16 hex characters.
- Key order inside a task is part of the encoding (canonical field order, then
  preserved unknown keys); task order is part of the encoding too.
- Verification never mutates the document.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from todo_ledger.constants import CHECKSUM_LENGTH
from todo_ledger.domain.models import ProjectDocument, Task, utc_now
from todo_ledger.utils.hashing import short_digest


@dataclass(frozen=True, slots=True)
class ChecksumStatus:
    stored: str | None
    computed: str

    @property
    def matches(self) -> bool:
        return self.stored == self.computed

    def to_dict(self) -> dict[str, object]:
        return {"stored": self.stored, "computed": self.computed, "matches": self.matches}


def canonical_tasks_encoding(tasks: Iterable[Task]) -> str:
    return json.dumps(
        [task.to_dict() for task in tasks],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_checksum(tasks: Iterable[Task]) -> str:
    """Return the 16-hex-character fingerprint of ``tasks``."""
    return short_digest(canonical_tasks_encoding(tasks), CHECKSUM_LENGTH)


def checksum_status(document: ProjectDocument) -> ChecksumStatus:
    return ChecksumStatus(stored=document.meta.checksum, computed=compute_checksum(document.tasks))


def verify_checksum(document: ProjectDocument) -> bool:
    return checksum_status(document).matches


def restamp(document: ProjectDocument, *, now: datetime | None = None) -> ProjectDocument:
    """Return ``document`` with a fresh checksum and ``lastUpdated``."""
    moment = now if now is not None else utc_now()
    return replace(
        document,
        meta=replace(
            document.meta,
            checksum=compute_checksum(document.tasks),
            last_updated=moment,
        ),
    )


__all__ = [
    "ChecksumStatus",
    "canonical_tasks_encoding",
    "checksum_status",
    "compute_checksum",
    "restamp",
    "verify_checksum",
]
