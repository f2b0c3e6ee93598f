"""File-backed audit trail over ``audit.log`` operations."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from todo_ledger.audit.log import (
    AuditFilter,
    IdFactory,
    MigrationResult,
    RotationResult,
    append_entry,
    empty_log,
    list_entries,
    log_stats,
    migrate_log,
    needs_migration,
    prune_by_age,
    rotate_log,
    show_entry,
)
from todo_ledger.constants import (
    DEFAULT_KEEP_ENTRIES,
    DEFAULT_LOG_RETENTION_DAYS,
    DEFAULT_ROTATE_THRESHOLD_KB,
)
from todo_ledger.domain import ids
from todo_ledger.domain.errors import MalformedInput
from todo_ledger.domain.events import Actor, AuditAction, AuditEntry, AuditLog
from todo_ledger.domain.models import JSONValue, utc_now
from todo_ledger.utils.fs import atomic_write

PathLike = str | os.PathLike[str]
Clock = Callable[[], datetime]

_MISSING = object()


class AuditTrail:
    """
    Append-only audit log stored as one JSON document.

    A missing file reads as an empty log and is created on first write. A file
    that is not valid JSON, or not a current-schema log, fails every operation
    with ``MalformedInput`` instead of being overwritten. With ``enabled=False``
    appends are no-ops returning ``None``; reads still work.
    """

    def __init__(
        self,
        path: PathLike,
        *,
        project: str = "",
        enabled: bool = True,
        rotate_threshold_kb: int = DEFAULT_ROTATE_THRESHOLD_KB,
        keep_entries: int = DEFAULT_KEEP_ENTRIES,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
        clock: Clock = utc_now,
        id_factory: IdFactory = ids.generate_log_id,
    ) -> None:
        self._path = Path(path)
        self._project = project
        self._enabled = enabled
        self._rotate_threshold_kb = rotate_threshold_kb
        self._keep_entries = keep_entries
        self._retention_days = retention_days
        self._clock = clock
        self._id_factory = id_factory

    @property
    def path(self) -> Path:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._enabled

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> AuditLog:
        payload = self._read_payload()
        if payload is _MISSING:
            return empty_log(self._project)
        try:
            return AuditLog.from_dict(payload)
        except MalformedInput as exc:
            if needs_migration(payload):
                raise MalformedInput(
                    f"{self._path}: audit log uses a legacy schema ({exc}); "
                    "run `todo-ledger log migrate`"
                ) from exc
            raise MalformedInput(f"{self._path}: {exc}") from exc

    def save(self, log: AuditLog) -> None:
        atomic_write(self._path, log.to_json(), create_parents=True)

    def append(
        self,
        action: AuditAction | str,
        *,
        actor: Actor | str = Actor.SYSTEM,
        task_id: str | None = None,
        session_id: str | None = None,
        before: object = None,
        after: object = None,
        details: object = None,
    ) -> AuditEntry | None:
        if not self._enabled:
            return None
        log, entry = append_entry(
            self.load(),
            action,
            actor=actor,
            task_id=task_id,
            session_id=session_id,
            before=before,
            after=after,
            details=details,
            now=self._clock(),
            id_factory=self._id_factory,
        )
        if self._rotate_threshold_kb > 0:
            log = rotate_log(
                log,
                keep_entries=self._keep_entries,
                threshold_kb=self._rotate_threshold_kb,
            ).log
        self.save(log)
        return entry

    def list(self, filters: AuditFilter | None = None) -> tuple[AuditEntry, ...]:
        return list_entries(self.load(), filters)

    def show(self, entry_id: str) -> AuditEntry:
        return show_entry(self.load(), entry_id)

    def migrate(self) -> MigrationResult:
        """Rewrite a legacy log in the current schema; unchanged files are not touched."""
        payload = self._read_payload()
        if payload is _MISSING:
            return MigrationResult(log=empty_log(self._project), migrated=0)
        result = migrate_log(payload, project=self._project)
        if result.log.to_dict() != payload:
            self.save(result.log)
        return result

    def rotate(self, *, force: bool = False) -> RotationResult:
        result = rotate_log(
            self.load(),
            keep_entries=self._keep_entries,
            threshold_kb=self._rotate_threshold_kb,
            force=force,
        )
        if result.rotated:
            self.save(result.log)
        return result

    def prune(self, *, now: datetime | None = None) -> RotationResult:
        result = prune_by_age(
            self.load(),
            retention_days=self._retention_days,
            now=now if now is not None else self._clock(),
        )
        if result.pruned:
            self.save(result.log)
        return result

    def stats(self) -> dict[str, JSONValue]:
        return log_stats(self.load())

    def _read_payload(self) -> object:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _MISSING
        except OSError as exc:
            raise MalformedInput(f"{self._path}: unreadable audit log: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedInput(
                f"{self._path}: invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}"
            ) from exc


__all__ = ["AuditTrail", "Clock"]
