"""
todo-ledger — document store

File: src/todo_ledger/persistence/store.py
Last updated: 2026-10-19

Purpose
- Load and atomically replace the live todo document and the archive document.

Functional requirements
- A missing todo document is ``NotFound``; unparseable JSON or shape is ``MalformedInput``.
- A missing archive reads as an empty archive.
- Saves optionally copy the previous file into the backup directory first and
  keep at most ``max_backups`` copies per document.
- Archive batches write the archive before the live document, so an interrupted
  batch can leave a task in both files but never in neither; ``validate --fix`` drops
  the live copy of such a done task.
- Backups of the todo document can be listed and restored by file name; a restore parses
  the snapshot and runs the caller's check before anything is written, and the live
  document it replaces is itself snapshotted first.

Non-functional requirements
- The store is the only component besides the audit trail that touches disk.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from todo_ledger.constants import ARCHIVE_FILE, BACKUP_DIR, LOG_FILE, TODO_FILE
from todo_ledger.domain.errors import MalformedInput, NotFound, PreconditionFailed
from todo_ledger.domain.events import AuditLog
from todo_ledger.domain.models import ArchiveDocument, ProjectDocument, utc_now
from todo_ledger.integrity.checksum import restamp
from todo_ledger.utils.fs import atomic_write, prune_backups, snapshot_file

PathLike = str | os.PathLike[str]

DEFAULT_MAX_BACKUPS = 10


@dataclass(frozen=True, slots=True)
class StorePaths:
    root: Path
    todo_file: Path
    archive_file: Path
    log_file: Path
    backup_dir: Path

    @classmethod
    def from_root(
        cls,
        root: PathLike,
        *,
        todo_file: PathLike = TODO_FILE,
        archive_file: PathLike = ARCHIVE_FILE,
        log_file: PathLike = LOG_FILE,
        backup_dir: PathLike = BACKUP_DIR,
    ) -> StorePaths:
        """Resolve each document path against ``root`` (absolute paths are kept)."""
        base = Path(root)
        return cls(
            root=base,
            todo_file=base / todo_file,
            archive_file=base / archive_file,
            log_file=base / log_file,
            backup_dir=base / backup_dir,
        )


class TodoStore:
    def __init__(
        self,
        paths: StorePaths,
        *,
        backups_enabled: bool = True,
        max_backups: int = DEFAULT_MAX_BACKUPS,
    ) -> None:
        if max_backups < 0:
            raise ValueError("max_backups must be >= 0")
        self._paths = paths
        self._backups_enabled = backups_enabled
        self._max_backups = max_backups

    @property
    def paths(self) -> StorePaths:
        return self._paths

    def project_exists(self) -> bool:
        return self._paths.todo_file.is_file()

    def load_project(self) -> ProjectDocument:
        path = self._paths.todo_file
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFound("todo document", str(path)) from exc
        try:
            return ProjectDocument.from_json(raw)
        except MalformedInput as exc:
            raise MalformedInput(f"{path}: {exc}") from exc

    def save_project(self, document: ProjectDocument) -> None:
        self._write(self._paths.todo_file, document.to_json())

    def load_archive(self, *, project: str = "") -> ArchiveDocument:
        path = self._paths.archive_file
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ArchiveDocument(project=project)
        try:
            return ArchiveDocument.from_json(raw)
        except MalformedInput as exc:
            raise MalformedInput(f"{path}: {exc}") from exc

    def save_archive(self, archive: ArchiveDocument) -> None:
        self._write(self._paths.archive_file, archive.to_json())

    def save_archive_batch(self, document: ProjectDocument, archive: ArchiveDocument) -> None:
        self.save_archive(archive)
        self.save_project(document)

    def init_project(
        self,
        project: str,
        *,
        now: datetime | None = None,
        force: bool = False,
    ) -> ProjectDocument:
        """Create empty todo, archive and log documents; refuses to overwrite."""
        if self.project_exists() and not force:
            raise PreconditionFailed(
                f"refusing to overwrite existing todo document at {self._paths.todo_file}"
            )
        moment = now if now is not None else utc_now()
        document = restamp(ProjectDocument(project=project), now=moment)
        self.save_project(document)
        if not self._paths.archive_file.exists():
            self.save_archive(ArchiveDocument(project=project))
        if not self._paths.log_file.exists():
            atomic_write(
                self._paths.log_file, AuditLog(project=project).to_json(), create_parents=True
            )
        return document

    def list_backups(self) -> tuple[Path, ...]:
        """Todo document backups, oldest first."""
        directory = self._paths.backup_dir
        if not directory.is_dir():
            return ()
        return tuple(
            sorted(
                item
                for item in directory.glob(f"{self._paths.todo_file.name}.*.bak")
                if item.is_file() and not item.is_symlink()
            )
        )

    def read_backup(self, name: str) -> ProjectDocument:
        path = self._backup_path(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFound("backup", name) from exc
        try:
            return ProjectDocument.from_json(raw)
        except MalformedInput as exc:
            raise MalformedInput(f"{path}: {exc}") from exc

    def restore_backup(
        self,
        name: str,
        *,
        check: Callable[[ProjectDocument], None] | None = None,
    ) -> ProjectDocument:
        """Replace the live todo document with backup ``name`` once it passes ``check``."""
        document = self.read_backup(name)
        if check is not None:
            check(document)
        self.save_project(document)
        return document

    def _backup_path(self, name: str) -> Path:
        prefix = f"{self._paths.todo_file.name}."
        if Path(name).name != name or not name.startswith(prefix) or not name.endswith(".bak"):
            raise NotFound("backup", name)
        return self._paths.backup_dir / name

    def _write(self, path: Path, text: str) -> None:
        if self._backups_enabled and self._max_backups > 0:
            stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
            if snapshot_file(path, self._paths.backup_dir, stamp=stamp) is not None:
                prune_backups(self._paths.backup_dir, name=path.name, keep=self._max_backups)
        atomic_write(path, text, create_parents=True)


__all__ = ["DEFAULT_MAX_BACKUPS", "StorePaths", "TodoStore"]
