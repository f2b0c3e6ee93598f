"""
todo-ledger — filesystem utilities

File: src/todo_ledger/utils/fs.py
Last updated: 2026-10-19

Purpose
- Provide atomic whole-file replacement and bounded safety-backup rotation for the
  todo, archive and log documents.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- A crash mid-write leaves the previously committed file intact.
- Backup pruning never touches files outside the backup directory.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "is_within",
    "prune_backups",
    "snapshot_file",
]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    create_parents: bool = False,
) -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    if create_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        payload = data if isinstance(data, bytes) else data.encode(encoding)
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except BaseException:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def snapshot_file(source: PathLike, backup_dir: PathLike, *, stamp: str) -> Path | None:
    """
    Copy ``source`` into ``backup_dir`` as ``<name>.<stamp>.bak``.

    Returns ``None`` when there is nothing to back up yet.
    """

    source_path = Path(source)
    if not source_path.is_file():
        return None
    directory = Path(backup_dir)
    directory.mkdir(parents=True, exist_ok=True)
    destination = directory / f"{source_path.name}.{stamp}.bak"
    shutil.copy2(source_path, destination)
    return destination


def prune_backups(backup_dir: PathLike, *, name: str, keep: int) -> tuple[Path, ...]:
    """
    Delete the oldest ``<name>.*.bak`` files so at most ``keep`` remain.

    Backups sort by their timestamp stamp; returns the removed paths.
    """

    if keep < 0:
        raise ValueError("keep must be >= 0")
    directory = Path(backup_dir)
    if not directory.is_dir():
        return ()

    candidates = sorted(
        item for item in directory.glob(f"{name}.*.bak") if item.is_file() and not item.is_symlink()
    )
    excess = len(candidates) - keep
    if excess <= 0:
        return ()

    removed: list[Path] = []
    for item in candidates[:excess]:
        if not is_within(item, directory):
            raise ValueError(f"refusing to delete path outside backup directory: {item!s}")
        item.unlink()
        removed.append(item)
    return tuple(removed)


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if resolved ``child`` is within resolved ``parent``."""

    try:
        resolved_parent = Path(parent).resolve(strict=True)
        resolved_child = Path(child).resolve(strict=True)
    except FileNotFoundError:
        return False
    if not resolved_parent.is_dir():
        return False
    try:
        resolved_child.relative_to(resolved_parent)
    except ValueError:
        return False
    return True


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
