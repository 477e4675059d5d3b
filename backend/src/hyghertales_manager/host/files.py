"""Filesystem capabilities used by the engine: move, trash, list, ensure-dir.

The engine only talks to the ``FileOps`` protocol so tests and other hosts can
swap the implementation. ``LocalFileOps`` is the real one; each call runs its
blocking work in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol

from send2trash import send2trash

from hyghertales_manager.constants import BACKUP_DIR_NAME, BACKUP_SUFFIX, MAX_UNIQUE_NAME_ATTEMPTS
from hyghertales_manager.errors import MoveFailedError, NotFoundLocalError, TrashFailedError
from hyghertales_manager.utils.paths import normalize_dir

logger = logging.getLogger(__name__)


class FileOps(Protocol):
    async def move_file(self, src: str, dest: str) -> str: ...

    async def send_to_trash(self, path: str) -> None: ...

    async def list_filenames(self, directory: str) -> list[str]: ...

    async def ensure_dir_exists(self, path: str) -> bool: ...

    async def replace_with_backup(
        self, old_path: str, new_temp_path: str, final_dir: str, new_filename: str
    ) -> str: ...

    async def discard_file(self, path: str) -> None: ...


def unique_file_path(target: Path) -> Path:
    """Return ``target`` if free, else the first free ``stem (n).ext`` beside it."""
    if not target.exists():
        return target
    stem, suffix = target.stem, target.suffix
    for n in range(1, MAX_UNIQUE_NAME_ATTEMPTS + 1):
        candidate = target.with_name(f"{stem} ({n}){suffix}")
        if not candidate.exists():
            return candidate
    return target


def _as_path(raw: str) -> Path:
    return Path(normalize_dir(raw))


def _move_file(src: str, dest: str) -> str:
    src_p = _as_path(src)
    dest_p = _as_path(dest)
    if not src_p.exists():
        raise NotFoundLocalError(str(src_p), "Source file does not exist")
    if src_p.is_dir():
        raise MoveFailedError(f"Source is a directory: {src_p}")
    try:
        dest_p.parent.mkdir(parents=True, exist_ok=True)
        final = unique_file_path(dest_p)
        shutil.move(src_p, final)
    except OSError as exc:
        raise MoveFailedError(f"Could not move {src_p.name}: {exc}") from exc
    return final.as_posix()


def _send_to_trash(path: str) -> None:
    p = _as_path(path)
    if not p.exists():
        raise NotFoundLocalError(str(p), "File does not exist")
    try:
        send2trash(p)
    except OSError as exc:
        raise TrashFailedError(f"Could not move {p.name} to trash: {exc}") from exc


def _list_filenames(directory: str) -> list[str]:
    d = _as_path(directory)
    if not d.is_dir():
        raise NotFoundLocalError(str(d), f"Path is not a directory: {d}")
    return sorted(entry.name for entry in d.iterdir() if entry.is_file())


def _ensure_dir_exists(path: str) -> bool:
    if not path.strip():
        raise MoveFailedError("Path is empty")
    p = _as_path(path)
    if p.exists():
        if not p.is_dir():
            raise MoveFailedError(f"{p} exists but is not a directory")
        return False
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise MoveFailedError(f"Could not create {p}: {exc}") from exc
    return True


def _discard_file(path: str) -> None:
    try:
        _as_path(path).unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove leftover file %s", path)


def _replace_with_backup(
    old_path: str, new_temp_path: str, final_dir: str, new_filename: str
) -> str:
    old_p = _as_path(old_path)
    new_temp = _as_path(new_temp_path)
    final_dir_p = _as_path(final_dir)
    new_filename = new_filename.strip()
    if not old_p.exists():
        raise NotFoundLocalError(str(old_p), "Existing mod file not found")
    if not new_temp.exists():
        raise NotFoundLocalError(str(new_temp), "New downloaded file not found")
    if not new_filename:
        raise MoveFailedError("New filename is empty")

    backup_dir = final_dir_p.parent / BACKUP_DIR_NAME
    try:
        backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = unique_file_path(backup_dir / f"{old_p.name}{BACKUP_SUFFIX}")
        shutil.move(old_p, backup_path)
    except OSError as exc:
        raise MoveFailedError(f"Could not back up {old_p.name}: {exc}") from exc

    dest = unique_file_path(final_dir_p / Path(new_filename).name)
    try:
        new_temp.rename(dest)
    except OSError as exc:
        # Put the old version back so Mods never ends up with neither file
        try:
            shutil.move(backup_path, old_p)
        except OSError:
            logger.error("Could not restore %s from %s", old_p.name, backup_path)
        raise MoveFailedError(f"Could not move update into place: {exc}") from exc
    logger.debug("Backed up %s to %s", old_p.name, backup_path)
    return dest.name


class LocalFileOps:
    async def move_file(self, src: str, dest: str) -> str:
        return await asyncio.to_thread(_move_file, src, dest)

    async def send_to_trash(self, path: str) -> None:
        await asyncio.to_thread(_send_to_trash, path)

    async def list_filenames(self, directory: str) -> list[str]:
        return await asyncio.to_thread(_list_filenames, directory)

    async def ensure_dir_exists(self, path: str) -> bool:
        """Create ``path`` if needed; returns ``True`` when it was created."""
        return await asyncio.to_thread(_ensure_dir_exists, path)

    async def replace_with_backup(
        self, old_path: str, new_temp_path: str, final_dir: str, new_filename: str
    ) -> str:
        return await asyncio.to_thread(
            _replace_with_backup, old_path, new_temp_path, final_dir, new_filename
        )

    async def discard_file(self, path: str) -> None:
        await asyncio.to_thread(_discard_file, path)
