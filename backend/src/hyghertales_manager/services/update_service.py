"""Update detection and in-place update application for installed mods.

Checking is read-only and fans out concurrently; one failing catalog lookup is
logged and skipped. Applying an update mutates the mod directories, so
"update all" runs one mod at a time.

Per-record lifecycle, tracked in memory by ``UpdateTracker``::

    UNCHECKED -> CHECKING -> UP_TO_DATE | UPDATE_AVAILABLE -> UPDATING -> UPDATED
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from enum import StrEnum

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.constants import (
    RELEASE_ORDER,
    UNKNOWN_RELEASE_PRIORITY,
    UPDATE_TEMP_PREFIX,
)
from hyghertales_manager.errors import ModManagerError
from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.models.version import file_version_ref, installed_version_ref
from hyghertales_manager.schemas.catalog import ModFile
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.mod_service import find_record, resolve_download_url
from hyghertales_manager.utils.paths import join_path

logger = logging.getLogger(__name__)

_MAX_CONCURRENT = 5
_FALLBACK_FILENAME = "mod.jar"


class UpdateState(StrEnum):
    UNCHECKED = "unchecked"
    CHECKING = "checking"
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    UPDATING = "updating"
    UPDATED = "updated"


class UpdateTracker:
    """Transient per-record update state and the pending-update map."""

    def __init__(self) -> None:
        self.states: dict[int, UpdateState] = {}
        self.pending: dict[int, ModFile] = {}

    def state(self, record_id: int) -> UpdateState:
        return self.states.get(record_id, UpdateState.UNCHECKED)

    def mark(self, record_id: int, state: UpdateState) -> None:
        self.states[record_id] = state

    def replace_pending(self, updates: dict[int, ModFile]) -> None:
        self.pending = dict(updates)
        for record_id in updates:
            self.states[record_id] = UpdateState.UPDATE_AVAILABLE

    def forget(self, record_id: int) -> None:
        """Drop a record from the pending map, e.g. after pinning it."""
        self.pending.pop(record_id, None)
        self.states.pop(record_id, None)


def is_checkable(record: InstalledModRecord) -> bool:
    if record.is_untracked or record.pinned:
        return False
    return record.provider_ref is not None


def _release_priority(release_type: str | None) -> int:
    if release_type is None:
        return UNKNOWN_RELEASE_PRIORITY
    return RELEASE_ORDER.get(release_type.lower(), UNKNOWN_RELEASE_PRIORITY)


def get_latest_curseforge_file(files: list[ModFile]) -> ModFile | None:
    """Prefer release over beta over alpha, then the newest file date."""
    if not files:
        return None
    return min(files, key=lambda f: (_release_priority(f.release_type), -f.file_date.timestamp()))


def get_latest_orbis_file(files: list[ModFile]) -> ModFile | None:
    # Orbis lists one file per version, so the newest date wins
    if not files:
        return None
    return max(files, key=lambda f: f.file_date.timestamp())


def get_latest_file(provider: Provider, files: list[ModFile]) -> ModFile | None:
    if provider == Provider.CURSEFORGE:
        return get_latest_curseforge_file(files)
    return get_latest_orbis_file(files)


def is_update_available(record: InstalledModRecord, latest: ModFile) -> bool:
    """True when both version identities are known and differ.

    A missing identity on either side means "cannot tell", which is treated
    as no update.
    """
    installed = installed_version_ref(record)
    candidate = file_version_ref(record.provider, latest)
    if installed is None or candidate is None:
        return False
    return installed != candidate


async def check_one(record: InstalledModRecord, catalog: Catalog) -> ModFile | None:
    """Return the newer file for ``record``, or ``None`` when up to date."""
    ref = record.provider_ref
    if ref is None:
        return None
    files = await catalog.get_files(record.provider, ref)
    latest = get_latest_file(record.provider, files)
    if latest is not None and is_update_available(record, latest):
        return latest
    return None


async def check_all(
    records: list[InstalledModRecord],
    catalog: Catalog,
    tracker: UpdateTracker | None = None,
    *,
    max_concurrent: int = _MAX_CONCURRENT,
) -> dict[int, ModFile]:
    """Check every eligible record concurrently; returns ``{record_id: latest_file}``."""
    sem = asyncio.Semaphore(max_concurrent)
    updates: dict[int, ModFile] = {}
    eligible = [r for r in records if r.id is not None and is_checkable(r)]

    async def check_record(record: InstalledModRecord) -> None:
        assert record.id is not None
        if tracker:
            tracker.mark(record.id, UpdateState.CHECKING)
        async with sem:
            try:
                latest = await check_one(record, catalog)
            except ModManagerError:
                logger.warning("Update check failed for '%s'", record.name, exc_info=True)
                if tracker:
                    tracker.mark(record.id, UpdateState.UNCHECKED)
                return
        if latest is not None:
            updates[record.id] = latest
        elif tracker:
            tracker.mark(record.id, UpdateState.UP_TO_DATE)

    await asyncio.gather(*(check_record(r) for r in eligible))

    if tracker:
        tracker.replace_pending(updates)
    logger.info("Checked %d mod(s) for updates, %d available", len(eligible), len(updates))
    return updates


async def apply_one(
    record_id: int,
    latest_file: ModFile,
    ctx: ModsContext,
    catalog: Catalog,
    tracker: UpdateTracker | None = None,
) -> InstalledModRecord:
    """Download ``latest_file`` beside the old file and swap it in.

    The download lands under a hidden temporary name in the record's current
    directory; the old file is then moved to ``Mods.backup`` and the temporary
    file renamed to the new canonical name.
    """
    records = ctx.store.load_records()
    record = find_record(records, record_id)
    if tracker:
        tracker.mark(record_id, UpdateState.UPDATING)

    final_dir = ctx.dir_for(record.enabled)
    old_path = ctx.path_for(record)
    new_filename = latest_file.file_name or latest_file.display_name or _FALLBACK_FILENAME
    temp_path = join_path(final_dir, f"{UPDATE_TEMP_PREFIX}{int(time.time() * 1000)}-{new_filename}")

    downloaded: str | None = None
    try:
        url = await resolve_download_url(catalog, record.provider, record.provider_ref, latest_file)
        downloaded = await catalog.download_to_path(url, temp_path)
        final_filename = await ctx.files.replace_with_backup(
            old_path, downloaded, final_dir, new_filename
        )
    except ModManagerError:
        if downloaded is not None:
            await ctx.files.discard_file(downloaded)
        if tracker:
            tracker.mark(record_id, UpdateState.UPDATE_AVAILABLE)
        raise

    version = file_version_ref(record.provider, latest_file)
    record.installed_filename = final_filename
    record.installed_at = datetime.now(UTC)
    if version is not None:
        record.installed_file_id = version.wire()
    ctx.store.save_records(records)

    if tracker:
        tracker.pending.pop(record_id, None)
        tracker.mark(record_id, UpdateState.UPDATED)
    logger.info("Updated '%s' to %s", record.name, final_filename)
    return record


async def apply_all(
    update_map: dict[int, ModFile],
    ctx: ModsContext,
    catalog: Catalog,
    tracker: UpdateTracker | None = None,
) -> list[InstalledModRecord]:
    """Apply pending updates one at a time; the first failure stops the run."""
    records = ctx.store.load_records()
    to_update = [r for r in records if r.id in update_map and not r.pinned]
    updated: list[InstalledModRecord] = []
    for record in to_update:
        assert record.id is not None
        updated.append(await apply_one(record.id, update_map[record.id], ctx, catalog, tracker))
    return updated
