"""Installed-mod registry: enable/disable, removal, rescan and drift repair.

Enable/disable is a file move between ``Mods`` and the sibling
``Mods.disabled`` directory. Every operation reads a fresh copy of the
registry, touches the filesystem, and only then saves the whole document, so a
failed move leaves the last saved state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.constants import UNTRACKED_SLUG
from hyghertales_manager.errors import (
    AmbiguousStateError,
    CatalogUnavailableError,
    DistributionRestrictedError,
    NotFoundLocalError,
    RecordNotFoundError,
)
from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.models.version import file_version_ref
from hyghertales_manager.schemas.catalog import ModFile
from hyghertales_manager.schemas.mod import RescanResult
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.utils.paths import filename_of, join_path

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    repaired_ids: list[int] = field(default_factory=list)
    ambiguous: list[AmbiguousStateError] = field(default_factory=list)


def next_id(records: list[InstalledModRecord]) -> int:
    """Max existing id + 1, or 1 for an empty registry."""
    ids = [r.id for r in records if r.id is not None]
    return max(ids) + 1 if ids else 1


def find_record(records: list[InstalledModRecord], record_id: int) -> InstalledModRecord:
    record = next((r for r in records if r.id == record_id), None)
    if record is None:
        raise RecordNotFoundError(record_id)
    return record


def list_records(ctx: ModsContext) -> list[InstalledModRecord]:
    return ctx.store.load_records()


def get_record(record_id: int, ctx: ModsContext) -> InstalledModRecord:
    return find_record(ctx.store.load_records(), record_id)


def enabled_ids(records: list[InstalledModRecord]) -> list[int]:
    return sorted(r.id for r in records if r.enabled and r.id is not None)


def sync_active_profile(ctx: ModsContext, records: list[InstalledModRecord]) -> None:
    """Make the active profile's enabled set mirror the registry, if one is active."""
    data = ctx.store.load_profiles()
    active = data.active
    if active is None:
        return
    active.enabled_mod_ids = enabled_ids(records)
    ctx.store.save_profiles(data)


async def toggle_enabled(record_id: int, ctx: ModsContext) -> InstalledModRecord:
    """Move a mod's file to the other directory and flip ``enabled``.

    The file may be renamed on arrival if the destination already holds a file
    with the same name; the record keeps whatever name the move produced.
    """
    records = ctx.store.load_records()
    record = find_record(records, record_id)

    await ctx.files.ensure_dir_exists(ctx.disabled_dir)
    from_path = ctx.path_for(record)
    to_path = join_path(ctx.dir_for(not record.enabled), record.installed_filename)
    final_path = await ctx.files.move_file(from_path, to_path)

    record.enabled = not record.enabled
    record.installed_filename = filename_of(final_path)
    ctx.store.save_records(records)
    sync_active_profile(ctx, records)

    action = "Enabled" if record.enabled else "Disabled"
    logger.info("%s '%s' (%s)", action, record.name, record.installed_filename)
    return record


def set_pinned(record_id: int, pinned: bool, ctx: ModsContext) -> InstalledModRecord:
    records = ctx.store.load_records()
    record = find_record(records, record_id)
    record.pinned = pinned
    ctx.store.save_records(records)
    return record


async def remove(record_id: int, ctx: ModsContext) -> None:
    """Send the mod's file to the trash, then forget the record.

    If the trash step fails the record stays, so the registry never points at
    a "removed" mod whose file is still on disk.
    """
    records = ctx.store.load_records()
    record = find_record(records, record_id)

    await ctx.files.send_to_trash(ctx.path_for(record))

    remaining = [r for r in records if r.id != record_id]
    ctx.store.save_records(remaining)
    logger.info("Removed '%s' (%s moved to trash)", record.name, record.installed_filename)


async def _list_or_empty(ctx: ModsContext, directory: str) -> set[str]:
    try:
        return set(await ctx.files.list_filenames(directory))
    except NotFoundLocalError:
        return set()


async def verify_and_repair(ctx: ModsContext) -> RepairReport:
    """Correct ``enabled`` flags that disagree with where files actually are.

    A file found only in ``Mods`` means enabled, only in ``Mods.disabled``
    means disabled. Files found in both or neither are reported as ambiguous
    and left alone. Saves once, and only if something changed.
    """
    records = ctx.store.load_records()
    in_active = await _list_or_empty(ctx, ctx.active_dir)
    in_disabled = await _list_or_empty(ctx, ctx.disabled_dir)

    report = RepairReport()
    for record in records:
        name = record.installed_filename
        active_hit, disabled_hit = name in in_active, name in in_disabled
        if active_hit == disabled_hit:
            report.ambiguous.append(
                AmbiguousStateError(record.id or 0, name, active_hit, disabled_hit)
            )
            continue
        should_be_enabled = active_hit
        if record.enabled != should_be_enabled:
            record.enabled = should_be_enabled
            if record.id is not None:
                report.repaired_ids.append(record.id)

    if report.repaired_ids:
        ctx.store.save_records(records)
        logger.info("Repaired enabled state for %d mod(s)", len(report.repaired_ids))
    for amb in report.ambiguous:
        logger.warning("%s; leaving it unchanged", amb)
    return report


async def rescan(ctx: ModsContext) -> RescanResult:
    """List files in both directories that no record tracks."""
    await ctx.files.ensure_dir_exists(ctx.disabled_dir)
    await verify_and_repair(ctx)

    in_active = await ctx.files.list_filenames(ctx.active_dir)
    in_disabled = await ctx.files.list_filenames(ctx.disabled_dir)
    tracked = {r.installed_filename for r in ctx.store.load_records()}
    return RescanResult(
        in_active=[f for f in in_active if f not in tracked],
        in_disabled=[f for f in in_disabled if f not in tracked],
    )


def find_tracked_file(
    records: list[InstalledModRecord], filename: str, in_active_dir: bool
) -> InstalledModRecord | None:
    return next(
        (r for r in records if r.installed_filename == filename and r.enabled == in_active_dir),
        None,
    )


def adopt_untracked(filename: str, was_in_active_dir: bool, ctx: ModsContext) -> InstalledModRecord:
    """Track a file found by ``rescan`` as a placeholder record.

    A file some record already tracks is returned as is.
    """
    records = ctx.store.load_records()
    existing = find_tracked_file(records, filename, was_in_active_dir)
    if existing is not None:
        return existing

    record = InstalledModRecord(
        id=next_id(records),
        provider=Provider.ORBIS,
        slug=UNTRACKED_SLUG,
        name=filename,
        installed_filename=filename,
        enabled=was_in_active_dir,
        pinned=False,
    )
    records.append(record)
    ctx.store.save_records(records)
    logger.info("Adopted untracked file '%s' as mod %d", filename, record.id)
    return record


async def resolve_download_url(
    catalog: Catalog, provider: Provider, ref: int | str | None, file: ModFile
) -> str:
    """Ask the provider's resolver first, fall back to the file's own URL."""
    if ref is not None and file_version_ref(provider, file) is not None:
        try:
            return await catalog.get_download_url(provider, ref, file)
        except DistributionRestrictedError:
            raise
        except CatalogUnavailableError:
            if not file.download_url:
                raise
            logger.warning("Download resolver failed for %s %s, using embedded URL", provider, ref)
    if file.download_url:
        return file.download_url
    raise CatalogUnavailableError("Cannot get download URL for this file.")


async def install_from_catalog(
    provider: Provider,
    ref: int | str,
    file: ModFile,
    ctx: ModsContext,
    catalog: Catalog,
    *,
    slug: str,
    name: str,
    source_url: str | None = None,
    track_in_active_profile: bool = True,
) -> InstalledModRecord:
    """Download a catalog file into ``Mods`` and register it as an enabled mod."""
    url = await resolve_download_url(catalog, provider, ref, file)
    final_path = await catalog.download_to_path(url, join_path(ctx.active_dir, file.file_name))

    version = file_version_ref(provider, file)
    records = ctx.store.load_records()
    record = InstalledModRecord(
        id=next_id(records),
        provider=provider,
        project_id=int(ref) if provider == Provider.CURSEFORGE else None,
        resource_id=str(ref) if provider == Provider.ORBIS else None,
        slug=slug,
        name=name,
        installed_file_id=version.wire() if version else None,
        installed_filename=filename_of(final_path),
        installed_at=datetime.now(UTC),
        source_url=source_url,
        enabled=True,
    )
    records.append(record)
    ctx.store.save_records(records)
    if track_in_active_profile:
        sync_active_profile(ctx, records)
    logger.info("Installed '%s' as mod %d (%s)", name, record.id, record.installed_filename)
    return record
