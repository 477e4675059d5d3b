"""Profile management: create, switch, export and import sets of enabled mods.

A profile is a named set of installed-mod ids that should be enabled.
Switching is split in two: ``compute_switch_plan`` is a pure diff against the
current records, ``apply_switch`` performs the moves. Each completed move is
saved immediately, so an interrupted switch leaves an accurate registry and
re-planning resumes where it stopped.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.constants import IMPORTED_PROFILE_PREFIX
from hyghertales_manager.errors import (
    InvalidManifestError,
    ModManagerError,
    NotFoundLocalError,
    ProfileNotFoundError,
)
from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.models.profile import ProfileRecord, ProfilesData
from hyghertales_manager.models.version import CompositeRef, NumericRef, file_version_ref
from hyghertales_manager.schemas.catalog import ModFile
from hyghertales_manager.schemas.profile import (
    ExportedMod,
    ExportedProfile,
    ProfileImportResult,
    SkippedMod,
    SwitchPlan,
    SwitchResult,
)
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.mod_service import enabled_ids, install_from_catalog
from hyghertales_manager.services.progress import ProgressCallback, noop_progress
from hyghertales_manager.services.update_service import get_latest_file
from hyghertales_manager.utils.paths import filename_of, join_path

logger = logging.getLogger(__name__)


def find_profile(data: ProfilesData, profile_id: int) -> ProfileRecord:
    profile = data.get(profile_id)
    if profile is None:
        raise ProfileNotFoundError(profile_id)
    return profile


def list_profiles(ctx: ModsContext) -> ProfilesData:
    return ctx.store.load_profiles()


def get_profile(profile_id: int, ctx: ModsContext) -> ProfileRecord:
    return find_profile(ctx.store.load_profiles(), profile_id)


def _add_profile(
    data: ProfilesData, name: str, mod_ids: list[int], *, set_active: bool
) -> ProfileRecord:
    profile = ProfileRecord(
        id=data.next_id,
        name=name,
        created_at=datetime.now(UTC),
        enabled_mod_ids=sorted(set(mod_ids)),
    )
    data.profiles.append(profile)
    data.next_id += 1
    if set_active:
        data.active_profile_id = profile.id
    return profile


def create_profile(name: str, seed_from_current: bool, ctx: ModsContext) -> ProfileRecord:
    """Add a profile, optionally seeded with the currently enabled mods, and activate it."""
    mod_ids = enabled_ids(ctx.store.load_records()) if seed_from_current else []
    data = ctx.store.load_profiles()
    profile = _add_profile(data, name, mod_ids, set_active=True)
    ctx.store.save_profiles(data)
    logger.info("Created profile '%s' (%d mods)", name, len(profile.enabled_mod_ids))
    return profile


def rename_profile(profile_id: int, name: str, ctx: ModsContext) -> ProfileRecord:
    data = ctx.store.load_profiles()
    profile = find_profile(data, profile_id)
    profile.name = name
    ctx.store.save_profiles(data)
    return profile


def duplicate_profile(profile_id: int, name: str, ctx: ModsContext) -> ProfileRecord:
    data = ctx.store.load_profiles()
    source = find_profile(data, profile_id)
    clone = _add_profile(data, name, source.enabled_mod_ids, set_active=False)
    ctx.store.save_profiles(data)
    return clone


def delete_profile(profile_id: int, ctx: ModsContext) -> None:
    """Delete a profile; if it was active, fall back to the first remaining one."""
    data = ctx.store.load_profiles()
    find_profile(data, profile_id)
    data.profiles = [p for p in data.profiles if p.id != profile_id]
    if data.active_profile_id == profile_id:
        data.active_profile_id = data.profiles[0].id if data.profiles else None
    ctx.store.save_profiles(data)
    logger.info("Deleted profile %d", profile_id)


def compute_switch_plan(profile: ProfileRecord, records: list[InstalledModRecord]) -> SwitchPlan:
    """Diff the registry against ``profile`` without touching anything."""
    wanted = set(profile.enabled_mod_ids)
    known = {r.id for r in records}
    return SwitchPlan(
        profile_id=profile.id,
        profile_name=profile.name,
        to_enable=[r for r in records if not r.enabled and r.id in wanted],
        to_disable=[r for r in records if r.enabled and r.id not in wanted],
        missing_ids=sorted(wanted - known),
    )


def plan_switch(profile_id: int, ctx: ModsContext) -> SwitchPlan:
    profile = get_profile(profile_id, ctx)
    return compute_switch_plan(profile, ctx.store.load_records())


async def _move_record(
    record: InstalledModRecord,
    enable: bool,
    ctx: ModsContext,
    *,
    tolerate_misplaced: bool,
) -> bool:
    """Move one record's file to the directory matching ``enable``.

    Returns ``False`` when the move was skipped.
    """
    from_path = ctx.path_for(record)
    to_path = join_path(ctx.dir_for(enable), record.installed_filename)
    try:
        final_path = await ctx.files.move_file(from_path, to_path)
    except NotFoundLocalError:
        if not tolerate_misplaced:
            raise
        present = await ctx.files.list_filenames(ctx.dir_for(enable))
        if record.installed_filename in present:
            # File was already where the profile wants it
            record.enabled = enable
            return True
        logger.warning("Skipping '%s': file not found in either directory", record.name)
        return False
    record.enabled = enable
    record.installed_filename = filename_of(final_path)
    return True


async def apply_switch(
    plan: SwitchPlan,
    ctx: ModsContext,
    progress: ProgressCallback = noop_progress,
    *,
    tolerate_misplaced: bool = False,
) -> SwitchResult:
    """Carry out a switch plan and make its profile active.

    Disables run before enables so names freed in ``Mods.disabled`` can be
    reused. The first failed move is raised; moves completed before it are
    already saved.
    """
    records = ctx.store.load_records()
    by_id = {r.id: r for r in records}
    moves: list[tuple[int, bool]] = [(r.id, False) for r in plan.to_disable if r.id is not None]
    moves += [(r.id, True) for r in plan.to_enable if r.id is not None]
    total = len(moves)
    result = SwitchResult(profile_id=plan.profile_id)

    if moves:
        await ctx.files.ensure_dir_exists(ctx.disabled_dir)

    for processed, (record_id, enable) in enumerate(moves, start=1):
        record = by_id.get(record_id)
        if record is None or record.enabled == enable:
            # Gone or already applied by an earlier, interrupted run
            progress(processed, total)
            continue
        moved = await _move_record(record, enable, ctx, tolerate_misplaced=tolerate_misplaced)
        if moved:
            ctx.store.save_records(records)
            if enable:
                result.enabled_count += 1
            else:
                result.disabled_count += 1
        else:
            result.skipped.append(record.name)
        progress(processed, total)

    data = ctx.store.load_profiles()
    find_profile(data, plan.profile_id)
    data.active_profile_id = plan.profile_id
    ctx.store.save_profiles(data)
    logger.info(
        "Switched to profile '%s' (%d enabled, %d disabled)",
        plan.profile_name,
        result.enabled_count,
        result.disabled_count,
    )
    return result


def _export_entry(record: InstalledModRecord) -> ExportedMod:
    return ExportedMod(
        provider=record.provider,
        project_id=record.project_id if record.provider == Provider.CURSEFORGE else None,
        resource_id=record.resource_id if record.provider == Provider.ORBIS else None,
        installed_file_id=record.installed_file_id,
        slug=record.slug,
        name=record.name,
    )


def export_profile(profile: ProfileRecord, records: list[InstalledModRecord]) -> ExportedProfile:
    """Describe a profile's mods by provider reference, without local ids or filenames.

    Placeholder records have no catalog identity and are left out.
    """
    wanted = set(profile.enabled_mod_ids)
    mods = [
        _export_entry(r)
        for r in records
        if r.id in wanted and not r.is_untracked and r.provider_ref is not None
    ]
    return ExportedProfile(name=profile.name, exported_at=datetime.now(UTC), mods=mods)


def export_to_file(profile_id: int, path: Path, ctx: ModsContext) -> ExportedProfile:
    manifest = export_profile(get_profile(profile_id, ctx), ctx.store.load_records())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(manifest.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    return manifest


def read_manifest(text: str | bytes) -> ExportedProfile:
    """Parse exported-profile JSON, raising ``InvalidManifestError`` on bad input."""
    try:
        return ExportedProfile.model_validate(json.loads(text))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise InvalidManifestError(f"Invalid profile file: {exc}") from exc


def _entry_ref(entry: ExportedMod) -> int | str | None:
    if entry.provider == Provider.CURSEFORGE:
        return entry.project_id
    return entry.resource_id


def _match_local(entry: ExportedMod, records: list[InstalledModRecord]) -> InstalledModRecord | None:
    ref = _entry_ref(entry)
    if ref is None:
        return None
    return next(
        (
            r
            for r in records
            if r.provider == entry.provider and r.provider_ref == ref and not r.is_untracked
        ),
        None,
    )


def _pick_file(entry: ExportedMod, files: list[ModFile]) -> ModFile | None:
    """The exported version if the catalog still has it, else the latest file."""
    raw = entry.installed_file_id
    if raw is not None:
        wanted: NumericRef | CompositeRef | None
        if entry.provider == Provider.CURSEFORGE:
            wanted = NumericRef(int(raw)) if str(raw).isdigit() else None
        else:
            wanted = CompositeRef.parse(str(raw))
        for f in files:
            if wanted is not None and file_version_ref(entry.provider, f) == wanted:
                return f
    return get_latest_file(entry.provider, files)


async def import_profile(
    manifest: ExportedProfile,
    ctx: ModsContext,
    catalog: Catalog | None = None,
    progress: ProgressCallback = noop_progress,
) -> ProfileImportResult:
    """Recreate an exported profile on this installation.

    Mods already installed (same provider and reference) are reused; others
    are downloaded into ``Mods``. The new profile becomes active and the
    directories are brought in line with it.
    """
    records = ctx.store.load_records()
    matched: list[int] = []
    downloaded: list[int] = []
    skipped: list[SkippedMod] = []

    for entry in manifest.mods:
        local = _match_local(entry, records)
        if local is not None and local.id is not None:
            matched.append(local.id)
            continue

        ref = _entry_ref(entry)
        if ref is None:
            skipped.append(SkippedMod(name=entry.name, reason="No provider reference"))
            continue
        if catalog is None:
            skipped.append(SkippedMod(name=entry.name, reason="Catalog not available"))
            continue
        try:
            files = await catalog.get_files(entry.provider, ref)
            file = _pick_file(entry, files)
            if file is None:
                skipped.append(SkippedMod(name=entry.name, reason="No files available"))
                continue
            record = await install_from_catalog(
                entry.provider,
                ref,
                file,
                ctx,
                catalog,
                slug=entry.slug,
                name=entry.name,
                track_in_active_profile=False,
            )
        except ModManagerError as exc:
            logger.warning("Could not import '%s': %s", entry.name, exc)
            skipped.append(SkippedMod(name=entry.name, reason=str(exc)))
            continue
        assert record.id is not None
        downloaded.append(record.id)
        records = ctx.store.load_records()

    data = ctx.store.load_profiles()
    profile = _add_profile(
        data, f"{IMPORTED_PROFILE_PREFIX}{manifest.name}", matched + downloaded, set_active=True
    )
    ctx.store.save_profiles(data)

    plan = compute_switch_plan(profile, ctx.store.load_records())
    switch = await apply_switch(plan, ctx, progress, tolerate_misplaced=True)
    skipped += [SkippedMod(name=name, reason="File not found") for name in switch.skipped]

    logger.info(
        "Imported profile '%s': %d matched, %d downloaded, %d skipped",
        manifest.name,
        len(matched),
        len(downloaded),
        len(skipped),
    )
    return ProfileImportResult(
        profile=profile,
        matched_ids=matched,
        downloaded_ids=downloaded,
        skipped_mods=skipped,
        skipped_count=len(skipped),
    )
