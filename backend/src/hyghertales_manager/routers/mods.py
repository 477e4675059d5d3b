"""Endpoints for installed mods: list, install, toggle, pin, remove, rescan."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.routers.deps import get_catalog, get_context, get_tracker
from hyghertales_manager.schemas.mod import (
    AdoptRequest,
    AmbiguousEntry,
    InstallRequest,
    PinRequest,
    RepairResult,
    RescanResult,
)
from hyghertales_manager.services import mod_service
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.update_service import UpdateTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mods", tags=["mods"])


@router.get("/", response_model=list[InstalledModRecord])
async def list_mods(ctx: ModsContext = Depends(get_context)) -> list[InstalledModRecord]:
    """List installed mods after correcting any drifted enabled flags."""
    await mod_service.verify_and_repair(ctx)
    return mod_service.list_records(ctx)


@router.get("/{record_id}", response_model=InstalledModRecord)
def get_mod(record_id: int, ctx: ModsContext = Depends(get_context)) -> InstalledModRecord:
    return mod_service.get_record(record_id, ctx)


@router.post("/install", response_model=InstalledModRecord, status_code=201)
async def install_mod(
    data: InstallRequest,
    ctx: ModsContext = Depends(get_context),
    catalog: Catalog = Depends(get_catalog),
) -> InstalledModRecord:
    ref = data.project_id if data.provider == Provider.CURSEFORGE else data.resource_id
    if ref is None:
        logger.warning("Install of '%s' rejected: no %s reference", data.name, data.provider)
        raise HTTPException(422, f"Missing project reference for {data.provider} mod")
    return await mod_service.install_from_catalog(
        data.provider,
        ref,
        data.file,
        ctx,
        catalog,
        slug=data.slug,
        name=data.name,
        source_url=data.source_url,
    )


@router.post("/{record_id}/toggle", response_model=InstalledModRecord)
async def toggle_mod(
    record_id: int, ctx: ModsContext = Depends(get_context)
) -> InstalledModRecord:
    return await mod_service.toggle_enabled(record_id, ctx)


@router.patch("/{record_id}/pin", response_model=InstalledModRecord)
def pin_mod(
    record_id: int,
    data: PinRequest,
    ctx: ModsContext = Depends(get_context),
    tracker: UpdateTracker = Depends(get_tracker),
) -> InstalledModRecord:
    """Pin or unpin a mod; pinned mods are left out of update checks."""
    record = mod_service.set_pinned(record_id, data.pinned, ctx)
    if record.pinned:
        tracker.forget(record_id)
    logger.info("%s '%s'", "Pinned" if record.pinned else "Unpinned", record.name)
    return record


@router.delete("/{record_id}", status_code=204)
async def delete_mod(
    record_id: int,
    ctx: ModsContext = Depends(get_context),
    tracker: UpdateTracker = Depends(get_tracker),
) -> None:
    await mod_service.remove(record_id, ctx)
    tracker.forget(record_id)


@router.post("/rescan", response_model=RescanResult)
async def rescan_mods(ctx: ModsContext = Depends(get_context)) -> RescanResult:
    """Find files in Mods or Mods.disabled that no record tracks."""
    return await mod_service.rescan(ctx)


@router.post("/adopt", response_model=InstalledModRecord, status_code=201)
def adopt_file(
    data: AdoptRequest, response: Response, ctx: ModsContext = Depends(get_context)
) -> InstalledModRecord:
    """Track an untracked file; answers 200 with the existing record if one already tracks it."""
    existing = mod_service.find_tracked_file(
        ctx.store.load_records(), data.filename, data.was_in_active_dir
    )
    if existing is not None:
        response.status_code = 200
        return existing
    return mod_service.adopt_untracked(data.filename, data.was_in_active_dir, ctx)


@router.post("/verify", response_model=RepairResult)
async def verify_mods(ctx: ModsContext = Depends(get_context)) -> RepairResult:
    report = await mod_service.verify_and_repair(ctx)
    return RepairResult(
        repaired_ids=report.repaired_ids,
        ambiguous=[
            AmbiguousEntry(
                record_id=a.record_id,
                filename=a.filename,
                in_active=a.in_active,
                in_disabled=a.in_disabled,
            )
            for a in report.ambiguous
        ],
    )
