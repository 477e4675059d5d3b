"""Endpoints for mod profiles: save, rename, switch, export, import."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.errors import ModManagerError
from hyghertales_manager.models.profile import ProfileRecord, ProfilesData
from hyghertales_manager.routers.deps import get_catalog, get_context
from hyghertales_manager.schemas.profile import (
    ExportedProfile,
    ProfileCreate,
    ProfileDuplicateRequest,
    ProfileImportResult,
    ProfileListOut,
    ProfileOut,
    ProfileUpdate,
    SwitchPlan,
    SwitchResult,
)
from hyghertales_manager.services import profile_service
from hyghertales_manager.services.context import ModsContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


def _to_out(profile: ProfileRecord, data: ProfilesData) -> ProfileOut:
    return ProfileOut(
        id=profile.id,
        name=profile.name,
        created_at=profile.created_at,
        enabled_mod_ids=profile.enabled_mod_ids,
        is_active=profile.id == data.active_profile_id,
    )


def _out_for(profile: ProfileRecord, ctx: ModsContext) -> ProfileOut:
    return _to_out(profile, profile_service.list_profiles(ctx))


@router.get("/", response_model=ProfileListOut)
def list_all_profiles(ctx: ModsContext = Depends(get_context)) -> ProfileListOut:
    data = profile_service.list_profiles(ctx)
    return ProfileListOut(
        active_profile_id=data.active_profile_id,
        profiles=[_to_out(p, data) for p in data.profiles],
    )


@router.post("/", response_model=ProfileOut, status_code=201)
def save_profile(data: ProfileCreate, ctx: ModsContext = Depends(get_context)) -> ProfileOut:
    """Create a profile (seeded from the enabled mods by default) and make it active."""
    profile = profile_service.create_profile(data.name, data.seed_from_current, ctx)
    return _out_for(profile, ctx)


@router.post("/import", response_model=ProfileImportResult, status_code=201)
async def import_exported_profile(
    request: Request,
    ctx: ModsContext = Depends(get_context),
    catalog: Catalog = Depends(get_catalog),
) -> ProfileImportResult:
    """Import an exported profile file; malformed files answer 422 INVALID_MANIFEST."""
    manifest = profile_service.read_manifest(await request.body())
    return await profile_service.import_profile(manifest, ctx, catalog)


@router.get("/{profile_id}", response_model=ProfileOut)
def get_one_profile(profile_id: int, ctx: ModsContext = Depends(get_context)) -> ProfileOut:
    return _out_for(profile_service.get_profile(profile_id, ctx), ctx)


@router.patch("/{profile_id}", response_model=ProfileOut)
def patch_profile(
    profile_id: int, data: ProfileUpdate, ctx: ModsContext = Depends(get_context)
) -> ProfileOut:
    profile = profile_service.rename_profile(profile_id, data.name, ctx)
    return _out_for(profile, ctx)


@router.delete("/{profile_id}", status_code=204)
def remove_profile(profile_id: int, ctx: ModsContext = Depends(get_context)) -> None:
    profile_service.delete_profile(profile_id, ctx)


@router.post("/{profile_id}/duplicate", response_model=ProfileOut, status_code=201)
def copy_profile(
    profile_id: int, data: ProfileDuplicateRequest, ctx: ModsContext = Depends(get_context)
) -> ProfileOut:
    profile = profile_service.duplicate_profile(profile_id, data.name, ctx)
    return _out_for(profile, ctx)


@router.get("/{profile_id}/plan", response_model=SwitchPlan)
def preview_switch(profile_id: int, ctx: ModsContext = Depends(get_context)) -> SwitchPlan:
    """Show which mods a switch would enable or disable, without moving anything."""
    return profile_service.plan_switch(profile_id, ctx)


@router.post("/{profile_id}/switch", response_model=SwitchResult)
async def switch_profile(profile_id: int, ctx: ModsContext = Depends(get_context)) -> SwitchResult:
    plan = profile_service.plan_switch(profile_id, ctx)
    return await profile_service.apply_switch(plan, ctx)


@router.get("/{profile_id}/export", response_model=ExportedProfile)
def export_one_profile(
    profile_id: int, ctx: ModsContext = Depends(get_context)
) -> ExportedProfile:
    """Export a profile as portable JSON (provider references, no local ids)."""
    profile = profile_service.get_profile(profile_id, ctx)
    return profile_service.export_profile(profile, ctx.store.load_records())


@router.post("/{profile_id}/switch/stream")
async def switch_profile_stream(
    profile_id: int, ctx: ModsContext = Depends(get_context)
) -> EventSourceResponse:
    """Switch profiles, streaming ``progress`` events and a final ``done`` or ``error``."""
    plan = profile_service.plan_switch(profile_id, ctx)
    events: asyncio.Queue[dict[str, str] | None] = asyncio.Queue()

    def on_progress(processed: int, total: int) -> None:
        events.put_nowait(
            {"event": "progress", "data": json.dumps({"processed": processed, "total": total})}
        )

    async def run_switch() -> None:
        try:
            result = await profile_service.apply_switch(plan, ctx, on_progress)
            events.put_nowait({"event": "done", "data": result.model_dump_json(by_alias=True)})
        except ModManagerError as exc:
            logger.warning("Profile switch to %d failed: %s", profile_id, exc)
            events.put_nowait(
                {"event": "error", "data": json.dumps({"code": exc.code, "message": str(exc)})}
            )
        except Exception as exc:
            logger.exception("Profile switch to %d crashed", profile_id)
            events.put_nowait(
                {"event": "error", "data": json.dumps({"code": "INTERNAL", "message": str(exc)})}
            )
        finally:
            events.put_nowait(None)

    async def event_stream() -> AsyncGenerator[dict[str, str], None]:
        # The switch runs to completion even if the client goes away
        task = asyncio.create_task(run_switch())
        while (event := await events.get()) is not None:
            yield event
        await task

    return EventSourceResponse(event_stream())
