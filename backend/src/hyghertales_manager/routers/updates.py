import logging

from fastapi import APIRouter, Depends, HTTPException

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.config import settings
from hyghertales_manager.models.mod import InstalledModRecord
from hyghertales_manager.routers.deps import get_catalog, get_context, get_tracker
from hyghertales_manager.schemas.update import PendingUpdate, UpdateApplyResult, UpdateCheckResult
from hyghertales_manager.services import update_service
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.update_service import UpdateTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/updates", tags=["updates"])


def _pending(
    records: list[InstalledModRecord], tracker: UpdateTracker
) -> list[PendingUpdate]:
    by_id = {r.id: r for r in records}
    out: list[PendingUpdate] = []
    for record_id, latest in tracker.pending.items():
        record = by_id.get(record_id)
        if record is None:
            continue
        out.append(
            PendingUpdate(
                record_id=record_id,
                name=record.name,
                installed_file_id=record.installed_file_id,
                latest=latest,
                state=tracker.state(record_id),
            )
        )
    return out


@router.get("/", response_model=list[PendingUpdate])
def list_pending_updates(
    ctx: ModsContext = Depends(get_context),
    tracker: UpdateTracker = Depends(get_tracker),
) -> list[PendingUpdate]:
    """Updates found by the last check that have not been applied yet."""
    return _pending(ctx.store.load_records(), tracker)


@router.post("/check", response_model=UpdateCheckResult)
async def check_updates(
    ctx: ModsContext = Depends(get_context),
    catalog: Catalog = Depends(get_catalog),
    tracker: UpdateTracker = Depends(get_tracker),
) -> UpdateCheckResult:
    records = ctx.store.load_records()
    updates = await update_service.check_all(
        records, catalog, tracker, max_concurrent=settings.max_concurrent_checks
    )
    return UpdateCheckResult(
        total_checked=sum(1 for r in records if update_service.is_checkable(r)),
        updates_available=len(updates),
        updates=_pending(records, tracker),
    )


@router.post("/apply-all", response_model=UpdateApplyResult)
async def apply_all_updates(
    ctx: ModsContext = Depends(get_context),
    catalog: Catalog = Depends(get_catalog),
    tracker: UpdateTracker = Depends(get_tracker),
) -> UpdateApplyResult:
    pending = dict(tracker.pending)
    updated = await update_service.apply_all(pending, ctx, catalog, tracker)
    if len(updated) < len(pending):
        logger.warning("Applied %d of %d pending update(s)", len(updated), len(pending))
    return UpdateApplyResult(updated=updated)


@router.post("/{record_id}/apply", response_model=InstalledModRecord)
async def apply_update(
    record_id: int,
    ctx: ModsContext = Depends(get_context),
    catalog: Catalog = Depends(get_catalog),
    tracker: UpdateTracker = Depends(get_tracker),
) -> InstalledModRecord:
    latest = tracker.pending.get(record_id)
    if latest is None:
        raise HTTPException(404, f"No pending update for mod {record_id}")
    return await update_service.apply_one(record_id, latest, ctx, catalog, tracker)
