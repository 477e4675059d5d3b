from hyghertales_manager.models.mod import CamelModel, InstalledModRecord
from hyghertales_manager.schemas.catalog import ModFile


class PendingUpdate(CamelModel):
    record_id: int
    name: str
    installed_file_id: int | str | None = None
    latest: ModFile
    state: str


class UpdateCheckResult(CamelModel):
    total_checked: int
    updates_available: int
    updates: list[PendingUpdate] = []


class UpdateApplyResult(CamelModel):
    updated: list[InstalledModRecord] = []
