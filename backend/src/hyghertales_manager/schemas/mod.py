from pydantic import BaseModel

from hyghertales_manager.models.mod import CamelModel, Provider
from hyghertales_manager.schemas.catalog import ModFile


class RescanResult(CamelModel):
    in_active: list[str] = []
    in_disabled: list[str] = []


class AdoptRequest(CamelModel):
    filename: str
    was_in_active_dir: bool = True


class PinRequest(BaseModel):
    pinned: bool


class InstallRequest(CamelModel):
    provider: Provider
    project_id: int | None = None
    resource_id: str | None = None
    slug: str
    name: str
    source_url: str | None = None
    file: ModFile


class AmbiguousEntry(CamelModel):
    record_id: int
    filename: str
    in_active: bool
    in_disabled: bool


class RepairResult(CamelModel):
    repaired_ids: list[int] = []
    ambiguous: list[AmbiguousEntry] = []
