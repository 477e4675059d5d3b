from datetime import datetime
from typing import Literal

from hyghertales_manager.models.mod import CamelModel, Provider


class ModFile(CamelModel):
    # CurseForge files carry file_id; Orbis files carry version_id + file_index
    file_id: int | None = None
    version_id: str | None = None
    file_index: int | None = None
    file_name: str
    display_name: str | None = None
    release_type: str | None = None
    file_date: datetime
    download_url: str | None = None


class ModFilesResponse(CamelModel):
    files: list[ModFile]


class ModSummary(CamelModel):
    provider: Provider
    project_id: int | None = None
    resource_id: str | None = None
    slug: str
    name: str
    summary: str | None = None
    logo_url: str | None = None


class ModDetails(ModSummary):
    description: str | None = None


class ModSearchResponse(CamelModel):
    items: list[ModSummary]
    page: int
    page_size: int
    total_count: int


class ResolvedMod(CamelModel):
    provider: Provider
    project_id: int | None = None
    resource_id: str | None = None
    slug: str


class DownloadResponse(CamelModel):
    url: str


class ErrorResponse(CamelModel):
    code: str
    message: str


SortOrder = Literal["asc", "desc"]
