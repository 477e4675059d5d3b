from datetime import UTC, datetime

from pydantic import BaseModel, Field

from hyghertales_manager.models.mod import CamelModel, InstalledModRecord, Provider
from hyghertales_manager.models.profile import ProfileRecord


class ProfileCreate(CamelModel):
    name: str
    seed_from_current: bool = True


class ProfileUpdate(BaseModel):
    name: str


class ProfileDuplicateRequest(BaseModel):
    name: str


class ProfileOut(CamelModel):
    id: int
    name: str
    created_at: datetime
    enabled_mod_ids: list[int]
    is_active: bool = False


class ProfileListOut(CamelModel):
    active_profile_id: int | None = None
    profiles: list[ProfileOut] = []


# --- Switch plan ---


class SwitchPlan(CamelModel):
    profile_id: int
    profile_name: str = ""
    to_enable: list[InstalledModRecord] = []
    to_disable: list[InstalledModRecord] = []
    missing_ids: list[int] = []

    @property
    def total(self) -> int:
        return len(self.to_enable) + len(self.to_disable)

    @property
    def is_empty(self) -> bool:
        return self.total == 0


class SwitchResult(CamelModel):
    profile_id: int
    enabled_count: int = 0
    disabled_count: int = 0
    skipped: list[str] = []


# --- Export / Import ---


class ExportedMod(CamelModel):
    provider: Provider
    project_id: int | None = None
    resource_id: str | None = None
    installed_file_id: int | str | None = None
    slug: str
    name: str


class ExportedProfile(CamelModel):
    name: str
    exported_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    mods: list[ExportedMod] = []


class SkippedMod(CamelModel):
    name: str
    reason: str = ""


class ProfileImportResult(CamelModel):
    profile: ProfileRecord
    matched_ids: list[int] = []
    downloaded_ids: list[int] = []
    skipped_mods: list[SkippedMod] = []
    skipped_count: int = 0
