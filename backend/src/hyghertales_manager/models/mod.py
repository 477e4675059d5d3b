from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hyghertales_manager.constants import UNTRACKED_SLUG


class Provider(StrEnum):
    CURSEFORGE = "curseforge"
    ORBIS = "orbis"


class CamelModel(BaseModel):
    """Base for documents persisted with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InstalledModRecord(CamelModel):
    id: int | None = None
    provider: Provider
    project_id: int | None = None
    resource_id: str | None = None
    slug: str
    name: str
    installed_file_id: int | str | None = None
    installed_filename: str
    installed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source_url: str | None = None
    enabled: bool = True
    pinned: bool = False

    @property
    def is_untracked(self) -> bool:
        return self.slug == UNTRACKED_SLUG

    @property
    def provider_ref(self) -> int | str | None:
        if self.provider == Provider.CURSEFORGE:
            return self.project_id
        return self.resource_id
