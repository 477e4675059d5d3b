from datetime import UTC, datetime

from pydantic import Field

from hyghertales_manager.models.mod import CamelModel


class ProfileRecord(CamelModel):
    id: int
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    enabled_mod_ids: list[int] = []


class ProfilesData(CamelModel):
    next_id: int = 1
    active_profile_id: int | None = None
    profiles: list[ProfileRecord] = []

    def get(self, profile_id: int) -> ProfileRecord | None:
        return next((p for p in self.profiles if p.id == profile_id), None)

    @property
    def active(self) -> ProfileRecord | None:
        if self.active_profile_id is None:
            return None
        return self.get(self.active_profile_id)
