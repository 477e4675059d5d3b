from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.models.profile import ProfileRecord, ProfilesData

__all__ = [
    "InstalledModRecord",
    "ProfileRecord",
    "ProfilesData",
    "Provider",
]
