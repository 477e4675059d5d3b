from dataclasses import dataclass

from hyghertales_manager.host.files import FileOps
from hyghertales_manager.models.mod import InstalledModRecord
from hyghertales_manager.registry_store import RegistryStore
from hyghertales_manager.utils.paths import disabled_dir_for, normalize_dir, path_for


@dataclass(frozen=True, slots=True)
class ModsContext:
    """Everything a registry operation needs: where mods live and how to touch them."""

    store: RegistryStore
    files: FileOps
    mods_dir: str

    @property
    def active_dir(self) -> str:
        return normalize_dir(self.mods_dir).rstrip("/") or normalize_dir(self.mods_dir)

    @property
    def disabled_dir(self) -> str:
        return disabled_dir_for(self.mods_dir)

    def dir_for(self, enabled: bool) -> str:
        return self.active_dir if enabled else self.disabled_dir

    def path_for(self, record: InstalledModRecord) -> str:
        return path_for(record, self.active_dir, self.disabled_dir)
