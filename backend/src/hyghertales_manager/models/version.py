"""Provider-specific version identity.

CurseForge identifies an installed version by a numeric file id. Orbis has no
per-file id, so a version is ``"<versionId>:<fileIndex>"``. Both are stored in
``InstalledModRecord.installed_file_id``; these helpers turn the stored value
and catalog files into comparable refs so callers never cast by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from hyghertales_manager.models.mod import InstalledModRecord, Provider

if TYPE_CHECKING:
    from hyghertales_manager.schemas.catalog import ModFile


@dataclass(frozen=True, slots=True)
class NumericRef:
    file_id: int

    def wire(self) -> int:
        return self.file_id


@dataclass(frozen=True, slots=True)
class CompositeRef:
    version_id: str
    file_index: int

    def wire(self) -> str:
        return f"{self.version_id}:{self.file_index}"

    @classmethod
    def parse(cls, raw: str) -> CompositeRef | None:
        version_id, sep, index = raw.rpartition(":")
        if not sep or not version_id:
            return None
        try:
            return cls(version_id, int(index))
        except ValueError:
            return None


VersionRef = NumericRef | CompositeRef


def installed_version_ref(record: InstalledModRecord) -> VersionRef | None:
    raw = record.installed_file_id
    if raw is None or isinstance(raw, bool):
        return None
    if record.provider == Provider.CURSEFORGE:
        try:
            return NumericRef(int(raw))
        except ValueError:
            return None
    return CompositeRef.parse(str(raw))


def file_version_ref(provider: Provider, file: ModFile) -> VersionRef | None:
    if provider == Provider.CURSEFORGE:
        return NumericRef(file.file_id) if file.file_id is not None else None
    if file.version_id is None or file.file_index is None:
        return None
    return CompositeRef(file.version_id, file.file_index)
