"""JSON document store for installed mods and profiles.

Two documents, each read and written whole: ``installed_mods.json`` (a list of
records) and ``profiles.json`` (``{nextId, activeProfileId, profiles}``).
Every mutating operation loads a fresh copy, changes it in memory and saves
the whole document back; the last save wins.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from hyghertales_manager.models.mod import InstalledModRecord
from hyghertales_manager.models.profile import ProfilesData

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(list[InstalledModRecord])


class RegistryStore:
    def __init__(self, installed_mods_path: Path, profiles_path: Path) -> None:
        self.installed_mods_path = Path(installed_mods_path)
        self.profiles_path = Path(profiles_path)

    def _read_json(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Unreadable registry document %s, using defaults", path, exc_info=True)
            return None

    def _write_json(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load_records(self) -> list[InstalledModRecord]:
        raw = self._read_json(self.installed_mods_path)
        if raw is None:
            return []
        try:
            return _records_adapter.validate_python(raw)
        except ValidationError:
            logger.warning("Invalid installed mods document, starting empty", exc_info=True)
            return []

    def save_records(self, records: list[InstalledModRecord]) -> None:
        payload = _records_adapter.dump_python(records, mode="json", by_alias=True)
        self._write_json(self.installed_mods_path, payload)

    def load_profiles(self) -> ProfilesData:
        raw = self._read_json(self.profiles_path)
        if raw is None:
            return ProfilesData()
        try:
            return ProfilesData.model_validate(raw)
        except ValidationError:
            logger.warning("Invalid profiles document, starting empty", exc_info=True)
            return ProfilesData()

    def save_profiles(self, data: ProfilesData) -> None:
        self._write_json(self.profiles_path, data.model_dump(mode="json", by_alias=True))
