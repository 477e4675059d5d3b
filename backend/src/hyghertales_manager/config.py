import os
import sys
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_APP_ID = "com.hyghertales.app"


def _default_data_dir() -> Path:
    if env := os.environ.get("HTM_DATA_DIR"):
        return Path(env)
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / _APP_ID


def default_mods_dir_candidates() -> list[str]:
    """Candidate Hytale ``Mods`` folders for the current platform, most likely first."""
    candidates: list[Path] = []
    home = Path.home()
    if sys.platform == "win32":
        if appdata := os.environ.get("APPDATA"):
            candidates.append(Path(appdata) / "Hytale" / "UserData" / "Mods")
    elif sys.platform == "darwin":
        candidates.append(
            home / "Library" / "Application Support" / "Hytale" / "UserData" / "Mods"
        )
    else:
        candidates.append(
            home
            / ".var"
            / "app"
            / "com.hypixel.HytaleLauncher"
            / "data"
            / "Hytale"
            / "UserData"
            / "Mods"
        )
        if xdg := os.environ.get("XDG_DATA_HOME"):
            candidates.append(Path(xdg) / "Hytale" / "UserData" / "Mods")
        candidates.append(home / ".local" / "share" / "Hytale" / "UserData" / "Mods")

    seen: list[str] = []
    for path in candidates:
        s = str(path)
        if s not in seen:
            seen.append(s)
    return seen


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HTM_",
        extra="ignore",
    )

    data_dir: Path = Path("")
    installed_mods_path: Path = Path("")
    profiles_path: Path = Path("")
    mods_dir: str | None = None
    proxy_base_url: str = "http://localhost:8787"
    host: str = "127.0.0.1"
    port: int = 8426
    max_concurrent_checks: int = 5
    request_timeout: float = 30.0

    @field_validator("proxy_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("mods_dir")
    @classmethod
    def _blank_mods_dir_is_unset(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def _resolve_data_paths(self) -> "Settings":
        if self.data_dir == Path(""):
            self.data_dir = _default_data_dir()
        if self.installed_mods_path == Path(""):
            self.installed_mods_path = self.data_dir / "installed_mods.json"
        if self.profiles_path == Path(""):
            self.profiles_path = self.data_dir / "profiles.json"
        return self


settings = Settings()
