from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from hyghertales_manager.catalog.client import Catalog
from hyghertales_manager.errors import CatalogUnavailableError, DownloadFailedError
from hyghertales_manager.host.files import LocalFileOps, unique_file_path
from hyghertales_manager.main import app
from hyghertales_manager.models.mod import InstalledModRecord, Provider
from hyghertales_manager.registry_store import RegistryStore
from hyghertales_manager.routers.deps import get_catalog, get_context, get_tracker
from hyghertales_manager.schemas.catalog import ModFile
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.update_service import UpdateTracker


class FakeCatalog(Catalog):
    """In-memory catalog: files per (provider, ref), downloads write fixed bytes."""

    def __init__(self) -> None:
        self.files: dict[tuple[Provider, str], list[ModFile]] = {}
        self.failing: dict[tuple[Provider, str], Exception] = {}
        self.download_errors: dict[str, Exception] = {}
        self.downloads: list[tuple[str, str]] = []
        self.file_calls: list[tuple[Provider, str]] = []

    def add_files(self, provider: Provider, ref: int | str, *files: ModFile) -> None:
        self.files[(provider, str(ref))] = list(files)

    async def get_files(self, provider: Provider, ref: int | str) -> list[ModFile]:
        key = (provider, str(ref))
        self.file_calls.append(key)
        if key in self.failing:
            raise self.failing[key]
        if key not in self.files:
            raise CatalogUnavailableError("Mod not found", status=404, body_code="NOT_FOUND")
        return self.files[key]

    async def get_download_url(self, provider: Provider, ref: int | str, file: ModFile) -> str:
        return f"https://cdn.test/{provider}/{ref}/{file.file_name}"

    async def download_to_path(self, url: str, dest: str) -> str:
        if url in self.download_errors:
            raise self.download_errors[url]
        final = unique_file_path(Path(dest))
        final.parent.mkdir(parents=True, exist_ok=True)
        final.write_bytes(f"downloaded from {url}".encode())
        self.downloads.append((url, final.as_posix()))
        return final.as_posix()

    def fail_download(self, url: str) -> None:
        self.download_errors[url] = DownloadFailedError(f"Download failed: {url}")


def _mod_file(
    file_name: str = "mod.jar",
    *,
    file_id: int | None = None,
    version_id: str | None = None,
    file_index: int | None = None,
    release_type: str | None = "release",
    day: int = 1,
    download_url: str | None = None,
) -> ModFile:
    return ModFile(
        file_id=file_id,
        version_id=version_id,
        file_index=file_index,
        file_name=file_name,
        release_type=release_type,
        file_date=datetime(2025, 1, day, tzinfo=UTC),
        download_url=download_url,
    )


@pytest.fixture
def make_file():
    return _mod_file


@pytest.fixture
def mods_dir(tmp_path) -> Path:
    d = tmp_path / "UserData" / "Mods"
    d.mkdir(parents=True)
    return d


@pytest.fixture
def disabled_dir(mods_dir) -> Path:
    return mods_dir.with_name("Mods.disabled")


@pytest.fixture
def store(tmp_path) -> RegistryStore:
    data = tmp_path / "data"
    return RegistryStore(data / "installed_mods.json", data / "profiles.json")


@pytest.fixture
def ctx(store, mods_dir) -> ModsContext:
    return ModsContext(store=store, files=LocalFileOps(), mods_dir=mods_dir.as_posix())


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def trash(monkeypatch) -> list[str]:
    """Replace the OS trash with deletion, recording what was trashed."""
    trashed: list[str] = []

    def _fake_send2trash(path) -> None:
        p = Path(path)
        trashed.append(p.name)
        p.unlink()

    monkeypatch.setattr("hyghertales_manager.host.files.send2trash", _fake_send2trash)
    return trashed


@pytest.fixture
def make_record(store, mods_dir, disabled_dir):
    """Register a mod and put its file in the directory matching ``enabled``."""

    def _make(
        name: str = "Example Mod",
        *,
        filename: str | None = None,
        enabled: bool = True,
        provider: Provider = Provider.CURSEFORGE,
        ref: int | str | None = 1000,
        installed_file_id: int | str | None = 1,
        pinned: bool = False,
        slug: str | None = None,
        create_file: bool = True,
    ) -> InstalledModRecord:
        records = store.load_records()
        record_id = max((r.id or 0 for r in records), default=0) + 1
        filename = filename or f"{name.lower().replace(' ', '-')}.jar"
        record = InstalledModRecord(
            id=record_id,
            provider=provider,
            project_id=int(ref) if provider == Provider.CURSEFORGE and ref is not None else None,
            resource_id=str(ref) if provider == Provider.ORBIS and ref is not None else None,
            slug=slug or name.lower().replace(" ", "-"),
            name=name,
            installed_file_id=installed_file_id,
            installed_filename=filename,
            enabled=enabled,
            pinned=pinned,
        )
        if create_file:
            target = mods_dir if enabled else disabled_dir
            target.mkdir(parents=True, exist_ok=True)
            (target / filename).write_bytes(b"jar")
        records.append(record)
        store.save_records(records)
        return record

    return _make


@pytest.fixture
def tracker() -> UpdateTracker:
    return UpdateTracker()


@pytest.fixture
def client(ctx, catalog, tracker, tmp_path, monkeypatch):
    monkeypatch.setattr("hyghertales_manager.config.settings.data_dir", tmp_path / "data")

    async def _override_catalog():
        yield catalog

    app.dependency_overrides[get_context] = lambda: ctx
    app.dependency_overrides[get_catalog] = _override_catalog
    app.dependency_overrides[get_tracker] = lambda: tracker
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
    app.dependency_overrides.clear()
