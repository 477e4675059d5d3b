"""Shared FastAPI dependencies used across routers."""

from collections.abc import AsyncIterator

from fastapi import Depends

from hyghertales_manager.catalog.client import Catalog, CatalogClient
from hyghertales_manager.config import settings
from hyghertales_manager.errors import ModsDirNotConfiguredError
from hyghertales_manager.host.files import FileOps, LocalFileOps
from hyghertales_manager.registry_store import RegistryStore
from hyghertales_manager.services.context import ModsContext
from hyghertales_manager.services.update_service import UpdateTracker

_tracker = UpdateTracker()


def get_store() -> RegistryStore:
    return RegistryStore(settings.installed_mods_path, settings.profiles_path)


def get_file_ops() -> FileOps:
    return LocalFileOps()


def get_context(
    store: RegistryStore = Depends(get_store),
    files: FileOps = Depends(get_file_ops),
) -> ModsContext:
    """Build the context for the configured Mods directory, 400 if it is unset."""
    if not settings.mods_dir:
        raise ModsDirNotConfiguredError()
    return ModsContext(store=store, files=files, mods_dir=settings.mods_dir)


async def get_catalog() -> AsyncIterator[Catalog]:
    async with CatalogClient(settings.proxy_base_url, settings.request_timeout) as client:
        yield client


def get_tracker() -> UpdateTracker:
    return _tracker
