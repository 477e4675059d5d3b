import logging
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol, Self, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from hyghertales_manager.constants import DOWNLOAD_TEMP_SUFFIX
from hyghertales_manager.errors import (
    CatalogUnavailableError,
    DistributionRestrictedError,
    DownloadFailedError,
)
from hyghertales_manager.host.files import unique_file_path
from hyghertales_manager.models.mod import Provider
from hyghertales_manager.schemas.catalog import (
    DownloadResponse,
    ModDetails,
    ModFile,
    ModFilesResponse,
    ModSearchResponse,
    ResolvedMod,
    SortOrder,
)
from hyghertales_manager.utils.paths import normalize_dir

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8787"

_STREAM_CHUNK_SIZE = 65_536  # 64 KB

M = TypeVar("M", bound=BaseModel)


class Catalog(Protocol):
    """What the engine needs from the remote mod catalogs."""

    async def get_files(self, provider: Provider, ref: int | str) -> list[ModFile]: ...

    async def get_download_url(self, provider: Provider, ref: int | str, file: ModFile) -> str: ...

    async def download_to_path(self, url: str, dest: str) -> str: ...


class CatalogClient:
    """Client for the catalog proxy fronting CurseForge and Orbis."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("CatalogClient not entered as context manager")
        return self._client

    @staticmethod
    def _error_from_response(resp: httpx.Response) -> CatalogUnavailableError:
        if resp.status_code == 503:
            return DistributionRestrictedError()
        code, message = "", f"Request failed: {resp.status_code}"
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = str(body.get("code", ""))
            message = str(body.get("message", message))
        return CatalogUnavailableError(message, status=resp.status_code, body_code=code)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CatalogUnavailableError(f"Catalog request failed: {exc}") from exc
        if resp.is_error:
            raise self._error_from_response(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise CatalogUnavailableError(
                "Invalid response from server", status=resp.status_code
            ) from exc

    async def _get_model(self, path: str, model: type[M], **kwargs: Any) -> M:
        data = await self._request("GET", path, **kwargs)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise CatalogUnavailableError("Invalid response from server") from exc

    async def health(self) -> bool:
        try:
            data = await self._request("GET", "/health")
        except CatalogUnavailableError:
            return False
        return isinstance(data, dict) and data.get("ok") is True

    async def search(
        self,
        q: str,
        page: int = 1,
        page_size: int = 20,
        *,
        category_id: int | None = None,
        sort_field: int | None = None,
        sort_order: SortOrder | None = None,
    ) -> ModSearchResponse:
        params: dict[str, str | int] = {"q": q, "page": page, "pageSize": page_size}
        if category_id is not None:
            params["categoryId"] = category_id
        if sort_field is not None:
            params["sortField"] = sort_field
        if sort_order is not None:
            params["sortOrder"] = sort_order
        return await self._get_model("/v1/search", ModSearchResponse, params=params)

    async def get_mod(self, provider: Provider, ref: int | str) -> ModDetails:
        return await self._get_model(f"/v1/mod/{provider}/{ref}", ModDetails)

    async def get_files(self, provider: Provider, ref: int | str) -> list[ModFile]:
        resp = await self._get_model(f"/v1/mod/{provider}/{ref}/files", ModFilesResponse)
        return resp.files

    async def get_download_url(self, provider: Provider, ref: int | str, file: ModFile) -> str:
        if provider == Provider.CURSEFORGE:
            if file.file_id is None:
                raise CatalogUnavailableError("CurseForge file has no fileId")
            path = f"/v1/download/curseforge/{ref}/{file.file_id}"
        else:
            if file.version_id is None or file.file_index is None:
                raise CatalogUnavailableError("Orbis file has no versionId/fileIndex")
            path = f"/v1/download/orbis/{ref}/{file.version_id}/{file.file_index}"
        resp = await self._get_model(path, DownloadResponse)
        return resp.url

    async def resolve_url(self, url: str) -> ResolvedMod:
        data = await self._request("POST", "/v1/resolve", json={"url": url})
        try:
            return ResolvedMod.model_validate(data)
        except ValidationError as exc:
            raise CatalogUnavailableError("Invalid response from server") from exc

    async def download_to_path(self, url: str, dest: str) -> str:
        """Stream ``url`` to ``dest`` (collision-safe); returns the final path."""
        if not url.strip():
            raise DownloadFailedError("URL is empty")
        dest_p = Path(normalize_dir(dest))
        dest_p.parent.mkdir(parents=True, exist_ok=True)
        temp_p = dest_p.with_name(dest_p.name + DOWNLOAD_TEMP_SUFFIX)
        try:
            async with (
                httpx.AsyncClient(follow_redirects=True, timeout=300.0) as cdn_client,
                cdn_client.stream("GET", url) as resp,
            ):
                if resp.is_error:
                    raise DownloadFailedError(f"Download failed: HTTP {resp.status_code}")
                with open(temp_p, "wb") as f:
                    async for chunk in resp.aiter_bytes(chunk_size=_STREAM_CHUNK_SIZE):
                        f.write(chunk)
            final = unique_file_path(dest_p)
            temp_p.rename(final)
        except (httpx.HTTPError, OSError) as exc:
            temp_p.unlink(missing_ok=True)
            raise DownloadFailedError(f"Download failed: {exc}") from exc
        except DownloadFailedError:
            temp_p.unlink(missing_ok=True)
            raise
        logger.info("Downloaded %s", final.name)
        return final.as_posix()
