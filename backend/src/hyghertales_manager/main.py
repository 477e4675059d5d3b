import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hyghertales_manager.config import settings
from hyghertales_manager.errors import (
    CatalogUnavailableError,
    DistributionRestrictedError,
    DownloadFailedError,
    InvalidManifestError,
    ModManagerError,
    ModsDirNotConfiguredError,
    NotFoundLocalError,
    ProfileNotFoundError,
    RecordNotFoundError,
)
from hyghertales_manager.routers import api_router


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_logging()
logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases
_STATUS_BY_ERROR: list[tuple[type[ModManagerError], int]] = [
    (RecordNotFoundError, 404),
    (ProfileNotFoundError, 404),
    (NotFoundLocalError, 404),
    (InvalidManifestError, 422),
    (DistributionRestrictedError, 503),
    (CatalogUnavailableError, 502),
    (DownloadFailedError, 502),
    (ModsDirNotConfiguredError, 400),
]


def status_for(exc: ModManagerError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 409


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    if settings.mods_dir:
        logger.info("Managing mods in %s", settings.mods_dir)
    else:
        logger.warning("No Mods directory configured (set HTM_MODS_DIR)")
    logger.info("Application started")
    yield
    logger.info("Shutdown complete")


app = FastAPI(
    title="Hyghertales Manager",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:1420", "https://tauri.localhost"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ModManagerError)
async def mod_manager_error_handler(_request: Request, exc: ModManagerError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.warning("%s: %s", exc.code, exc)
    return JSONResponse(status_code=status, content={"code": exc.code, "message": str(exc)})


app.include_router(api_router)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}
