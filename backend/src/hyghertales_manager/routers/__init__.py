from fastapi import APIRouter

from hyghertales_manager.routers.mods import router as mods_router
from hyghertales_manager.routers.profiles import router as profiles_router
from hyghertales_manager.routers.updates import router as updates_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(mods_router)
api_router.include_router(profiles_router)
api_router.include_router(updates_router)
