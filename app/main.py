import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import create_tables, async_session
from app.dependencies import blob_dir, get_lifecycle_manager, verify_api_key
from app.seed import seed_data
from app.routers.auth import router as auth_router
from app.routers.reports import router as reports_router
from app.routers.zones import router as zones_router
from app.utils.exceptions import register_exception_handlers
from app.utils.response import success_response

logger = logging.getLogger(__name__)

SERVICE_NAME = "billboard-compliance-api"
SERVICE_VERSION = "0.1.0"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    async with async_session() as session:
        await seed_data(session)
    lifecycle = get_lifecycle_manager()
    if settings.recover_on_startup:
        await lifecycle.recover()
    else:
        logger.info("Startup recovery disabled for this process")
    yield
    await lifecycle.wait_idle()


app = FastAPI(
    title="Billboard Compliance API",
    description="Citizen billboard reports with automated compliance analysis",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

_api_key_dep = [Depends(verify_api_key)]

app.include_router(auth_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(reports_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(zones_router, prefix="/api/v1", dependencies=_api_key_dep)

os.makedirs(blob_dir(), exist_ok=True)
app.mount("/media", StaticFiles(directory=blob_dir()), name="media")


@app.get("/health")
async def health_check():
    return success_response(data={"service": SERVICE_NAME, "version": SERVICE_VERSION})
