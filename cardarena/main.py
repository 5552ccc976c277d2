from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardarena.api import (
    battles_router,
    cards_router,
    health_router,
    notifications_router,
)
from cardarena.config import settings
from cardarena.db.database import close_db, init_db
from cardarena.services.broadcaster import close_broadcaster


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield
    await close_broadcaster()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("cardarena"),
    lifespan=lifespan,
)

app.include_router(battles_router)
app.include_router(cards_router)
app.include_router(health_router)
app.include_router(notifications_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
