"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import register_exception_handlers
from api.routers import bookmarks, folders, health, invitations, tags, workspaces
from core.config import API_VERSION, get_settings
from db.session import get_engine


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    yield

    # Shutdown: release pooled connections
    await get_engine().dispose()


app_settings = get_settings()

app = FastAPI(
    title="Bookmark Workspaces API",
    description="Personal and shared bookmark workspaces with folders, tags and invitations.",
    version=API_VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(workspaces.router)
app.include_router(folders.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)
app.include_router(invitations.router)
