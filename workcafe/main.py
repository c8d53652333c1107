from __future__ import annotations

import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from workcafe.core.config import settings
from workcafe.core.errors import register_exception_handlers
from workcafe.core.logging_config import configure_logging
from workcafe.db.base import Base
from workcafe.db.session import engine, watchdog

import workcafe.models  # noqa: F401

from workcafe.routers import cafes, locations, reviews, users

configure_logging(log_dir=settings.log_dir, level=settings.log_level)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="WorkCafe", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    async def on_startup() -> None:
        Base.metadata.create_all(bind=engine)
        logger.info("DB ready (%s)", engine.dialect.name)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        duration_ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration_ms)
        return response

    @app.get("/api/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok", "database": engine.dialect.name, "pool": watchdog.snapshot()}

    app.include_router(users.router)
    app.include_router(cafes.router)
    app.include_router(locations.router)
    app.include_router(reviews.router)

    # Uploaded photos; skipped when MEDIA_URL points at an external host.
    if settings.media_url.startswith("/"):
        media_dir = Path(settings.media_dir)
        media_dir.mkdir(parents=True, exist_ok=True)
        app.mount(settings.media_url.rstrip("/"), StaticFiles(directory=str(media_dir)), name="media")

    return app


app = create_app()
