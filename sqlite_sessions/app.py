"""
FastAPI application wiring for the SQLite session store.

``create_app`` opens (or adopts) a store, mounts the session middleware
and exception handlers, and closes the store when the application shuts
down. Run with ``uvicorn sqlite_sessions.app:create_app --factory`` or
``python -m sqlite_sessions.app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from sqlite_sessions.config.settings import StoreSettings, get_settings
from sqlite_sessions.errors.handlers import register_exception_handlers
from sqlite_sessions.middleware.session import SessionMiddleware
from sqlite_sessions.session.sqlite_store import SQLiteSessionStore
from sqlite_sessions.session.store import SessionStore
from sqlite_sessions.telemetry.service import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[StoreSettings] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Store settings; loaded from the environment when omitted
        store: An existing store to use; built from settings when omitted.
            The application closes the store on shutdown in both cases.

    Returns:
        The configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings)
    store = store or SQLiteSessionStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Session service starting", extra={"extra_data": {"store": repr(store)}})
        try:
            yield
        finally:
            store.close()
            logger.info("Session service stopped")

    app = FastAPI(title="SQLite Session Store", version="1.0.0", lifespan=lifespan)
    app.state.session_store = store

    register_exception_handlers(app)
    app.add_middleware(
        SessionMiddleware,
        store=store,
        cookie_name=settings.cookie_name,
        cookie_secure=settings.cookie_secure,
    )

    @app.get("/health")
    async def health():
        """Returns 200 while the store answers queries, 503 otherwise."""
        healthy = await run_in_threadpool(store.health_check)
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "healthy" if healthy else "unhealthy"},
        )

    @app.get("/sessions/count")
    async def session_count():
        count = await run_in_threadpool(store.length)
        return {"active_sessions": count}

    @app.get("/session")
    async def read_session(request: Request):
        return {"session": request.state.session}

    return app


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_level="info")
