"""
Cookie-based session middleware backed by a SessionStore.

The middleware is the session-management layer: it owns session ids and
cookies and talks to the store only through the store contract, so any
SessionStore implementation can be plugged in.
"""

import copy
import logging
import secrets
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from sqlite_sessions.errors.exceptions import SessionStoreError
from sqlite_sessions.errors.handlers import handle_app_exception
from sqlite_sessions.session.store import SessionStore
from sqlite_sessions.telemetry.service import session_id_var

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "session_id"


def generate_session_id() -> str:
    """A new random session id (32 bytes, URL-safe)."""
    return secrets.token_urlsafe(32)


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Loads ``request.state.session`` from the store and saves it back.

    For each request:
    1. The session id is read from the session cookie
    2. The active session (if any) is loaded into ``request.state.session``
    3. The handler runs and may mutate the session dict
    4. A modified session is saved (a new id is issued for new sessions),
       an unmodified one is touched, and a session emptied by the handler
       is destroyed and its cookie deleted
    5. A cookie naming an unknown or expired session is deleted when the
       handler leaves the session empty, and so is the cookie of a session
       whose own max-age has already lapsed

    Store failures are answered with the structured error response.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        cookie_secure: bool = False,
        cookie_path: str = "/",
        same_site: str = "lax",
        id_factory: Callable[[], str] = generate_session_id,
    ):
        super().__init__(app)
        self.store = store
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self.cookie_path = cookie_path
        self.same_site = same_site
        self.id_factory = id_factory

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        session_id: Optional[str] = request.cookies.get(self.cookie_name)
        token = session_id_var.set(session_id or "")
        try:
            try:
                loaded = await run_in_threadpool(self.store.get, session_id) if session_id else None
            except SessionStoreError as exc:
                return await handle_app_exception(request, exc)

            if not isinstance(loaded, dict):
                loaded = None
            is_new = loaded is None
            session = loaded if loaded is not None else {}
            original = copy.deepcopy(session)
            request.state.session = session

            response = await call_next(request)

            try:
                await self._save(response, session_id, session, original, is_new)
            except SessionStoreError as exc:
                return await handle_app_exception(request, exc)
            return response
        finally:
            session_id_var.reset(token)

    async def _save(
        self,
        response: Response,
        session_id: Optional[str],
        session: dict,
        original: dict,
        is_new: bool,
    ) -> None:
        if not session:
            if not is_new:
                await run_in_threadpool(self.store.destroy, session_id)
                logger.debug("Session destroyed")
            if session_id:
                # Unknown or expired ids are dropped so the client stops sending them
                response.delete_cookie(self.cookie_name, path=self.cookie_path)
            return

        if is_new:
            session_id = self.id_factory()
            session_id_var.set(session_id)
            await run_in_threadpool(self.store.set, session_id, session)
            logger.debug("Session created")
        elif session != original:
            await run_in_threadpool(self.store.set, session_id, session)
        else:
            await run_in_threadpool(self.store.touch, session_id, session)

        ttl = self.store.get_ttl(session)
        if ttl <= 0:
            response.delete_cookie(self.cookie_name, path=self.cookie_path)
            return

        response.set_cookie(
            self.cookie_name,
            session_id,
            max_age=max(ttl // 1000, 1),
            path=self.cookie_path,
            secure=self.cookie_secure,
            httponly=True,
            samesite=self.same_site,
        )
