from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import AuthenticationRequiredError


logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthenticationRequiredError)
    async def authentication_required_handler(
        request: Request, exc: AuthenticationRequiredError
    ) -> RedirectResponse:
        return RedirectResponse("/login", status_code=303)

    @app.exception_handler(SQLAlchemyError)
    async def store_unavailable_handler(
        request: Request, exc: SQLAlchemyError
    ) -> HTMLResponse:
        logger.error("store.unavailable", exc_info=exc, extra={"path": request.url.path})
        return HTMLResponse(
            "<!doctype html><html><body><h1>Service unavailable</h1></body></html>",
            status_code=503,
        )
