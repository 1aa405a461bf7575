"""
FastAPI application entry point for the functions playground.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from playground.config import get_settings
from playground.cors import json_response
from playground.errors import MethodNotAllowed, PlaygroundError, validation_message
from playground.routes import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
    )
    app = FastAPI(title="Functions Playground (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)

    @app.exception_handler(PlaygroundError)
    async def handle_playground_error(request: Request, exc: PlaygroundError):
        headers = None
        if isinstance(exc, MethodNotAllowed):
            headers = {"Allow": ", ".join(exc.allow)}
        return json_response(exc.as_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return json_response(
            {"error": validation_message(list(exc.errors()))}, status_code=400
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Error handling %s %s", request.method, request.url.path)
        return json_response({"error": "Internal server error"}, status_code=500)

    return app


app = create_app()
