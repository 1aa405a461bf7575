"""
CORS header construction and JSON response helpers.
"""

from __future__ import annotations

from typing import Iterable, Optional

from fastapi.responses import JSONResponse, PlainTextResponse

DEFAULT_ALLOWED_HEADERS = ("authorization", "x-client-info", "apikey", "content-type")
DEFAULT_ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


def create_cors_headers(
    origin: str = "*",
    credentials: bool = False,
    additional_headers: Iterable[str] = (),
    additional_methods: Iterable[str] = (),
) -> dict[str, str]:
    """
    Build CORS response headers on top of the platform defaults.

    Browsers refuse credentialed responses with a wildcard origin, so that
    combination is rejected here.
    """
    if credentials and origin == "*":
        raise ValueError("Cannot use credentials with wildcard origin")

    allowed_headers = list(DEFAULT_ALLOWED_HEADERS)
    for header in additional_headers:
        if header.lower() not in allowed_headers:
            allowed_headers.append(header.lower())

    allowed_methods = list(DEFAULT_ALLOWED_METHODS)
    for method in additional_methods:
        if method.upper() not in allowed_methods:
            allowed_methods.append(method.upper())

    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": ", ".join(allowed_headers),
        "Access-Control-Allow-Methods": ", ".join(allowed_methods),
    }
    if credentials:
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


CORS_HEADERS = create_cors_headers()


def json_response(
    payload: dict,
    status_code: int = 200,
    headers: Optional[dict[str, str]] = None,
    cors: Optional[dict[str, str]] = CORS_HEADERS,
) -> JSONResponse:
    merged = dict(cors or {})
    if headers:
        merged.update(headers)
    return JSONResponse(content=payload, status_code=status_code, headers=merged)


def preflight_response(cors: dict[str, str] = CORS_HEADERS) -> PlainTextResponse:
    return PlainTextResponse("ok", headers=dict(cors))
