"""
HTTP routes, one per playground function.
"""

from __future__ import annotations

import json
import logging
import platform
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Callable, Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ValidationError

from playground.auth import AuthError, ClaimsVerifier, extract_bearer_token
from playground.config import get_settings
from playground.cors import CORS_HEADERS, create_cors_headers, json_response, preflight_response
from playground.dependencies import (
    TableClientFactory,
    create_public_client,
    get_claims_verifier,
    get_storage_client,
    get_table_client_factory,
)
from playground.dispatcher import (
    CreateOperation,
    DeleteOperation,
    ReadOperation,
    UpdateOperation,
    execute,
    run_operation,
)
from playground.errors import (
    InvalidRequestError,
    MethodNotAllowed,
    UnauthorizedError,
    UpstreamError,
    validation_message,
)
from playground.schemas import (
    ClaimsResponse,
    ClaimsUser,
    HelloRequest,
    TodoPayload,
    UploadUrlRequest,
    UploadUrlResponse,
)
from playground.storage import StorageClient, StorageError, build_upload_path, rewrite_internal_url

logger = logging.getLogger(__name__)

router = APIRouter()

Model = TypeVar("Model", bound=BaseModel)

EVERY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
TODO_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
SIMPLE_METHODS = ("GET", "HEAD", "POST")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_authorization(request: Request) -> str:
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    return authorization


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc


def _validate(model: Type[Model], body: Any) -> Model:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequestError(validation_message(exc.errors())) from exc


@router.api_route("/db-ops", methods=["POST", "OPTIONS"])
async def db_ops(
    request: Request,
    tables: TableClientFactory = Depends(get_table_client_factory),
):
    """
    Generic create/read/update/delete over the known tables.
    """
    if request.method == "OPTIONS":
        return preflight_response()
    db = tables(_require_authorization(request))
    body = await _read_json(request)
    status_code, envelope = execute(body, db)
    return json_response(envelope, status_code=status_code)


def _verb_response(method: str, message: str, data: Any, status_code: int = 200):
    if method in SIMPLE_METHODS:
        method_type = "simple - no Access-Control-Allow-Methods needed"
        cors_note = f"{method} is a simple method and works with basic CORS headers"
    else:
        method_type = "non-simple - REQUIRES Access-Control-Allow-Methods"
        cors_note = (
            f"{method} requires Access-Control-Allow-Methods header in CORS preflight!"
        )
    return json_response(
        {
            "success": True,
            "method": method,
            "methodType": method_type,
            "message": message,
            "timestamp": _timestamp(),
            "data": data,
            "corsNote": cors_note,
        },
        status_code=status_code,
    )


@router.api_route("/all-http-methods", methods=EVERY_METHOD)
async def all_http_methods(
    request: Request,
    tables: TableClientFactory = Depends(get_table_client_factory),
):
    """
    Todos over plain HTTP verbs. PUT, PATCH and DELETE are non-simple
    methods and only pass CORS because the preflight lists them.
    """
    method = request.method
    if method == "OPTIONS":
        logger.info("Handling OPTIONS preflight request")
        return preflight_response()

    logger.info("Handling %s request", method)
    db = tables(_require_authorization(request))

    if method == "GET":
        result = run_operation(ReadOperation(table="todos"), db)
        return _verb_response(method, "Retrieved todos using HTTP GET", result.data)

    if method == "POST":
        payload = _validate(TodoPayload, await _read_json(request))
        if not payload.task:
            raise InvalidRequestError("Missing 'task' field")
        record = {
            "task": payload.task,
            "user_id": payload.user_id or get_settings().default_user_id,
        }
        result = run_operation(CreateOperation(table="todos", data=record), db)
        return _verb_response(
            method, "Created todo using HTTP POST", result.data, status_code=201
        )

    if method in ("PUT", "PATCH"):
        payload = _validate(TodoPayload, await _read_json(request))
        if payload.id is None:
            raise InvalidRequestError("Missing 'id' field")
        changes = payload.changes()
        if not changes:
            raise InvalidRequestError("Provide 'task' or 'is_complete' to update")
        result = run_operation(
            UpdateOperation(table="todos", id=payload.id, data=changes), db
        )
        verb = "Updated" if method == "PUT" else "Patched"
        return _verb_response(
            method, f"{verb} todo {payload.id} using HTTP {method}", result.data
        )

    if method == "DELETE":
        payload = _validate(TodoPayload, await _read_json(request))
        if payload.id is None:
            raise InvalidRequestError("Missing 'id' field")
        result = run_operation(DeleteOperation(table="todos", id=payload.id), db)
        return _verb_response(
            method, f"Deleted todo {payload.id} using HTTP DELETE", result.data
        )

    raise MethodNotAllowed(f"Method {method} not supported", allow=TODO_METHODS)


@router.api_route("/delete-method", methods=EVERY_METHOD)
async def delete_method(
    request: Request,
    tables: TableClientFactory = Depends(get_table_client_factory),
):
    if request.method == "OPTIONS":
        logger.info("Handling OPTIONS preflight request")
        return preflight_response()
    if request.method != "DELETE":
        raise MethodNotAllowed(
            "Method not allowed. Use DELETE method.", allow=["DELETE", "OPTIONS"]
        )

    logger.info("Handling DELETE request")
    db = tables(_require_authorization(request))
    payload = _validate(TodoPayload, await _read_json(request))
    if payload.id is None:
        raise InvalidRequestError("Missing 'id' field in request body")

    logger.info("Deleting todo with ID: %s", payload.id)
    try:
        result = run_operation(DeleteOperation(table="todos", id=payload.id), db)
    except UpstreamError as exc:
        logger.error("Database error: %s", exc.message)
        return json_response(
            {"error": exc.message, "details": exc.details, "hint": exc.hint},
            status_code=400,
        )

    return json_response(
        {
            "success": True,
            "message": (
                f"Todo with ID {payload.id} deleted successfully using HTTP DELETE method"
            ),
            "method": request.method,
            "timestamp": _timestamp(),
            "deletedTodo": result.data,
        }
    )


@router.api_route("/generate-upload-url", methods=["POST", "OPTIONS"])
async def generate_upload_url(
    request: Request,
    storage: StorageClient = Depends(get_storage_client),
):
    """
    First half of a browser upload: hand out a signed URL the client then
    PUTs the file to.
    """
    if request.method == "OPTIONS":
        return preflight_response()

    settings = get_settings()
    payload = _validate(UploadUrlRequest, await _read_json(request))
    bucket = payload.bucket_name or settings.default_upload_bucket
    path = build_upload_path(payload.file_name)
    try:
        signed = storage.create_signed_upload_url(bucket, path)
    except StorageError as exc:
        logger.error("Error creating signed URL: %s", exc)
        raise UpstreamError(str(exc)) from exc

    response = UploadUrlResponse(
        signed_url=rewrite_internal_url(
            signed.signed_url, settings.internal_api_url, settings.public_api_url
        ),
        path=signed.path,
        token=signed.token,
        bucket_name=bucket,
    )
    return json_response(response.model_dump(by_alias=True))


@router.api_route("/get-claims-demo", methods=["GET", "POST", "OPTIONS"])
async def get_claims_demo(
    request: Request,
    verifier: ClaimsVerifier = Depends(get_claims_verifier),
):
    if request.method == "OPTIONS":
        return preflight_response()

    token = extract_bearer_token(_require_authorization(request))
    if not token:
        return json_response(
            {"error": "Invalid JWT", "details": "Empty bearer token"}, status_code=401
        )
    try:
        claims = verifier.get_claims(token)
    except AuthError as exc:
        logger.error("JWT verification failed: %s", exc)
        return json_response(
            {"error": "Invalid JWT", "details": str(exc)}, status_code=401
        )
    if not claims:
        return json_response({"error": "No claims found in token"}, status_code=401)

    email = claims.get("email")
    response = ClaimsResponse(
        message=f"Hello {email or 'user'}!",
        user=ClaimsUser(id=claims.get("sub"), email=email, role=claims.get("role")),
        claims=claims,
    )
    return json_response(response.model_dump())


def _scenario_basic(request: Request):
    return CORS_HEADERS, {
        "scenario": "basic",
        "description": "Default CORS headers with wildcard origin (*)",
        "headers": CORS_HEADERS,
        "message": "This allows requests from any origin",
    }


def _scenario_custom_origin(request: Request):
    origin = get_settings().cors_custom_origin
    headers = create_cors_headers(origin=origin)
    return headers, {
        "scenario": "custom-origin",
        "description": f"CORS restricted to {origin}",
        "headers": headers,
        "message": f"Only requests from {origin} are allowed",
    }


def _scenario_with_credentials(request: Request):
    origin = get_settings().cors_custom_origin
    headers = create_cors_headers(origin=origin, credentials=True)
    return headers, {
        "scenario": "with-credentials",
        "description": f"CORS with credentials enabled for {origin}",
        "headers": headers,
        "message": "Allows cookies and authorization headers",
        "note": "Cannot use credentials with wildcard origin",
    }


CUSTOM_HEADERS = ["x-custom-header", "x-api-version", "x-request-id"]


def _scenario_additional_headers(request: Request):
    headers = create_cors_headers(
        additional_headers=CUSTOM_HEADERS, additional_methods=["HEAD"]
    )
    return headers, {
        "scenario": "additional-headers",
        "description": "CORS with additional custom headers and methods",
        "headers": headers,
        "message": "Includes custom headers and HEAD method",
        "customHeaders": CUSTOM_HEADERS,
    }


def _scenario_multiple_origins(request: Request):
    allowed = get_settings().cors_allowed_origins
    request_origin = request.headers.get("Origin")
    if request_origin and request_origin not in allowed:
        return None, {
            "error": "Origin not allowed",
            "requestedOrigin": request_origin,
            "allowedOrigins": allowed,
        }
    headers = create_cors_headers(origin=request_origin or allowed[0], credentials=True)
    return headers, {
        "scenario": "multiple-origins",
        "description": "Validates origin against allowlist and returns specific origin",
        "allowedOrigins": allowed,
        "requestOrigin": request_origin,
        "headers": headers,
        "message": "Origin validated successfully",
        "note": "This pattern allows multiple origins while enabling credentials",
    }


CORS_SCENARIOS: dict[str, Callable[[Request], tuple]] = {
    "basic": _scenario_basic,
    "custom-origin": _scenario_custom_origin,
    "with-credentials": _scenario_with_credentials,
    "additional-headers": _scenario_additional_headers,
    "multiple-origins": _scenario_multiple_origins,
}


@router.api_route("/cors-sdk-demo", methods=EVERY_METHOD)
def cors_sdk_demo(request: Request, scenario: str = Query("")):
    """
    Shows the CORS headers produced for several deployment situations.
    """
    scenario = scenario or "basic"
    handler = CORS_SCENARIOS.get(scenario)
    if handler is None:
        return json_response(
            {"error": "Invalid scenario", "available_scenarios": list(CORS_SCENARIOS)},
            status_code=400,
        )

    headers, payload = handler(request)
    if headers is None:
        return json_response(payload, status_code=403, cors=None)
    if request.method == "OPTIONS":
        return preflight_response(headers)

    extra = {"x-custom-header": "example-value"} if scenario == "additional-headers" else None
    return json_response(payload, headers=extra, cors=headers)


def _package_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "Version info not available"


@router.get("/test-sdk-version")
def test_sdk_version():
    """
    Smoke test for the platform client library in this runtime.
    """
    settings = get_settings()
    headers = {"Access-Control-Allow-Origin": "*"}
    import_test = {"success": True, "message": "supabase imported successfully"}

    client = None
    if not settings.supabase_url:
        client_test = {
            "success": False,
            "message": "SUPABASE_URL is not configured",
            "hasClient": False,
        }
    else:
        try:
            client = create_public_client(settings)
            client_test = {
                "success": True,
                "message": "Supabase client created successfully",
                "hasClient": True,
            }
        except Exception as exc:
            client_test = {"success": False, "message": str(exc), "hasClient": False}

    if client is None:
        functionality_test = {"success": False, "message": "Skipped: no client"}
    else:
        try:
            session = client.auth.get_session()
            functionality_test = {
                "success": True,
                "message": "Auth methods callable",
                "hasSession": session is not None,
            }
        except Exception as exc:
            functionality_test = {"success": False, "message": str(exc)}

    return json_response(
        {
            "timestamp": _timestamp(),
            "tests": {
                "import": import_test,
                "clientCreation": client_test,
                "functionality": functionality_test,
            },
            "info": {
                "versionInfo": _package_version("supabase"),
                "pythonVersion": platform.python_version(),
                "importSource": "supabase (PyPI)",
            },
        },
        cors=headers,
    )


@router.api_route("/hello-world", methods=["POST", "OPTIONS"])
async def hello_world(request: Request):
    if request.method == "OPTIONS":
        return preflight_response()
    payload = _validate(HelloRequest, await _read_json(request))
    return json_response({"message": f"Hello {payload.name}!"})
