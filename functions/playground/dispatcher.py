"""
Generic CRUD dispatch over the known tables.

A request names an operation and a table; required fields are validated
per operation before any data access, then exactly one call is made to
the table client and its result is wrapped in the success envelope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from playground.db import KNOWN_TABLES, DataAccessError, TableClient
from playground.errors import InternalError, InvalidRequestError, PlaygroundError, UpstreamError

logger = logging.getLogger(__name__)

OPERATIONS = ("create", "read", "update", "delete")


@dataclass(frozen=True)
class CreateOperation:
    table: str
    data: dict
    operation: str = field(default="create", init=False)


@dataclass(frozen=True)
class ReadOperation:
    table: str
    filters: Optional[dict] = None
    operation: str = field(default="read", init=False)


@dataclass(frozen=True)
class UpdateOperation:
    table: str
    id: Union[int, str]
    data: dict
    operation: str = field(default="update", init=False)


@dataclass(frozen=True)
class DeleteOperation:
    table: str
    id: Union[int, str]
    operation: str = field(default="delete", init=False)


DbOperation = Union[CreateOperation, ReadOperation, UpdateOperation, DeleteOperation]


@dataclass
class OperationResult:
    success: bool
    data: Any = None
    error: Optional[str] = None

    def as_dict(self) -> dict:
        if self.success:
            return {"success": True, "data": self.data}
        return {"error": self.error}


def _missing(body: Mapping[str, Any], name: str) -> bool:
    return body.get(name) is None


def _require_table(body: Mapping[str, Any]) -> str:
    if _missing(body, "table"):
        raise InvalidRequestError("Missing 'table' field")
    table = body["table"]
    if table not in KNOWN_TABLES:
        raise InvalidRequestError(
            f"Unknown table: {table}. Expected one of: {', '.join(KNOWN_TABLES)}"
        )
    return table


def _require_id(body: Mapping[str, Any]) -> Union[int, str]:
    if _missing(body, "id"):
        raise InvalidRequestError("Missing 'id' field")
    record_id = body["id"]
    if isinstance(record_id, bool) or not isinstance(record_id, (int, float, str)):
        raise InvalidRequestError("'id' must be a number or string")
    return record_id


def _require_data(body: Mapping[str, Any]) -> dict:
    if _missing(body, "data"):
        raise InvalidRequestError("Missing 'data' field")
    data = body["data"]
    if not isinstance(data, Mapping) or not data:
        raise InvalidRequestError("'data' must be a non-empty object")
    return dict(data)


def _optional_filters(body: Mapping[str, Any]) -> Optional[dict]:
    filters = body.get("filters")
    if filters is None:
        return None
    if not isinstance(filters, Mapping):
        raise InvalidRequestError("'filters' must be an object")
    return dict(filters)


def parse_operation(body: Any) -> DbOperation:
    """Validate a raw request body and build the matching operation."""
    if not isinstance(body, Mapping):
        raise InvalidRequestError("Request body must be a JSON object")
    if not body.get("operation"):
        raise InvalidRequestError("Missing 'operation' field")

    operation = body["operation"]
    if operation == "create":
        return CreateOperation(table=_require_table(body), data=_require_data(body))
    if operation == "read":
        return ReadOperation(table=_require_table(body), filters=_optional_filters(body))
    if operation == "update":
        return UpdateOperation(
            table=_require_table(body),
            id=_require_id(body),
            data=_require_data(body),
        )
    if operation == "delete":
        return DeleteOperation(table=_require_table(body), id=_require_id(body))
    raise InvalidRequestError(f"Unknown operation: {operation}")


def run_operation(op: DbOperation, db: TableClient) -> OperationResult:
    """Issue the single data-access call for an already validated operation."""
    try:
        if isinstance(op, CreateOperation):
            data = db.insert(op.table, op.data)
        elif isinstance(op, ReadOperation):
            data = db.select(op.table, op.filters)
        elif isinstance(op, UpdateOperation):
            data = db.update_by_id(op.table, op.id, op.data)
        elif isinstance(op, DeleteOperation):
            data = db.delete_by_id(op.table, op.id)
        else:
            raise InvalidRequestError(f"Unknown operation: {op!r}")
    except DataAccessError as exc:
        logger.warning("%s on %s failed: %s", op.operation, op.table, exc.message)
        raise UpstreamError(exc.message, details=exc.details, hint=exc.hint) from exc
    return OperationResult(success=True, data=data)


def dispatch(body: Any, db: TableClient) -> OperationResult:
    """Validate and run one request; raises `PlaygroundError` subclasses."""
    return run_operation(parse_operation(body), db)


def execute(body: Any, db: TableClient) -> tuple[int, dict]:
    """
    Single entry point: returns (status_code, envelope) and never raises.
    """
    try:
        result = dispatch(body, db)
    except PlaygroundError as exc:
        return exc.status_code, exc.as_dict()
    except Exception:
        logger.exception("Unexpected error while dispatching request")
        error = InternalError("Internal server error")
        return error.status_code, error.as_dict()
    return 200, result.as_dict()
