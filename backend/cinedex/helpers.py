"""
Cinedex Backend: Request Input Helpers
========================================

What:  Body decoding and query-string/path parsing shared by route handlers.
How:   `read_json` reads the raw body with a hard size cap, decodes it with
       the stdlib json module and validates it into a strict Pydantic model.
       Each way a body can be wrong maps to one client-facing 400 message:

           empty body                  → body must not be empty
           truncated JSON              → body contains badly-formed JSON
           syntax error                → body contains badly-formed JSON (at character N)
           trailing data               → body must only contain a single JSON value
           key not in the model        → body contains unknown key "k"
           wrong type for a key        → body contains incorrect JSON type for field "k"
           more than 1 MiB             → 413 body must not be larger than 1048576 bytes
"""

import json
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.requests import Request

from cinedex.exceptions import BadRequestError, PayloadTooLargeError, RecordNotFoundError
from cinedex.validator import Validator

MAX_BODY_BYTES = 1_048_576

# Largest BIGINT
MAX_ID = 2**63 - 1

ModelT = TypeVar("ModelT", bound=BaseModel)


async def read_body(request: Request, limit: int = MAX_BODY_BYTES) -> bytes:
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(f"body must not be larger than {limit} bytes")
    return bytes(body)


async def read_json(request: Request, model: Type[ModelT]) -> ModelT:
    raw = await read_body(request)
    if not raw.strip():
        raise BadRequestError("body must not be empty")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BadRequestError(f"body contains badly-formed JSON (at character {exc.start + 1})") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        if exc.msg == "Extra data":
            raise BadRequestError("body must only contain a single JSON value") from exc
        if exc.pos >= len(text.rstrip()):
            raise BadRequestError("body contains badly-formed JSON") from exc
        raise BadRequestError(f"body contains badly-formed JSON (at character {exc.pos + 1})") from exc

    try:
        return model.model_validate(data, strict=True)
    except ValidationError as exc:
        raise BadRequestError(_describe_validation_error(exc)) from exc


def _describe_validation_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    loc = error.get("loc") or ()
    if not loc:
        return "body contains incorrect JSON type"

    field = str(loc[0])
    if error["type"] == "extra_forbidden":
        return f'body contains unknown key "{field}"'
    if error["type"] == "invalid_runtime":
        return "invalid runtime format"
    return f'body contains incorrect JSON type for field "{field}"'


def read_id_param(raw: str) -> int:
    """Path ids must be positive integers; anything else is a 404."""
    if not (raw.isascii() and raw.isdigit()):
        raise RecordNotFoundError()
    value = int(raw)
    if value < 1 or value > MAX_ID:
        raise RecordNotFoundError()
    return value


def read_string(request: Request, key: str, default: str = "") -> str:
    return request.query_params.get(key) or default


def read_csv(value: Optional[str], default: Optional[List[str]] = None) -> List[str]:
    if not value:
        return list(default or [])
    return value.split(",")


def read_int(request: Request, key: str, default: int, v: Validator) -> int:
    raw = request.query_params.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        v.add_error(key, "must be an integer value")
        return default
