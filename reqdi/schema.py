from __future__ import annotations

import functools
import json
import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError
from starlette.requests import Request

from reqdi.exceptions import InputShapeError, OutputShapeError

logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class RequestInput(NamedTuple):
    """The structured input handed to handlers and dependencies as `input`"""

    path: Mapping[str, Any]
    query: Any
    body: Any


async def parse_input(request: Request) -> RequestInput:
    """Decode a Starlette request into a `RequestInput`.

    JSON bodies are decoded (an undecodable JSON body becomes `{}`), form bodies
    become a dict, anything else is kept as text. An empty body is `None`.
    """
    content_type = request.headers.get("content-type", "")
    body: Any
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        body = dict(form)
    else:
        raw = await request.body()
        if not raw:
            body = None
        elif content_type.startswith("application/json") or content_type.endswith("+json"):
            try:
                body = json.loads(raw)
            except ValueError:
                logger.debug("Ignoring undecodable JSON body for %s", request.url.path)
                body = {}
        else:
            body = raw.decode(errors="replace")
    return RequestInput(
        path=dict(request.path_params),
        query=dict(request.query_params),
        body=body,
    )


def normalize_schema(schema: Any) -> Any:
    """`[Model]` is shorthand for a list of `Model`"""
    if isinstance(schema, list):
        if len(schema) != 1:
            raise TypeError(f"List schemas must hold exactly one item type, got {schema!r}")
        return List[schema[0]]  # type: ignore[valid-type]
    return schema


@functools.lru_cache(maxsize=None)
def get_adapter(schema: Any) -> TypeAdapter[Any]:
    return TypeAdapter(schema)


def format_errors(exc: ValidationError, location: str) -> List[Dict[str, Any]]:
    return [
        {"loc": [location, *error["loc"]], "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]


def validate_input(request_input: RequestInput, query: Any = None, body: Any = None) -> RequestInput:
    """Check the query and body against their schemas, all errors reported at once"""
    errors: List[Dict[str, Any]] = []
    values = {"query": request_input.query, "body": request_input.body}
    for location, schema in (("query", query), ("body", body)):
        if schema is None:
            continue
        try:
            values[location] = get_adapter(schema).validate_python(values[location])
        except ValidationError as e:
            errors.extend(format_errors(e, location))
    if errors:
        raise InputShapeError(errors)
    return request_input._replace(**values)


def validate_output(payload: Any, schema: Optional[Any] = None) -> Any:
    """Validate and filter a handler's payload into JSON compatible data.

    Without a schema the payload is returned unchanged, except for
    pydantic models which are dumped.
    """
    if schema is None:
        if isinstance(payload, BaseModel):
            return payload.model_dump(mode="json")
        return payload
    adapter = get_adapter(schema)
    try:
        validated = adapter.validate_python(payload, from_attributes=True)
    except ValidationError as e:
        raise OutputShapeError(format_errors(e, "response")) from e
    return adapter.dump_python(validated, mode="json")
