#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""General utilities for helping to serve pxepilot requests."""
import logging
import typing as t

import orjson
from flask import make_response
from flask.wrappers import Request, Response
from pydantic import BaseModel, ValidationError

from pxepilot.errors import FailureReason, HostError

# Status returned for a failed single-host power operation
HOST_ERROR_STATUS: t.Dict[FailureReason, int] = {
    FailureReason.host_unknown: 404,
    FailureReason.no_management_endpoint: 409,
    FailureReason.backend_timeout: 504,
    FailureReason.backend_refused: 502,
    FailureReason.backend_protocol_error: 502,
    FailureReason.config_write_failed: 500,
    FailureReason.unexpected: 500,
}

_M = t.TypeVar("_M", bound=BaseModel)


def repr_request(req: Request) -> str:
    """
    Get string representation of the given request.

    Can be used for logging a request in case an error occurs.

    Parameters
    ----------
    req: Request
        Flask request instance to log information about

    Returns
    -------
    str
    """

    return f"{req.method} {req.full_path} from {req.remote_addr}"


def json_response(data: t.Any, status: int = 200) -> Response:
    """Create a response with the given data serialized as json."""

    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json")
            if isinstance(item, BaseModel)
            else item
            for item in data
        ]
    resp = make_response(orjson.dumps(data), status)
    resp.headers["Content-Type"] = "application/json"
    return resp


def empty_response(status: int = 204) -> Response:
    """Create a response without a body."""

    return make_response("", status)


def error_response(message: str, status: int) -> Response:
    """Create a json response describing an error."""

    return json_response({"message": message}, status)


def host_error_response(err: HostError) -> Response:
    """Map the given per-host error onto a response."""

    return json_response(
        {
            "name": err.host,
            "reason": err.reason.value,
            "message": err.message or err.reason.value,
        },
        HOST_ERROR_STATUS[err.reason],
    )


def parse_body(
    req: Request, model: t.Type[_M], logger: logging.Logger
) -> t.Tuple[t.Optional[_M], t.Optional[Response]]:
    """
    Parse the json body of the request into the given model.

    Returns
    -------
    tuple
        First item is the parsed model, if the body is valid, else None.
        Second item is a 400 response to send back to the client if
        the body is not valid.
    """

    try:
        return model.model_validate_json(req.get_data()), None
    except ValidationError as err:
        logger.warning(
            "Unable to parse body of request %s: %s", repr_request(req), err
        )
        return None, error_response(f"Invalid request body: {err}", 400)
