"""Normalization of Place Details responses.

Google APIs answer HTTP 200 even when the request failed, putting the real
outcome in the body's ``status`` / ``error_message`` fields. This module
folds both failure channels into the typed errors of
:mod:`places_proxy.models.errors`.
"""

import json
import logging
from typing import Any

import httpx

from places_proxy.models import (
    UpstreamLogicalError,
    UpstreamParseError,
    UpstreamTransportError,
)

logger = logging.getLogger(__name__)

# Embedded status token -> HTTP-style code. Unknown tokens map to 500.
STATUS_CODES: dict[str, int] = {
    "OK": 200,
    "ZERO_RESULTS": 204,
    "NOT_MODIFIED": 304,
    "INVALID_REQUEST": 400,
    "INVALID_ARGUMENT": 400,
    "NOT_AUTHORIZED": 401,
    "REQUEST_DENIED": 403,
    "PERMISSION_DENIED": 403,
    "NOT_FOUND": 404,
    "NOT_ALLOWED": 405,
    "NOT_ACCEPTABLE": 406,
    "TIMEOUT": 408,
    "CONFLICT": 409,
    "GONE": 410,
    "PRECONDITION_FAILED": 412,
    "UNSUPPORTED_MEDIA_TYPE": 415,
    "INVALID_VALUE": 422,
    "UNPROCESSABLE_ENTITY": 422,
    "OVER_QUERY_LIMIT": 429,
    "RATE_LIMIT_EXCEEDED": 429,
    "USER_RATE_LIMIT_EXCEEDED": 429,
    "UNKNOWN_ERROR": 500,
    "NOT_SUPPORTED": 501,
    "NOT_IMPLEMENTED": 501,
    "SERVICE_NOT_AVAILABLE": 503,
}


def status_to_code(status: str) -> int:
    return STATUS_CODES.get(status, 500)


def normalize_places_response(response: httpx.Response) -> dict[str, Any]:
    """Extract the place record from a Place Details response.

    Args:
        response: Raw upstream response.

    Returns:
        The ``result`` object of the body.

    Raises:
        UpstreamTransportError: Non-2xx HTTP status.
        UpstreamParseError: 2xx with a body that is not a JSON object with
            a ``result`` object.
        UpstreamLogicalError: 2xx with an embedded failure status.
    """
    if not response.is_success:
        raise UpstreamTransportError(
            code=response.status_code,
            message=response.text,
            status=response.reason_phrase or "UPSTREAM_ERROR",
        )

    try:
        body = json.loads(response.content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise UpstreamParseError(
            code=response.status_code,
            message=f"Error parsing response: {e}",
        ) from e

    if not isinstance(body, dict):
        raise UpstreamParseError(
            code=response.status_code,
            message="Error parsing response: expected a JSON object",
        )

    status = body.get("status")
    error_message = body.get("error_message")
    if error_message or (status is not None and status != "OK"):
        status = str(status or "UNKNOWN_ERROR")
        raise UpstreamLogicalError(
            code=status_to_code(status),
            message=error_message or f"API returned status: {status}",
            status=status,
        )

    result = body.get("result")
    if not isinstance(result, dict):
        raise UpstreamParseError(
            code=response.status_code,
            message="Error parsing response: no result object in body",
        )
    return result
