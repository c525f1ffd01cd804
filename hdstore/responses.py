"""
Response serialization for hdstore

Every outcome is returned with HTTP 200; clients inspect the ``success``
field of the envelope rather than the status code.
"""

import json
from typing import Any, Dict, Union

from fastapi.responses import Response

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


def encode_json(data: Any) -> bytes:
    """Compact JSON matching the byte layout of the legacy backend"""
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def emit(value: Union[Dict[str, Any], bytes, str], media_type: str = "application/json") -> Response:
    """Wrap a structured object as JSON, or pass raw content through unchanged"""
    if isinstance(value, dict):
        body = encode_json(value)
    elif isinstance(value, str):
        body = value.encode("utf-8")
    else:
        body = bytes(value)
    return Response(content=body, media_type=media_type, headers=dict(CORS_HEADERS))


def success() -> Response:
    return emit({"success": True})


def failure(message: str) -> Response:
    return emit({"success": False, "error": message})


def boolean_text(flag: bool) -> Response:
    """Literal ``true``/``false`` body used by the exists operation"""
    return emit("true" if flag else "false", media_type="text/plain")


def empty() -> Response:
    """Response for requests without a recognised action"""
    return Response(content=b"", headers=dict(CORS_HEADERS))
