"""
Shared HTTP helpers for webhook handlers.

Handlers compose these in a fixed order: method check, authentication,
body parsing.  Each check returns ``None`` when the request may proceed, or
a ready ``JSONResponse`` that the handler returns as-is.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from core.security import extract_bearer_token, tokens_match

_RECORD_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_REDACTED_HEADERS = frozenset({"authorization", "cookie", "x-rankpill-signature", "svix-signature"})


@dataclass
class JsonBody:
    """Result of parsing a request body: ``data`` on success, ``error`` response otherwise."""

    data: Any = None
    error: Optional[JSONResponse] = None


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def success_response(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=data if data is not None else {"status": "ok"},
    )


def validate_http_method(request: Request, expected: str = "POST") -> Optional[JSONResponse]:
    """405 when the request method is not *expected*."""
    if request.method.upper() != expected.upper():
        return error_response("Method Not Allowed", status.HTTP_405_METHOD_NOT_ALLOWED)
    return None


def parse_json_body(body: bytes, error_message: str = "Invalid JSON") -> JsonBody:
    """Decode an already-read request body; 400 on malformed JSON."""
    try:
        return JsonBody(data=json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JsonBody(error=error_response(error_message, status.HTTP_400_BAD_REQUEST))


def verify_bearer_token(request: Request, expected_secret: Optional[str]) -> Optional[JSONResponse]:
    """Check ``Authorization: Bearer <token>`` against a server-side secret.

    A missing server secret is a deployment problem, reported as 500 rather
    than telling the caller it is unauthorized.
    """
    if not expected_secret:
        return error_response("Server configuration error", status.HTTP_500_INTERNAL_SERVER_ERROR)
    token = extract_bearer_token(request.headers.get("authorization"))
    if not tokens_match(token, expected_secret):
        return error_response("Unauthorized", status.HTTP_401_UNAUTHORIZED)
    return None


def is_valid_record_id(value: Any) -> bool:
    """Whether *value* looks like an internal record id."""
    return isinstance(value, str) and bool(_RECORD_ID_RE.match(value))


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of request headers safe to log."""
    return {
        key: ("[REDACTED]" if key.lower() in _REDACTED_HEADERS else value)
        for key, value in headers.items()
    }

