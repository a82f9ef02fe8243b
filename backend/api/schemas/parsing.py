"""
Tagged parse results shared by all provider payload parsers.

Parsers take an untrusted, already-decoded JSON value and return either
``ParseSuccess(data)`` or ``ParseFailure(error)``.  They never raise, so
they can be unit tested without building HTTP requests.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ParseSuccess(Generic[T]):
    data: T
    success: bool = True


@dataclass(frozen=True)
class ParseFailure:
    error: str
    success: bool = False


ParseResult = Union[ParseSuccess[T], ParseFailure]


def describe_validation_error(exc: ValidationError) -> str:
    """First validation problem as ``Invalid <field.path>: <reason>``."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {location}: {first.get('msg', 'invalid value')}"


def parse_model(model: type[M], payload: Any) -> "ParseResult[M]":
    """Validate *payload* against *model*; non-object payloads fail structurally."""
    if not isinstance(payload, dict):
        return ParseFailure("Invalid payload structure: expected a JSON object")
    try:
        return ParseSuccess(model.model_validate(payload))
    except ValidationError as exc:
        return ParseFailure(describe_validation_error(exc))
