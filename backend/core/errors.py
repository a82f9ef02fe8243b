"""
Classification of free-text provider error messages.

Some providers only return human-readable error strings.  All substring
matching against those strings lives here so there is exactly one place to
update when a provider changes its wording.  Anything unrecognised falls into
``GENERIC_ERROR``.
"""

from enum import Enum
from typing import Optional


class ProviderErrorKind(str, Enum):
    ALREADY_SIGNED_IN = "already_signed_in"
    IDENTIFIER_TAKEN = "identifier_taken"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    GENERIC_ERROR = "generic_error"


# Checked in order; first match wins
_ERROR_PATTERNS: list[tuple[tuple[str, ...], ProviderErrorKind]] = [
    (("already signed in",), ProviderErrorKind.ALREADY_SIGNED_IN),
    (("claimed by another user", "already exists", "already in use"), ProviderErrorKind.IDENTIFIER_TAKEN),
    (("rate limit", "too many requests", "429"), ProviderErrorKind.RATE_LIMITED),
    (("network", "timeout", "timed out", "connection"), ProviderErrorKind.NETWORK_ERROR),
]


def classify_provider_error(message: Optional[str]) -> ProviderErrorKind:
    """Map a provider error message to a ProviderErrorKind."""
    if not message:
        return ProviderErrorKind.GENERIC_ERROR
    lowered = message.lower()
    for needles, kind in _ERROR_PATTERNS:
        if any(needle in lowered for needle in needles):
            return kind
    return ProviderErrorKind.GENERIC_ERROR
