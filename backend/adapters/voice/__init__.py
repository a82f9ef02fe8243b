"""Voice assistant configuration for VAPI."""

from .vapi_assistant import build_assistant, webhook_url_for

__all__ = [
    "build_assistant",
    "webhook_url_for",
]
