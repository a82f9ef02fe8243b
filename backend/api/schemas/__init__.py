"""
Webhook payload schemas and parsers.
"""

from .parsing import ParseFailure, ParseResult, ParseSuccess, parse_model

__all__ = [
    "ParseFailure",
    "ParseResult",
    "ParseSuccess",
    "parse_model",
]
