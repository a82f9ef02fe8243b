"""
Security utilities for webhook authentication.
"""

from .webhook_signatures import (
    RANKPILL_SIGNATURE_HEADER,
    SignatureVerificationError,
    compute_hmac_sha256,
    extract_bearer_token,
    extract_rankpill_signature,
    tokens_match,
    verify_hmac_signature,
    verify_svix_webhook,
)

__all__ = [
    "RANKPILL_SIGNATURE_HEADER",
    "SignatureVerificationError",
    "compute_hmac_sha256",
    "extract_bearer_token",
    "extract_rankpill_signature",
    "tokens_match",
    "verify_hmac_signature",
    "verify_svix_webhook",
]
