"""
Webhook authentication primitives.

Three schemes are in use:

- Bearer tokens (RevenueCat, VAPI): ``Authorization: Bearer <secret>``.
- HMAC-SHA256 over the raw request body (RankPill), hex encoded, sent in
  ``x-rankpill-signature`` or as ``Authorization: sha256=<hex>``.
- Svix signatures (Clerk), verified by the svix SDK including the
  timestamp tolerance window.

Comparisons use ``hmac.compare_digest``.
"""

import hashlib
import hmac
from typing import Any, Mapping, Optional

from svix.webhooks import Webhook, WebhookVerificationError

RANKPILL_SIGNATURE_HEADER = "x-rankpill-signature"
_SHA256_PREFIX = "sha256="
_BEARER_PREFIX = "Bearer "


class SignatureVerificationError(Exception):
    """Raised when a webhook signature cannot be verified."""


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX):].strip()
    return token or None


def tokens_match(provided: Optional[str], expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def compute_hmac_sha256(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def extract_rankpill_signature(headers: Mapping[str, str]) -> Optional[str]:
    """Signature from the dedicated header, else from ``Authorization: sha256=<sig>``."""
    signature = headers.get(RANKPILL_SIGNATURE_HEADER)
    if signature:
        return signature.strip()
    authorization = headers.get("authorization")
    if authorization and authorization.startswith(_SHA256_PREFIX):
        return authorization[len(_SHA256_PREFIX):].strip() or None
    return None


def verify_hmac_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify a hex HMAC-SHA256 *signature* of the raw *body*."""
    if not signature or not secret:
        return False
    candidate = signature.strip()
    if candidate.startswith(_SHA256_PREFIX):
        candidate = candidate[len(_SHA256_PREFIX):]
    expected = compute_hmac_sha256(body, secret)
    return hmac.compare_digest(expected, candidate.lower())


def verify_svix_webhook(body: bytes, headers: Mapping[str, str], secret: str) -> Any:
    """Verify a Clerk (svix) delivery and return the decoded JSON payload.

    Raises SignatureVerificationError for any verification problem: missing
    svix headers, bad signature, or a timestamp outside the tolerance window.
    """
    try:
        return Webhook(secret).verify(body, dict(headers))
    except WebhookVerificationError as exc:
        raise SignatureVerificationError(str(exc)) from exc
    except ValueError as exc:
        # Malformed secret or undecodable payload
        raise SignatureVerificationError(str(exc)) from exc
