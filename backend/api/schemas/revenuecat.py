"""
RevenueCat webhook payload schemas.
"""

import math
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .parsing import ParseResult, parse_model


class RevenueCatEventType(StrEnum):
    INITIAL_PURCHASE = "INITIAL_PURCHASE"
    RENEWAL = "RENEWAL"
    CANCELLATION = "CANCELLATION"
    UNCANCELLATION = "UNCANCELLATION"
    NON_RENEWING_PURCHASE = "NON_RENEWING_PURCHASE"
    SUBSCRIPTION_PAUSED = "SUBSCRIPTION_PAUSED"
    EXPIRATION = "EXPIRATION"
    BILLING_ISSUE = "BILLING_ISSUE"
    PRODUCT_CHANGE = "PRODUCT_CHANGE"
    TRANSFER = "TRANSFER"
    SUBSCRIPTION_EXTENDED = "SUBSCRIPTION_EXTENDED"
    SUBSCRIPTION_EXTENSION_REVOKED = "SUBSCRIPTION_EXTENSION_REVOKED"
    SUBSCRIPTION_UNPAUSED = "SUBSCRIPTION_UNPAUSED"
    SUBSCRIPTION_RESUMED = "SUBSCRIPTION_RESUMED"
    SUBSCRIPTION_REFUNDED = "SUBSCRIPTION_REFUNDED"
    TEST = "TEST"
    RECONCILIATION = "RECONCILIATION"


def ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


class RevenueCatEvent(BaseModel):
    """The ``event`` object of a RevenueCat delivery."""

    model_config = ConfigDict(extra="allow")

    type: RevenueCatEventType
    app_user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    new_product_id: Optional[str] = None
    store: Optional[str] = None
    environment: Optional[Literal["SANDBOX", "PRODUCTION"]] = None
    expiration_at_ms: Optional[int] = None
    purchased_at_ms: Optional[int] = None
    is_trial_conversion: Optional[bool] = None
    entitlement_ids: Optional[list[str]] = None
    entitlements: Optional[dict[str, Any]] = None

    @field_validator("expiration_at_ms", "purchased_at_ms", mode="before")
    @classmethod
    def coerce_millis(cls, v: Union[int, float, str, None]) -> Optional[int]:
        """Timestamps arrive as numbers or numeric strings."""
        if v is None:
            return None
        if isinstance(v, str):
            stripped = v.strip()
            if not stripped.lstrip("-").isdigit():
                raise ValueError("timestamp must be milliseconds since epoch")
            v = int(stripped)
        elif isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError("timestamp must be a finite number")
            v = int(v)
        if isinstance(v, int) and not isinstance(v, bool):
            try:
                ms_to_datetime(v)
            except (OverflowError, OSError, ValueError):
                raise ValueError("timestamp is out of range") from None
        return v

    @property
    def effective_product_id(self) -> str:
        """PRODUCT_CHANGE events carry the product being switched to in new_product_id."""
        if self.type == RevenueCatEventType.PRODUCT_CHANGE and self.new_product_id:
            return self.new_product_id
        return self.product_id

    @property
    def resolved_entitlement_ids(self) -> list[str]:
        if self.entitlement_ids:
            return list(self.entitlement_ids)
        if self.entitlements:
            return list(self.entitlements.keys())
        return []

    @property
    def expires_at(self) -> Optional[datetime]:
        return ms_to_datetime(self.expiration_at_ms)

    @property
    def purchased_at(self) -> Optional[datetime]:
        return ms_to_datetime(self.purchased_at_ms)


class RevenueCatWebhook(BaseModel):
    model_config = ConfigDict(extra="allow")

    api_version: Optional[str] = None
    event: RevenueCatEvent


def parse_revenuecat_webhook(payload: Any) -> ParseResult[RevenueCatWebhook]:
    return parse_model(RevenueCatWebhook, payload)


def sanitize_raw_event(value: Any) -> Any:
    """Drop provider-internal keys (``$``/``_`` prefixed) before storing an event."""
    if isinstance(value, dict):
        return {
            key: sanitize_raw_event(item)
            for key, item in value.items()
            if not (isinstance(key, str) and key.startswith(("$", "_")))
        }
    if isinstance(value, list):
        return [sanitize_raw_event(item) for item in value]
    return value
