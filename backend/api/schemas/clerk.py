"""
Clerk webhook payload schemas.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .parsing import ParseResult, parse_model

USER_CREATED = "user.created"


class ClerkEmailAddress(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email_address: str


class ClerkUserData(BaseModel):
    """``data`` object of a ``user.created`` event."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    primary_email_address_id: Optional[str] = None
    email_addresses: list[ClerkEmailAddress] = Field(default_factory=list)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def primary_email(self) -> Optional[str]:
        """Email whose id matches primary_email_address_id, else the first listed one."""
        if self.primary_email_address_id:
            for address in self.email_addresses:
                if address.id == self.primary_email_address_id:
                    return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return None

    @property
    def display_name(self) -> Optional[str]:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or None


class ClerkWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    data: dict[str, Any]


def parse_clerk_event(payload: Any) -> ParseResult[ClerkWebhookEvent]:
    return parse_model(ClerkWebhookEvent, payload)


def parse_clerk_user(data: Any) -> ParseResult[ClerkUserData]:
    return parse_model(ClerkUserData, data)
