"""User schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys, accepting either case on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    """User fields safe to return to clients."""

    id: UUID
    email: str | None = None
    phone: str | None = None
    first_name: str
    last_name: str
    role: str
    is_active: bool = True
    created_at: datetime | None = None


class SessionInfo(CamelModel):
    """Active session as listed to its owner."""

    id: UUID
    login_type: str
    remember_me: bool
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime | None = None
    last_activity_at: datetime | None = None
    expires_at: datetime
    is_current: bool = False
