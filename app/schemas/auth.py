"""Authentication schemas."""

from datetime import datetime

from pydantic import EmailStr, Field, field_validator, model_validator

from app.core.identifiers import normalize_phone
from app.schemas.users import CamelModel, UserSummary


class LoginRequest(CamelModel):
    """Login with email or phone."""

    identifier: str = Field(..., min_length=1, max_length=255, description="Email or phone")
    password: str = Field(..., min_length=1, max_length=128)
    remember_me: bool = False


class RegisterRequest(CamelModel):
    """Registration request; at least one of email or phone is required."""

    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Normalize phone numbers to E.164."""
        if v is None:
            return v
        normalized = normalize_phone(v)
        if normalized is None:
            raise ValueError("Invalid phone number format")
        return normalized

    @model_validator(mode="after")
    def require_identifier(self) -> "RegisterRequest":
        """Ensure the account can be looked up by at least one identifier."""
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        return self


class TokenRefresh(CamelModel):
    """Token refresh request schema."""

    refresh_token: str


class ChangePasswordRequest(CamelModel):
    """Password change request."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=72)


class LogoutRequest(CamelModel):
    """Logout request; the refresh token is revoked when supplied."""

    refresh_token: str | None = None
    all_devices: bool = False


class RememberMeTokenRequest(CamelModel):
    """Request carrying a remember-me token."""

    token: str = Field(..., min_length=1)


class DisableRememberMeRequest(CamelModel):
    """Disable remember-me on the current device or everywhere."""

    all_devices: bool = False


class LoginResponse(CamelModel):
    """Login response with tokens and user info."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    session_id: str
    session_expires_at: datetime
    remember_token: str | None = None
    remember_me: bool = False
    user: UserSummary


class RegisterResponse(CamelModel):
    """Registration response."""

    message: str = "User registered successfully"
    message_bn: str = "নিবন্ধন সফল হয়েছে"
    user: UserSummary


class RefreshResponse(CamelModel):
    """New access token issued from a refresh token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MessageResponse(CamelModel):
    """Plain message response."""

    message: str
    message_bn: str | None = None


class LogoutResponse(MessageResponse):
    """Logout result."""

    all_devices: bool = False
    destroyed_count: int = 0


class RememberMeValidationResponse(MessageResponse):
    """Result of checking a remember-me token."""

    token_valid: bool = True
    user: UserSummary
