"""Account deletion schemas."""

from datetime import datetime

from pydantic import Field

from app.schemas.users import CamelModel


class AccountDeletionCreate(CamelModel):
    """Request to delete the authenticated account."""

    password: str = Field(..., min_length=1, max_length=128)
    reason: str | None = Field(None, max_length=500)


class AccountDeletionConfirm(CamelModel):
    """Confirmation of a pending deletion request."""

    deletion_token: str = Field(..., min_length=1, max_length=36)


class AccountDeletionRequested(CamelModel):
    """Created deletion request."""

    deletion_token: str
    expires_at: datetime
    message: str = "Account deletion requested"
    message_bn: str = "অ্যাকাউন্ট মুছে ফেলার অনুরোধ করা হয়েছে"


class PendingDeletion(CamelModel):
    """Pending deletion request details."""

    deletion_token: str
    reason: str | None = None
    requested_at: datetime
    expires_at: datetime


class AccountDeletionStatus(CamelModel):
    """Deletion state of an account."""

    account_status: str
    deletion_requested_at: datetime | None = None
    deleted_at: datetime | None = None
    deletion_reason: str | None = None
    has_pending_deletion: bool = False
    pending_deletion_request: PendingDeletion | None = None
