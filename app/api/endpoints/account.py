"""Account deletion endpoints."""

from fastapi import APIRouter, status

from app.dependencies import AccountDeletionServiceDep, CurrentUser, DatabaseSession
from app.schemas.account import (
    AccountDeletionConfirm,
    AccountDeletionCreate,
    AccountDeletionRequested,
    AccountDeletionStatus,
)
from app.schemas.auth import MessageResponse

router = APIRouter(prefix="/account/deletion")


@router.get(
    "",
    response_model=AccountDeletionStatus,
    status_code=status.HTTP_200_OK,
    tags=["Account"],
    summary="Get account deletion status",
)
async def get_deletion_status(
    current_user: CurrentUser,
    db: DatabaseSession,
    deletion_service: AccountDeletionServiceDep,
) -> dict:
    """Deletion state of the authenticated account."""
    return await deletion_service.get_deletion_status(db, current_user["id"])


@router.post(
    "",
    response_model=AccountDeletionRequested,
    status_code=status.HTTP_201_CREATED,
    tags=["Account"],
    summary="Request account deletion",
)
async def request_deletion(
    request: AccountDeletionCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    deletion_service: AccountDeletionServiceDep,
) -> dict:
    """
    Start deleting the authenticated account.

    The returned token must be sent to the confirm endpoint before it expires.

    Raises:
        UnauthorizedException: If the password is wrong
        ConflictException: If a deletion request is already pending
    """
    return await deletion_service.request_deletion(
        db, current_user["id"], request.password, reason=request.reason
    )


@router.post(
    "/confirm",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    tags=["Account"],
    summary="Confirm account deletion",
)
async def confirm_deletion(
    request: AccountDeletionConfirm,
    current_user: CurrentUser,
    db: DatabaseSession,
    deletion_service: AccountDeletionServiceDep,
) -> dict:
    """Confirm a pending deletion; the account is deactivated and logged out."""
    return await deletion_service.confirm_deletion(
        db, current_user["id"], request.deletion_token
    )


@router.post(
    "/cancel",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    tags=["Account"],
    summary="Cancel account deletion",
)
async def cancel_deletion(
    current_user: CurrentUser,
    db: DatabaseSession,
    deletion_service: AccountDeletionServiceDep,
) -> dict:
    """Cancel the pending deletion request."""
    return await deletion_service.cancel_deletion(db, current_user["id"])
