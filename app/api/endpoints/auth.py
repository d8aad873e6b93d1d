"""Authentication endpoints."""

from fastapi import APIRouter, Depends, Response, status

from app.config import settings
from app.dependencies import (
    SESSION_COOKIE_NAME,
    AuthServiceDep,
    CurrentPrincipal,
    CurrentUser,
    DatabaseSession,
    DeviceContextDep,
    enforce_rate_limit,
)
from app.schemas.auth import (
    ChangePasswordRequest,
    DisableRememberMeRequest,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    RememberMeTokenRequest,
    RememberMeValidationResponse,
    TokenRefresh,
)
from app.schemas.users import SessionInfo, UserSummary
from app.services.auth_service import user_summary

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


def _set_session_cookie(response: Response, result: dict) -> None:
    """Attach the opaque session token as an httponly cookie."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        result["session_token"],
        max_age=(
            settings.remember_me_session_days * 86400
            if result["remember_me"]
            else settings.session_expire_hours * 3600
        ),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Login with email or phone",
)
async def login(
    request: LoginRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    device: DeviceContextDep,
) -> dict:
    """
    Authenticate with an email or phone number and a password.

    Args:
        request: Identifier, password and remember-me flag
        response: Response used to set the session cookie
        db: Database session
        auth_service: Auth service
        device: Client details for the new session

    Returns:
        Access and refresh tokens, session details and user summary
    """
    result = await auth_service.login(
        db,
        request.identifier,
        request.password,
        remember_me=request.remember_me,
        device=device,
    )
    _set_session_cookie(response, result)
    return result


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Register a new customer",
)
async def register(
    request: RegisterRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> RegisterResponse:
    """Create a customer account identified by email and/or phone."""
    user = await auth_service.register(db, request)
    return RegisterResponse(user=UserSummary.model_validate(user_summary(user)))


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> dict:
    """
    Issue a new access token from a refresh token.

    Raises:
        UnauthorizedException: If the refresh token is invalid, revoked or its session ended
    """
    return await auth_service.refresh_token(db, request.refresh_token)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Change password",
)
async def change_password(
    request: ChangePasswordRequest,
    principal: CurrentPrincipal,
    current_user: CurrentUser,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> dict:
    """Change the password; other sessions of the user are logged out."""
    return await auth_service.change_password(
        db,
        current_user["id"],
        request.current_password,
        request.new_password,
        current_session_id=principal.session_id,
    )


@router.get(
    "/profile",
    response_model=UserSummary,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Get current user profile",
)
async def get_profile(current_user: CurrentUser, auth_service: AuthServiceDep) -> dict:
    """Profile of the authenticated user."""
    return auth_service.get_profile(current_user)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Logout and revoke tokens",
)
async def logout(
    response: Response,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    request: LogoutRequest | None = None,
) -> dict:
    """
    End the current session, or every session when ``allDevices`` is set.

    A refresh token in the body is revoked until it would have expired.
    """
    request = request or LogoutRequest()
    result = await auth_service.logout(
        db,
        principal.user_id,
        principal.session_id,
        refresh_token=request.refresh_token,
        all_devices=request.all_devices,
    )
    response.delete_cookie(SESSION_COOKIE_NAME)
    return result


@router.get(
    "/sessions",
    response_model=list[SessionInfo],
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="List active sessions",
)
async def list_sessions(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> list[dict]:
    """Active sessions of the authenticated user."""
    return await auth_service.list_sessions(
        db, principal.user_id, current_session_id=principal.session_id
    )


@router.post(
    "/validate-remember-me",
    response_model=RememberMeValidationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Check a remember-me token",
)
async def validate_remember_me(
    request: RememberMeTokenRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> dict:
    """Check a remember-me token without using it up."""
    return await auth_service.validate_remember_me(db, request.token)


@router.post(
    "/refresh-from-remember-me",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Restore a session from a remember-me token",
)
async def refresh_from_remember_me(
    request: RememberMeTokenRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    device: DeviceContextDep,
) -> dict:
    """
    Open a new session from a remember-me token.

    The presented token is consumed and a replacement is returned in
    ``rememberToken``.

    Raises:
        BadRequestException: If the token is invalid, expired or from another device
    """
    result = await auth_service.refresh_from_remember_me(db, request.token, device)
    _set_session_cookie(response, result)
    return result


@router.post(
    "/disable-remember-me",
    response_model=LogoutResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Disable remember-me",
)
async def disable_remember_me(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    device: DeviceContextDep,
    request: DisableRememberMeRequest | None = None,
) -> dict:
    """Revoke remember-me tokens for this device, or for every device."""
    request = request or DisableRememberMeRequest()
    return await auth_service.disable_remember_me(
        db,
        principal.user_id,
        device,
        session_id=principal.session_id,
        all_devices=request.all_devices,
    )
