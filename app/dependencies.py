"""FastAPI dependencies."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import redis
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.core.exceptions import RateLimitException, UnauthorizedException
from app.core.redis_client import (
    CacheManager,
    LoginAttemptTracker,
    RateLimiter,
    get_redis_client,
)
from app.core.security import ACCESS_TOKEN_TYPE, TokenIssuer
from app.database import execute_with_retry, get_db
from app.services.account_deletion_service import AccountDeletionService
from app.services.auth_service import AuthService
from app.services.session_service import DeviceContext, SessionService
from app.services.user_service import UserService, sanitize_user

logger = structlog.get_logger()

# Name of the cookie carrying the opaque session token
SESSION_COOKIE_NAME = "session_token"

# Security
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Identity of the caller resolved from a bearer token or session cookie."""

    user_id: UUID
    session_id: UUID | None = None


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
RedisClient = Annotated[redis.Redis, Depends(get_redis_client)]


def get_token_issuer(config: SettingsDep) -> TokenIssuer:
    """Token issuer bound to the current settings."""
    return TokenIssuer(config)


def get_session_service(config: SettingsDep) -> SessionService:
    """Session service bound to the current settings."""
    return SessionService(config)


def get_auth_service(
    config: SettingsDep,
    redis_client: RedisClient,
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AuthService:
    """Build the auth service with its Redis-backed helpers."""
    return AuthService(
        config,
        token_issuer,
        CacheManager(redis_client),
        LoginAttemptTracker(
            redis_client,
            max_attempts=config.max_login_attempts,
            window=config.login_attempt_window_seconds,
            lockout=config.account_lockout_seconds,
        ),
    )


def get_account_deletion_service(config: SettingsDep) -> AccountDeletionService:
    """Build the account deletion service."""
    return AccountDeletionService(config)


def get_device_context(request: Request) -> DeviceContext:
    """Capture the client details used for session fingerprinting."""
    return DeviceContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", ""),
        accept_language=request.headers.get("accept-language", ""),
        accept_encoding=request.headers.get("accept-encoding", ""),
    )


async def enforce_rate_limit(
    request: Request,
    config: SettingsDep,
    redis_client: RedisClient,
) -> None:
    """
    Limit requests per client IP.

    Raises:
        RateLimitException: If the client exceeded the window's quota
    """
    client_ip = request.client.host if request.client else "unknown"
    limiter = RateLimiter(redis_client)

    allowed = limiter.check_rate_limit(
        f"rate_limit:auth:{client_ip}",
        limit=config.rate_limit_max,
        window=config.rate_limit_window_seconds,
    )
    if not allowed:
        logger.warning("rate_limit_exceeded", client=client_ip, path=request.url.path)
        raise RateLimitException(
            "Too many requests, please try again later",
            message_bn="অনেক বেশি অনুরোধ, পরে আবার চেষ্টা করুন",
        )


def _parse_uuid(value: object) -> UUID | None:
    if not isinstance(value, str):
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


async def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DatabaseSession,
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> Principal:
    """
    Resolve the caller from a bearer access token or the session cookie.

    A bearer token that names a session (``sid``) is only accepted while that
    session exists, so logout ends access immediately.

    Args:
        request: Incoming request (for the session cookie)
        credentials: Bearer token credentials, if any
        db: Database session
        token_issuer: Verifier for access tokens
        session_service: Session store

    Returns:
        Authenticated principal

    Raises:
        UnauthorizedException: If no valid credential was presented
    """
    if credentials is not None:
        payload = token_issuer.verify(credentials.credentials, expected_type=ACCESS_TOKEN_TYPE)
        user_id = _parse_uuid(payload["sub"])
        if user_id is None:
            raise UnauthorizedException("Invalid user ID format", message_bn="টোকেন অবৈধ")

        session_id = _parse_uuid(payload.get("sid"))
        if session_id is not None and await session_service.get_session(db, session_id) is None:
            raise UnauthorizedException(
                "Session has ended, please log in again",
                message_bn="সেশন শেষ হয়েছে, আবার লগইন করুন",
            )
        return Principal(user_id=user_id, session_id=session_id)

    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if session_token:
        session = await session_service.validate_session_token(db, session_token)
        if session is not None:
            return Principal(user_id=session["user_id"], session_id=session["id"])

    raise UnauthorizedException(
        "Authentication required",
        message_bn="প্রমাণীকরণ প্রয়োজন",
    )


async def get_current_user(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: DatabaseSession,
) -> dict:
    """
    Get current user from database.

    Raises:
        UnauthorizedException: If the user no longer exists or is deactivated
    """
    user_service = UserService()
    user = await execute_with_retry(lambda: user_service.get_user_by_id(db, principal.user_id))

    if not user:
        raise UnauthorizedException("User not found", message_bn="ব্যবহারকারী পাওয়া যায়নি")

    if not user["is_active"]:
        raise UnauthorizedException(
            "Account is deactivated",
            message_bn="অ্যাকাউন্ট নিষ্ক্রিয় করা হয়েছে",
        )

    return sanitize_user(user)


async def get_active_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
    current_user: Annotated[dict, Depends(get_current_user)],
) -> Principal:
    """Caller's principal, only once the account is known to exist and be active."""
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_active_principal)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AccountDeletionServiceDep = Annotated[
    AccountDeletionService, Depends(get_account_deletion_service)
]
DeviceContextDep = Annotated[DeviceContext, Depends(get_device_context)]
