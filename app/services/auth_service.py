"""Authentication service for credential checks, tokens and sessions."""

from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.exceptions import (
    BadRequestException,
    NotFoundException,
    RateLimitException,
    UnauthorizedException,
)
from app.core.identifiers import is_email, normalize_email, normalize_identifier
from app.core.redis_client import CacheManager, LoginAttemptTracker
from app.core.security import (
    REFRESH_TOKEN_TYPE,
    TokenIssuer,
    dummy_verify_password,
    fingerprint_identifier,
    get_password_hash,
    verify_password,
)
from app.core.utils import utcnow
from app.schemas.auth import RegisterRequest
from app.services.session_service import DeviceContext, SessionService
from app.services.user_service import UserService, sanitize_user

logger = structlog.get_logger()


def user_summary(user: dict) -> dict:
    """Fields of a user that are returned by auth endpoints."""
    return {
        "id": user["id"],
        "email": user["email"],
        "phone": user["phone"],
        "first_name": user["first_name"],
        "last_name": user["last_name"],
        "role": user["role"],
        "is_active": user["is_active"],
        "created_at": user["created_at"],
    }


class AuthService:
    """Authentication service for login, registration and token lifecycle."""

    def __init__(
        self,
        config: Settings,
        token_issuer: TokenIssuer,
        cache_manager: CacheManager,
        login_attempts: LoginAttemptTracker,
        user_service: UserService | None = None,
        session_service: SessionService | None = None,
    ):
        """Initialize auth service with its collaborators."""
        self.config = config
        self.tokens = token_issuer
        self.cache = cache_manager
        self.login_attempts = login_attempts
        self.users = user_service or UserService()
        self.sessions = session_service or SessionService(config)

    @staticmethod
    def _blacklist_key(jti: str) -> str:
        return f"blacklist:{jti}"

    async def validate_user(self, db: AsyncSession, identifier: str, password: str) -> dict | None:
        """
        Check an identifier/password pair.

        The same log event is emitted whether the identifier or the password
        was wrong, and only a fingerprint of the identifier is logged.

        Args:
            db: Database session
            identifier: Email or phone number
            password: Plain text password

        Returns:
            Sanitized user on success, None otherwise
        """
        identifier_type, user = await self.users.get_user_by_identifier(db, identifier)

        if user is None:
            dummy_verify_password(self.config.bcrypt_rounds)
            valid = False
        else:
            valid = verify_password(password, user["password_hash"], self.config.bcrypt_rounds)

        if not valid:
            logger.warning(
                "login_validation_failed",
                identifier_type=identifier_type,
                identifier_fingerprint=fingerprint_identifier(identifier),
            )
            return None

        return sanitize_user(user)

    def _token_claims(self, user: dict, session_id: UUID) -> dict:
        return {
            "sub": str(user["id"]),
            "email": user["email"],
            "role": user["role"],
            "sid": str(session_id),
        }

    async def _open_session(
        self,
        db: AsyncSession,
        user: dict,
        device: DeviceContext,
        login_type: str,
        remember_me: bool,
    ) -> dict:
        """Create session, tokens and (optionally) a remember-me token."""
        session_token, session = await self.sessions.create_session(
            db, user["id"], device, login_type=login_type, remember_me=remember_me
        )

        claims = self._token_claims(user, session["id"])
        result = {
            "access_token": self.tokens.create_access_token(claims),
            "refresh_token": self.tokens.create_refresh_token(claims),
            "token_type": "bearer",
            "expires_in": int(self.tokens.access_token_ttl.total_seconds()),
            "session_id": str(session["id"]),
            "session_token": session_token,
            "session_expires_at": session["expires_at"],
            "remember_me": remember_me,
            "remember_token": None,
            "user": user_summary(user),
        }

        if remember_me:
            remember_token, _ = await self.sessions.create_remember_token(db, user["id"], device)
            result["remember_token"] = remember_token

        return result

    async def login(
        self,
        db: AsyncSession,
        identifier: str,
        password: str,
        remember_me: bool = False,
        device: DeviceContext | None = None,
    ) -> dict:
        """
        Authenticate a user and open a session.

        Raises:
            RateLimitException: If the identifier is locked out
            UnauthorizedException: If credentials are invalid or the account is inactive
        """
        # Every spelling of the same email or phone shares one lockout counter
        attempt_key = normalize_identifier(identifier)[1] or identifier.strip()
        if self.login_attempts.is_locked(attempt_key):
            raise RateLimitException(
                "Too many failed login attempts. Please try again later.",
                message_bn="অনেকবার ব্যর্থ লগইন প্রচেষ্টা। পরে আবার চেষ্টা করুন।",
            )

        user = await self.validate_user(db, identifier, password)
        if user is None:
            self.login_attempts.record_failure(attempt_key)
            raise UnauthorizedException(
                "Invalid credentials",
                message_bn="অবৈধ লগইন তথ্য",
            )

        if not user["is_active"]:
            raise UnauthorizedException(
                "Account is deactivated",
                message_bn="অ্যাকাউন্ট নিষ্ক্রিয় করা হয়েছে",
            )

        self.login_attempts.reset(attempt_key)

        login_type = "email" if is_email(identifier) else "phone"
        result = await self._open_session(
            db, user, device or DeviceContext(), login_type, remember_me
        )
        await self.users.update_last_login(db, user["id"])

        logger.info("user_logged_in", user_id=str(user["id"]), login_type=login_type)
        return result

    async def register(self, db: AsyncSession, data: RegisterRequest) -> dict:
        """
        Register a new customer account.

        Raises:
            BadRequestException: If the email or phone is already registered
        """
        email = normalize_email(data.email) if data.email else None

        if email and await self.users.get_user_by_email(db, email):
            raise BadRequestException(
                "User with this email already exists",
                message_bn="এই ইমেল দিয়ে ইতিমধ্যে অ্যাকাউন্ট আছে",
            )

        if data.phone and await self.users.get_user_by_phone(db, data.phone):
            raise BadRequestException(
                "User with this phone already exists",
                message_bn="এই ফোন নম্বর দিয়ে ইতিমধ্যে অ্যাকাউন্ট আছে",
            )

        try:
            user = await self.users.create_user(
                db,
                email=email,
                phone=data.phone,
                password_hash=get_password_hash(data.password, self.config.bcrypt_rounds),
                first_name=data.first_name,
                last_name=data.last_name,
                role="CUSTOMER",
            )
        except IntegrityError:
            # Lost a race with a concurrent registration of the same identifier
            await db.rollback()
            raise BadRequestException(
                "User with this email or phone already exists",
                message_bn="এই তথ্য দিয়ে ইতিমধ্যে অ্যাকাউন্ট আছে",
            )

        logger.info("user_registered", user_id=str(user["id"]))
        return sanitize_user(user)

    async def refresh_token(self, db: AsyncSession, refresh_token: str) -> dict:
        """
        Issue a new access token from a refresh token.

        The refresh token itself is not rotated. It stops working once it is
        revoked at logout or its session is destroyed.

        Raises:
            UnauthorizedException: On any verification failure
        """
        invalid = UnauthorizedException(
            "Invalid refresh token",
            message_bn="রিফ্রেশ টোকেন অবৈধ বা মেয়াদোত্তীর্ণ",
        )

        try:
            payload = self.tokens.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
            user_id = UUID(payload["sub"])
            session_id = UUID(payload["sid"]) if payload.get("sid") else None
        except (UnauthorizedException, ValueError) as e:
            logger.info("token_refresh_rejected", reason=str(e))
            raise invalid

        if self.cache.exists(self._blacklist_key(payload.get("jti", ""))):
            logger.info("token_refresh_rejected", reason="revoked")
            raise invalid

        user = await self.users.get_user_by_id(db, user_id)
        if not user or not user["is_active"]:
            logger.info("token_refresh_rejected", reason="inactive_user")
            raise invalid

        if session_id is not None and await self.sessions.get_session(db, session_id) is None:
            logger.info("token_refresh_rejected", reason="session_ended")
            raise invalid

        claims = {"sub": str(user["id"]), "email": user["email"], "role": user["role"]}
        if session_id is not None:
            claims["sid"] = str(session_id)

        logger.info("token_refreshed", user_id=str(user_id))
        return {
            "access_token": self.tokens.create_access_token(claims),
            "token_type": "bearer",
            "expires_in": int(self.tokens.access_token_ttl.total_seconds()),
        }

    def revoke_refresh_token(self, refresh_token: str, user_id: UUID) -> bool:
        """
        Blacklist a refresh token until it would have expired.

        Returns:
            True if the token belonged to the user and was revoked
        """
        try:
            payload = self.tokens.verify(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except UnauthorizedException:
            return False

        if payload["sub"] != str(user_id) or "jti" not in payload:
            return False

        ttl = int(payload["exp"] - utcnow().timestamp())
        if ttl <= 0:
            return False

        return self.cache.set(self._blacklist_key(payload["jti"]), "1", ttl=ttl)

    async def change_password(
        self,
        db: AsyncSession,
        user_id: UUID,
        current_password: str,
        new_password: str,
        current_session_id: UUID | None = None,
    ) -> dict:
        """
        Change a user's password.

        Every other session and all remember-me tokens of the user are ended.

        Raises:
            BadRequestException: If the user does not exist
            UnauthorizedException: If the current password is wrong
        """
        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise BadRequestException("User not found", message_bn="ব্যবহারকারী পাওয়া যায়নি")

        if not verify_password(current_password, user["password_hash"], self.config.bcrypt_rounds):
            raise UnauthorizedException(
                "Current password is incorrect",
                message_bn="বর্তমান পাসওয়ার্ড ভুল",
            )

        await self.users.update_password(
            db, user_id, get_password_hash(new_password, self.config.bcrypt_rounds)
        )
        ended = await self.sessions.destroy_all_user_sessions(
            db, user_id, except_session_id=current_session_id, reason="password_change"
        )
        await self.sessions.revoke_remember_tokens(db, user_id)

        logger.info("password_changed", user_id=str(user_id), sessions_ended=ended)
        return {
            "message": "Password changed successfully",
            "message_bn": "পাসওয়ার্ড সফলভাবে পরিবর্তন হয়েছে",
        }

    async def logout(
        self,
        db: AsyncSession,
        user_id: UUID,
        session_id: UUID | None,
        refresh_token: str | None = None,
        all_devices: bool = False,
    ) -> dict:
        """End the current session, or every session of the user."""
        if all_devices:
            destroyed = await self.sessions.destroy_all_user_sessions(
                db, user_id, reason="user_logout"
            )
            await self.sessions.revoke_remember_tokens(db, user_id)
        elif session_id is not None:
            destroyed = int(await self.sessions.destroy_session(db, session_id, "user_logout"))
        else:
            destroyed = 0

        if refresh_token:
            self.revoke_refresh_token(refresh_token, user_id)

        logger.info("user_logged_out", user_id=str(user_id), all_devices=all_devices)
        return {
            "message": "Logout successful",
            "message_bn": "লগআউট সফল",
            "all_devices": all_devices,
            "destroyed_count": destroyed,
        }

    def get_profile(self, user: dict) -> dict:
        """Profile of an authenticated user."""
        return user_summary(user)

    async def _active_user(self, db: AsyncSession, user_id: UUID) -> dict:
        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", message_bn="ব্যবহারকারী পাওয়া যায়নি")
        if not user["is_active"]:
            raise UnauthorizedException(
                "Account is deactivated",
                message_bn="অ্যাকাউন্ট নিষ্ক্রিয় করা হয়েছে",
            )
        return user

    async def validate_remember_me(self, db: AsyncSession, token: str) -> dict:
        """
        Check a remember-me token without consuming it.

        Raises:
            BadRequestException: If the token is invalid or expired
        """
        row = await self.sessions.validate_remember_token(db, token)
        if row is None:
            raise BadRequestException(
                "Remember me token is invalid or expired",
                message_bn="রিমেম্বার মি টোকেন অবৈধ বা মেয়াদোত্তীর্ণ",
            )

        user = await self._active_user(db, row["user_id"])
        return {
            "message": "Remember me token is valid",
            "message_bn": "রিমেম্বার মি টোকেন বৈধ",
            "token_valid": True,
            "user": user_summary(user),
        }

    async def refresh_from_remember_me(
        self, db: AsyncSession, token: str, device: DeviceContext
    ) -> dict:
        """
        Restore a session from a remember-me token.

        The presented token is consumed and a new one is returned.
        """
        row = await self.sessions.consume_remember_token(db, token, device)
        user = await self._active_user(db, row["user_id"])

        result = await self._open_session(db, user, device, "remember_me", remember_me=True)
        logger.info("session_restored_from_remember_me", user_id=str(user["id"]))
        return result

    async def disable_remember_me(
        self,
        db: AsyncSession,
        user_id: UUID,
        device: DeviceContext,
        session_id: UUID | None = None,
        all_devices: bool = False,
    ) -> dict:
        """Revoke remember-me tokens on this device, or everywhere."""
        if all_devices:
            destroyed = await self.sessions.revoke_remember_tokens(db, user_id)
            destroyed += await self.sessions.destroy_all_user_sessions(
                db, user_id, except_session_id=session_id, reason="disable_remember_me"
            )
            message, message_bn = (
                "Remember me disabled on all devices",
                "সব ডিভাইসে রিমেম্বার মি নিষ্ক্রিয় করা হয়েছে",
            )
        else:
            destroyed = await self.sessions.revoke_remember_tokens(
                db, user_id, device_fingerprint=device.fingerprint
            )
            message, message_bn = (
                "Remember me disabled on current device",
                "বর্তমান ডিভাইসে রিমেম্বার মি নিষ্ক্রিয় করা হয়েছে",
            )

        return {
            "message": message,
            "message_bn": message_bn,
            "all_devices": all_devices,
            "destroyed_count": destroyed,
        }

    async def list_sessions(
        self, db: AsyncSession, user_id: UUID, current_session_id: UUID | None = None
    ) -> list[dict]:
        """Active sessions of the user, flagging the one making the request."""
        sessions = await self.sessions.list_user_sessions(db, user_id)
        return [
            {**session, "is_current": session["id"] == current_session_id} for session in sessions
        ]
