"""Persisted login sessions and remember-me tokens."""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.exceptions import BadRequestException
from app.core.security import generate_opaque_token, hash_token
from app.core.utils import ensure_utc, utcnow
from app.models.sessions import remember_tokens, user_sessions

logger = structlog.get_logger()


@dataclass(frozen=True)
class DeviceContext:
    """Client details captured from the request that opened a session."""

    ip_address: str | None = None
    user_agent: str = ""
    accept_language: str = ""
    accept_encoding: str = ""

    @property
    def fingerprint(self) -> str:
        """Truncated SHA-256 of the identifying request headers."""
        raw = f"{self.user_agent}|{self.accept_language}|{self.accept_encoding}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


class SessionService:
    """Service for session and remember-me token storage."""

    def __init__(self, config: Settings):
        """Initialize with session lifetimes from settings."""
        self.session_ttl = timedelta(hours=config.session_expire_hours)
        self.remember_session_ttl = timedelta(days=config.remember_me_session_days)
        self.remember_token_ttl = timedelta(days=config.remember_token_days)

    async def create_session(
        self,
        db: AsyncSession,
        user_id: UUID,
        device: DeviceContext,
        login_type: str = "email",
        remember_me: bool = False,
    ) -> tuple[str, dict]:
        """
        Create a new session for a user.

        Args:
            db: Database session
            user_id: Owner of the session
            device: Client details of the login request
            login_type: How the user authenticated (email, phone, remember_me)
            remember_me: Whether the session gets the extended lifetime

        Returns:
            Tuple of (raw session token, stored session row)
        """
        token = generate_opaque_token()
        now = utcnow()
        ttl = self.remember_session_ttl if remember_me else self.session_ttl

        query = (
            user_sessions.insert()
            .values(
                id=uuid4(),
                user_id=user_id,
                token_hash=hash_token(token),
                device_fingerprint=device.fingerprint,
                ip_address=device.ip_address,
                user_agent=device.user_agent or None,
                login_type=login_type,
                remember_me=remember_me,
                expires_at=now + ttl,
                last_activity_at=now,
                created_at=now,
            )
            .returning(user_sessions)
        )
        result = await db.execute(query)
        await db.commit()
        session = dict(result.mappings().one())

        logger.info(
            "session_created",
            session_id=str(session["id"]),
            user_id=str(user_id),
            login_type=login_type,
            remember_me=remember_me,
        )
        return token, session

    async def get_session(self, db: AsyncSession, session_id: UUID) -> dict | None:
        """Get a session by ID if it has not expired."""
        query = select(user_sessions).where(user_sessions.c.id == session_id)
        result = await db.execute(query)
        session = result.mappings().first()

        if not session or ensure_utc(session["expires_at"]) <= utcnow():
            return None
        return dict(session)

    async def validate_session_token(self, db: AsyncSession, token: str) -> dict | None:
        """Resolve a raw session token, refreshing its last activity."""
        query = select(user_sessions).where(user_sessions.c.token_hash == hash_token(token))
        result = await db.execute(query)
        session = result.mappings().first()

        if not session:
            return None

        if ensure_utc(session["expires_at"]) <= utcnow():
            await self.destroy_session(db, session["id"], reason="expired")
            return None

        await db.execute(
            update(user_sessions)
            .where(user_sessions.c.id == session["id"])
            .values(last_activity_at=utcnow())
        )
        await db.commit()
        return dict(session)

    async def destroy_session(
        self, db: AsyncSession, session_id: UUID, reason: str = "logout"
    ) -> bool:
        """Delete a session. Returns True if a session was removed."""
        result = await db.execute(delete(user_sessions).where(user_sessions.c.id == session_id))
        await db.commit()

        destroyed = result.rowcount > 0
        if destroyed:
            logger.info("session_destroyed", session_id=str(session_id), reason=reason)
        return destroyed

    async def destroy_all_user_sessions(
        self,
        db: AsyncSession,
        user_id: UUID,
        except_session_id: UUID | None = None,
        reason: str = "mass_logout",
    ) -> int:
        """Delete every session of a user, optionally keeping one."""
        query = delete(user_sessions).where(user_sessions.c.user_id == user_id)
        if except_session_id is not None:
            query = query.where(user_sessions.c.id != except_session_id)

        result = await db.execute(query)
        await db.commit()

        logger.info(
            "user_sessions_destroyed",
            user_id=str(user_id),
            destroyed_count=result.rowcount,
            reason=reason,
        )
        return result.rowcount

    async def list_user_sessions(self, db: AsyncSession, user_id: UUID) -> list[dict]:
        """Active sessions of a user, newest first."""
        query = (
            select(user_sessions)
            .where(user_sessions.c.user_id == user_id)
            .where(user_sessions.c.expires_at > utcnow())
            .order_by(user_sessions.c.created_at.desc())
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def cleanup_expired_sessions(self, db: AsyncSession) -> int:
        """Purge expired sessions."""
        result = await db.execute(
            delete(user_sessions).where(user_sessions.c.expires_at <= utcnow())
        )
        await db.commit()

        logger.info("session_cleanup_completed", cleaned_count=result.rowcount)
        return result.rowcount

    async def create_remember_token(
        self, db: AsyncSession, user_id: UUID, device: DeviceContext
    ) -> tuple[str, datetime]:
        """
        Issue a remember-me token bound to the device.

        Returns:
            Tuple of (raw token, expiry)
        """
        token = generate_opaque_token()
        now = utcnow()
        expires_at = now + self.remember_token_ttl

        await db.execute(
            remember_tokens.insert().values(
                id=uuid4(),
                user_id=user_id,
                token_hash=hash_token(token),
                device_fingerprint=device.fingerprint,
                expires_at=expires_at,
                created_at=now,
            )
        )
        await db.commit()

        logger.info("remember_token_created", user_id=str(user_id), expires_at=expires_at)
        return token, expires_at

    async def validate_remember_token(self, db: AsyncSession, token: str) -> dict | None:
        """Look up an unexpired remember-me token; expired ones are deleted."""
        query = select(remember_tokens).where(remember_tokens.c.token_hash == hash_token(token))
        result = await db.execute(query)
        row = result.mappings().first()

        if not row:
            return None

        if ensure_utc(row["expires_at"]) <= utcnow():
            await db.execute(delete(remember_tokens).where(remember_tokens.c.id == row["id"]))
            await db.commit()
            return None

        return dict(row)

    async def consume_remember_token(
        self, db: AsyncSession, token: str, device: DeviceContext
    ) -> dict:
        """
        Use a remember-me token once.

        The token is deleted so the caller must issue a replacement.

        Raises:
            BadRequestException: If the token is unknown, expired or from another device
        """
        row = await self.validate_remember_token(db, token)
        if row is None:
            raise BadRequestException(
                "Remember me token is invalid or expired",
                message_bn="রিমেম্বার মি টোকেন অবৈধ বা মেয়াদোত্তীর্ণ",
            )

        if row["device_fingerprint"] != device.fingerprint:
            logger.warning("remember_token_device_mismatch", user_id=str(row["user_id"]))
            raise BadRequestException(
                "Device fingerprint mismatch",
                message_bn="ডিভাইস মিলছে না",
            )

        await db.execute(delete(remember_tokens).where(remember_tokens.c.id == row["id"]))
        await db.commit()
        return row

    async def revoke_remember_tokens(
        self,
        db: AsyncSession,
        user_id: UUID,
        device_fingerprint: str | None = None,
    ) -> int:
        """Delete a user's remember-me tokens, optionally only for one device."""
        query = delete(remember_tokens).where(remember_tokens.c.user_id == user_id)
        if device_fingerprint is not None:
            query = query.where(remember_tokens.c.device_fingerprint == device_fingerprint)

        result = await db.execute(query)
        await db.commit()
        return result.rowcount

    async def cleanup_expired_remember_tokens(self, db: AsyncSession) -> int:
        """Purge expired remember-me tokens."""
        result = await db.execute(
            delete(remember_tokens).where(remember_tokens.c.expires_at <= utcnow())
        )
        await db.commit()

        logger.info("remember_token_cleanup_completed", cleaned_count=result.rowcount)
        return result.rowcount
