"""Account deletion workflow: request, confirm, cancel and final anonymization."""

from datetime import timedelta
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.core.security import verify_password
from app.core.utils import ensure_utc, utcnow
from app.models.account_deletion import account_deletion_requests
from app.models.users import users
from app.services.session_service import SessionService
from app.services.user_service import UserService

logger = structlog.get_logger()


class AccountDeletionService:
    """Service for the account deletion lifecycle."""

    def __init__(
        self,
        config: Settings,
        session_service: SessionService | None = None,
        user_service: UserService | None = None,
    ):
        """Initialize with token lifetime and collaborating services."""
        self.config = config
        self.token_ttl = timedelta(days=config.account_deletion_token_days)
        self.sessions = session_service or SessionService(config)
        self.users = user_service or UserService()

    async def _pending_request(self, db: AsyncSession, user_id: UUID) -> dict | None:
        query = (
            select(account_deletion_requests)
            .where(account_deletion_requests.c.user_id == user_id)
            .where(account_deletion_requests.c.status == "pending")
            .order_by(account_deletion_requests.c.requested_at.desc())
        )
        result = await db.execute(query)
        row = result.mappings().first()
        return dict(row) if row else None

    async def request_deletion(
        self,
        db: AsyncSession,
        user_id: UUID,
        password: str,
        reason: str | None = None,
    ) -> dict:
        """
        Open a deletion request after re-checking the password.

        Args:
            db: Database session
            user_id: Account to delete
            password: Current password of the account
            reason: Optional free-text reason

        Returns:
            Deletion token and its expiry

        Raises:
            NotFoundException: If the user does not exist
            UnauthorizedException: If the password is wrong
            ConflictException: If a request is already pending
        """
        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", message_bn="ব্যবহারকারী পাওয়া যায়নি")

        if user["deleted_at"] is not None:
            raise BadRequestException(
                "Account has already been deleted",
                message_bn="অ্যাকাউন্ট ইতিমধ্যে মুছে ফেলা হয়েছে",
            )

        if not verify_password(password, user["password_hash"], self.config.bcrypt_rounds):
            raise UnauthorizedException(
                "The password you entered is incorrect",
                message_bn="আপনার দেওয়া পাসওয়ার্ড ভুল",
            )

        if await self._pending_request(db, user_id):
            raise ConflictException(
                "You already have a pending deletion request",
                message_bn="আপনার একটি মুলতুবি মুছে ফেলার অনুরোধ রয়েছে",
            )

        now = utcnow()
        deletion_token = str(uuid4())
        expires_at = now + self.token_ttl

        await db.execute(
            account_deletion_requests.insert().values(
                id=uuid4(),
                user_id=user_id,
                deletion_token=deletion_token,
                reason=reason,
                status="pending",
                requested_at=now,
                expires_at=expires_at,
            )
        )
        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(account_status="pending_deletion", deletion_requested_at=now, updated_at=now)
        )
        await db.commit()

        logger.info("account_deletion_requested", user_id=str(user_id), expires_at=expires_at)
        return {"deletion_token": deletion_token, "expires_at": expires_at}

    async def confirm_deletion(self, db: AsyncSession, user_id: UUID, deletion_token: str) -> dict:
        """
        Confirm a pending request; the account is deactivated immediately.

        Raises:
            BadRequestException: If the token is unknown, expired or already used
        """
        query = select(account_deletion_requests).where(
            account_deletion_requests.c.deletion_token == deletion_token
        )
        result = await db.execute(query)
        request = result.mappings().first()

        if not request or request["user_id"] != user_id:
            raise BadRequestException(
                "Invalid deletion token",
                message_bn="মুছে ফেলার টোকেন অবৈধ",
            )

        if request["status"] != "pending":
            raise BadRequestException(
                "Deletion request has already been processed",
                message_bn="মুছে ফেলার অনুরোধ ইতিমধ্যে প্রক্রিয়া করা হয়েছে",
            )

        now = utcnow()
        if ensure_utc(request["expires_at"]) <= now:
            await self._expire_requests(db, [request["id"]], [user_id])
            raise BadRequestException(
                "Deletion token has expired",
                message_bn="মুছে ফেলার টোকেনের মেয়াদ শেষ হয়েছে",
            )

        await db.execute(
            update(account_deletion_requests)
            .where(account_deletion_requests.c.id == request["id"])
            .values(status="confirmed", confirmed_at=now)
        )
        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(
                account_status="deleted",
                is_active=False,
                deleted_at=now,
                deletion_reason=request["reason"],
                updated_at=now,
            )
        )
        await db.commit()

        await self.sessions.destroy_all_user_sessions(db, user_id, reason="account_deleted")
        await self.sessions.revoke_remember_tokens(db, user_id)

        logger.info("account_deletion_confirmed", user_id=str(user_id))
        return {
            "message": "Account deleted successfully",
            "message_bn": "অ্যাকাউন্ট সফলভাবে মুছে ফেলা হয়েছে",
        }

    async def cancel_deletion(self, db: AsyncSession, user_id: UUID) -> dict:
        """
        Cancel the pending request of a user.

        Raises:
            NotFoundException: If there is no pending request
        """
        request = await self._pending_request(db, user_id)
        if not request:
            raise NotFoundException(
                "No pending deletion request found",
                message_bn="কোনো মুলতুবি মুছে ফেলার অনুরোধ পাওয়া যায়নি",
            )

        await db.execute(
            update(account_deletion_requests)
            .where(account_deletion_requests.c.id == request["id"])
            .values(status="cancelled")
        )
        await db.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(account_status="active", deletion_requested_at=None, updated_at=utcnow())
        )
        await db.commit()

        logger.info("account_deletion_cancelled", user_id=str(user_id))
        return {
            "message": "Account deletion cancelled",
            "message_bn": "অ্যাকাউন্ট মুছে ফেলা বাতিল করা হয়েছে",
        }

    async def get_deletion_status(self, db: AsyncSession, user_id: UUID) -> dict:
        """Deletion state of the account and its pending request, if any."""
        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", message_bn="ব্যবহারকারী পাওয়া যায়নি")

        pending = await self._pending_request(db, user_id)
        return {
            "account_status": user["account_status"],
            "deletion_requested_at": user["deletion_requested_at"],
            "deleted_at": user["deleted_at"],
            "deletion_reason": user["deletion_reason"],
            "has_pending_deletion": pending is not None,
            "pending_deletion_request": pending,
        }

    async def _expire_requests(
        self, db: AsyncSession, request_ids: list[UUID], user_ids: list[UUID]
    ) -> None:
        await db.execute(
            update(account_deletion_requests)
            .where(account_deletion_requests.c.id.in_(request_ids))
            .values(status="expired")
        )
        await db.execute(
            update(users)
            .where(users.c.id.in_(user_ids))
            .where(users.c.account_status == "pending_deletion")
            .values(account_status="active", deletion_requested_at=None, updated_at=utcnow())
        )
        await db.commit()

    async def cleanup_expired_requests(self, db: AsyncSession) -> int:
        """Mark stale pending requests as expired and reactivate their accounts."""
        query = (
            select(account_deletion_requests.c.id, account_deletion_requests.c.user_id)
            .where(account_deletion_requests.c.status == "pending")
            .where(account_deletion_requests.c.expires_at <= utcnow())
        )
        result = await db.execute(query)
        rows = result.all()

        if rows:
            await self._expire_requests(db, [row.id for row in rows], [row.user_id for row in rows])

        logger.info("expired_deletion_requests_cleaned", count=len(rows))
        return len(rows)

    async def process_confirmed_deletions(self, db: AsyncSession) -> int:
        """Anonymize accounts with confirmed requests and mark the requests completed."""
        query = select(account_deletion_requests).where(
            account_deletion_requests.c.status == "confirmed"
        )
        result = await db.execute(query)
        requests = [dict(row) for row in result.mappings().all()]

        for request in requests:
            now = utcnow()
            user_id = request["user_id"]
            await db.execute(
                update(users)
                .where(users.c.id == user_id)
                .values(
                    email=f"deleted_{user_id}@deleted.local",
                    phone=None,
                    first_name="Deleted",
                    last_name="User",
                    account_status="deleted",
                    is_active=False,
                    updated_at=now,
                )
            )
            await db.execute(
                update(account_deletion_requests)
                .where(account_deletion_requests.c.id == request["id"])
                .values(status="completed", completed_at=now)
            )
            await db.commit()
            logger.info("account_anonymized", user_id=str(user_id))

        return len(requests)
