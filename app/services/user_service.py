"""User service for credential store access."""

from collections.abc import Mapping
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.identifiers import normalize_identifier
from app.core.utils import utcnow
from app.models.users import users

# Columns that never leave the service layer
PRIVATE_FIELDS = frozenset({"password_hash"})


def sanitize_user(user: Mapping[str, Any]) -> dict:
    """Return a copy of the user row without credential fields."""
    return {key: value for key, value in user.items() if key not in PRIVATE_FIELDS}


class UserService:
    """Service for user operations."""

    async def create_user(
        self,
        db: AsyncSession,
        *,
        password_hash: str,
        email: str | None = None,
        phone: str | None = None,
        first_name: str = "",
        last_name: str = "",
        role: str = "CUSTOMER",
    ) -> dict:
        """Create a new active user and return the full row."""
        now = utcnow()
        query = (
            users.insert()
            .values(
                id=uuid4(),
                email=email,
                phone=phone,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=role,
                is_active=True,
                account_status="active",
                created_at=now,
                updated_at=now,
            )
            .returning(users)
        )

        result = await db.execute(query)
        await db.commit()
        user = result.mappings().first()

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID."""
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email."""
        query = select(users).where(users.c.email == email)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_phone(self, db: AsyncSession, phone: str) -> dict | None:
        """Get user by normalized phone number."""
        query = select(users).where(users.c.phone == phone)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_user_by_identifier(
        self, db: AsyncSession, identifier: str
    ) -> tuple[str, dict | None]:
        """
        Look a user up by email or phone.

        Args:
            db: Database session
            identifier: Email address or phone number as entered

        Returns:
            Tuple of (identifier type, user row or None)
        """
        identifier_type, normalized = normalize_identifier(identifier)
        if normalized is None:
            return identifier_type, None

        if identifier_type == "email":
            return identifier_type, await self.get_user_by_email(db, normalized)
        return identifier_type, await self.get_user_by_phone(db, normalized)

    async def update_password(self, db: AsyncSession, user_id: UUID, password_hash: str) -> None:
        """Store a new password hash."""
        now = utcnow()
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(password_hash=password_hash, password_changed_at=now, updated_at=now)
        )
        await db.execute(query)
        await db.commit()

    async def update_last_login(self, db: AsyncSession, user_id: UUID) -> None:
        """Update user's last login timestamp."""
        now = utcnow()
        query = update(users).where(users.c.id == user_id).values(last_login_at=now, updated_at=now)
        await db.execute(query)
        await db.commit()

    async def set_active(self, db: AsyncSession, user_id: UUID, is_active: bool) -> None:
        """Activate or deactivate an account."""
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(is_active=is_active, updated_at=utcnow())
        )
        await db.execute(query)
        await db.commit()
