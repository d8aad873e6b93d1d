"""Script to initialize the database and seed an administrator.

Creates every table from ``app.models`` (useful for local SQLite databases;
PostgreSQL deployments should use ``scripts/migrate.py``). When
``ADMIN_EMAIL`` and ``ADMIN_PASSWORD`` are set, an ADMIN account is created
unless one with that email already exists.
"""

import asyncio
import os

from app.config import settings
from app.core.identifiers import normalize_email
from app.core.security import get_password_hash
from app.database import AsyncSessionLocal, engine
from app.models import metadata
from app.services.user_service import UserService


async def seed_admin(email: str, password: str) -> None:
    """Create the administrator account if it does not exist yet."""
    user_service = UserService()
    email = normalize_email(email)

    async with AsyncSessionLocal() as db:
        if await user_service.get_user_by_email(db, email):
            print(f"• Admin {email} already exists")
            return

        await user_service.create_user(
            db,
            email=email,
            password_hash=get_password_hash(password, settings.bcrypt_rounds),
            first_name="Admin",
            last_name="User",
            role="ADMIN",
        )
        print(f"✓ Admin {email} created")


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    print("✓ Database initialized successfully!")

    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if admin_email and admin_password:
        await seed_admin(admin_email, admin_password)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
