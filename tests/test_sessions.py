"""Tests for session storage and remember-me tokens."""

from datetime import timedelta
from uuid import UUID

import pytest
from sqlalchemy import update

from app.config import settings
from app.core.exceptions import BadRequestException
from app.core.utils import utcnow
from app.models.sessions import remember_tokens, user_sessions
from app.services.auth_service import AuthService
from app.services.session_service import DeviceContext, SessionService

LAPTOP = DeviceContext(
    ip_address="10.0.0.1",
    user_agent="Mozilla/5.0 (X11; Linux x86_64)",
    accept_language="en-US",
    accept_encoding="gzip",
)
PHONE = DeviceContext(
    ip_address="10.0.0.2",
    user_agent="Mozilla/5.0 (Linux; Android 14)",
    accept_language="bn-BD",
    accept_encoding="gzip",
)


@pytest.fixture
def session_service() -> SessionService:
    return SessionService(settings)


def test_device_fingerprint_depends_on_headers_not_ip():
    same_browser_elsewhere = DeviceContext(
        ip_address="192.168.1.5",
        user_agent=LAPTOP.user_agent,
        accept_language=LAPTOP.accept_language,
        accept_encoding=LAPTOP.accept_encoding,
    )

    assert len(LAPTOP.fingerprint) == 32
    assert LAPTOP.fingerprint == same_browser_elsewhere.fingerprint
    assert LAPTOP.fingerprint != PHONE.fingerprint


@pytest.mark.asyncio
async def test_session_lifetimes(session_service: SessionService, db_session, test_user):
    """Remember-me sessions last seven days, regular ones a day."""
    _, regular = await session_service.create_session(db_session, test_user["id"], LAPTOP)
    _, remembered = await session_service.create_session(
        db_session, test_user["id"], LAPTOP, remember_me=True
    )

    regular_ttl = regular["expires_at"] - regular["created_at"]
    remembered_ttl = remembered["expires_at"] - remembered["created_at"]
    assert regular_ttl == timedelta(hours=24)
    assert remembered_ttl == timedelta(days=7)


@pytest.mark.asyncio
async def test_session_token_is_stored_hashed(
    session_service: SessionService, db_session, test_user
):
    token, session = await session_service.create_session(db_session, test_user["id"], LAPTOP)

    assert session["token_hash"] != token
    resolved = await session_service.validate_session_token(db_session, token)
    assert resolved["id"] == session["id"]
    assert await session_service.validate_session_token(db_session, "unknown") is None


@pytest.mark.asyncio
async def test_expired_session_is_rejected_and_removed(
    session_service: SessionService, db_session, test_user
):
    token, session = await session_service.create_session(db_session, test_user["id"], LAPTOP)
    await db_session.execute(
        update(user_sessions)
        .where(user_sessions.c.id == session["id"])
        .values(expires_at=utcnow() - timedelta(minutes=1))
    )
    await db_session.commit()

    assert await session_service.get_session(db_session, session["id"]) is None
    assert await session_service.validate_session_token(db_session, token) is None
    assert await session_service.destroy_session(db_session, session["id"]) is False


@pytest.mark.asyncio
async def test_destroy_all_sessions_except_current(
    session_service: SessionService, db_session, test_user
):
    _, keep = await session_service.create_session(db_session, test_user["id"], LAPTOP)
    await session_service.create_session(db_session, test_user["id"], PHONE)
    await session_service.create_session(db_session, test_user["id"], PHONE)

    destroyed = await session_service.destroy_all_user_sessions(
        db_session, test_user["id"], except_session_id=keep["id"]
    )

    assert destroyed == 2
    remaining = await session_service.list_user_sessions(db_session, test_user["id"])
    assert [session["id"] for session in remaining] == [keep["id"]]


@pytest.mark.asyncio
async def test_cleanup_expired_sessions(session_service: SessionService, db_session, test_user):
    _, stale = await session_service.create_session(db_session, test_user["id"], LAPTOP)
    await session_service.create_session(db_session, test_user["id"], LAPTOP)
    await db_session.execute(
        update(user_sessions)
        .where(user_sessions.c.id == stale["id"])
        .values(expires_at=utcnow() - timedelta(hours=1))
    )
    await db_session.commit()

    assert await session_service.cleanup_expired_sessions(db_session) == 1
    assert len(await session_service.list_user_sessions(db_session, test_user["id"])) == 1


@pytest.mark.asyncio
async def test_remember_token_is_consumed_once(
    session_service: SessionService, db_session, test_user
):
    token, expires_at = await session_service.create_remember_token(
        db_session, test_user["id"], LAPTOP
    )

    assert expires_at - utcnow() > timedelta(days=29)
    row = await session_service.consume_remember_token(db_session, token, LAPTOP)
    assert row["user_id"] == test_user["id"]

    with pytest.raises(BadRequestException):
        await session_service.consume_remember_token(db_session, token, LAPTOP)


@pytest.mark.asyncio
async def test_remember_token_rejects_other_device(
    session_service: SessionService, db_session, test_user
):
    token, _ = await session_service.create_remember_token(db_session, test_user["id"], LAPTOP)

    with pytest.raises(BadRequestException) as exc_info:
        await session_service.consume_remember_token(db_session, token, PHONE)

    assert exc_info.value.message == "Device fingerprint mismatch"
    # Still usable from the device it was issued to
    assert await session_service.consume_remember_token(db_session, token, LAPTOP)


@pytest.mark.asyncio
async def test_expired_remember_token_is_deleted(
    session_service: SessionService, db_session, test_user
):
    token, _ = await session_service.create_remember_token(db_session, test_user["id"], LAPTOP)
    await db_session.execute(
        update(remember_tokens).values(expires_at=utcnow() - timedelta(seconds=1))
    )
    await db_session.commit()

    assert await session_service.validate_remember_token(db_session, token) is None
    assert await session_service.cleanup_expired_remember_tokens(db_session) == 0


@pytest.mark.asyncio
async def test_revoke_remember_tokens_per_device(
    session_service: SessionService, db_session, test_user
):
    laptop_token, _ = await session_service.create_remember_token(
        db_session, test_user["id"], LAPTOP
    )
    phone_token, _ = await session_service.create_remember_token(
        db_session, test_user["id"], PHONE
    )

    revoked = await session_service.revoke_remember_tokens(
        db_session, test_user["id"], device_fingerprint=PHONE.fingerprint
    )

    assert revoked == 1
    assert await session_service.validate_remember_token(db_session, laptop_token)
    assert await session_service.validate_remember_token(db_session, phone_token) is None


@pytest.mark.asyncio
async def test_refresh_from_remember_me_rotates_token(
    auth_service: AuthService, db_session, test_user
):
    login = await auth_service.login(
        db_session, test_user["email"], "Password123!", remember_me=True, device=LAPTOP
    )

    restored = await auth_service.refresh_from_remember_me(
        db_session, login["remember_token"], LAPTOP
    )

    assert restored["remember_token"] != login["remember_token"]
    assert restored["session_id"] != login["session_id"]
    session = await auth_service.sessions.get_session(db_session, UUID(restored["session_id"]))
    assert session["login_type"] == "remember_me"

    with pytest.raises(BadRequestException):
        await auth_service.refresh_from_remember_me(db_session, login["remember_token"], LAPTOP)


@pytest.mark.asyncio
async def test_disable_remember_me_on_current_device(
    auth_service: AuthService, db_session, test_user
):
    laptop = await auth_service.login(
        db_session, test_user["email"], "Password123!", remember_me=True, device=LAPTOP
    )
    phone = await auth_service.login(
        db_session, test_user["email"], "Password123!", remember_me=True, device=PHONE
    )

    result = await auth_service.disable_remember_me(db_session, test_user["id"], LAPTOP)

    assert result["destroyed_count"] == 1
    with pytest.raises(BadRequestException):
        await auth_service.validate_remember_me(db_session, laptop["remember_token"])
    assert (await auth_service.validate_remember_me(db_session, phone["remember_token"]))[
        "token_valid"
    ]
