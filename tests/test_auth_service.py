"""Tests for the authentication service."""

from uuid import UUID

import pytest

from app.core.exceptions import BadRequestException, RateLimitException, UnauthorizedException
from app.schemas.auth import RegisterRequest
from app.services.auth_service import AuthService
from app.services.session_service import DeviceContext
from app.services.user_service import UserService

DEVICE = DeviceContext(ip_address="10.0.0.1", user_agent="pytest-browser", accept_language="en")


@pytest.mark.asyncio
async def test_validate_user_by_email_and_phone(auth_service: AuthService, db_session, test_user):
    """Users can be found by email (any case) or by local phone format."""
    by_email = await auth_service.validate_user(db_session, "CUSTOMER@example.com", "Password123!")
    by_phone = await auth_service.validate_user(db_session, "01712345678", "Password123!")

    assert by_email["id"] == test_user["id"]
    assert by_phone["id"] == test_user["id"]
    assert "password_hash" not in by_email


@pytest.mark.asyncio
async def test_validate_user_failures_return_none(auth_service: AuthService, db_session, test_user):
    assert await auth_service.validate_user(db_session, test_user["email"], "wrong") is None
    assert await auth_service.validate_user(db_session, "nobody@example.com", "x") is None
    assert await auth_service.validate_user(db_session, "not-a-phone", "x") is None


@pytest.mark.asyncio
async def test_login_returns_tokens_and_session(auth_service: AuthService, db_session, test_user):
    result = await auth_service.login(
        db_session, test_user["email"], "Password123!", remember_me=False, device=DEVICE
    )

    payload = auth_service.tokens.verify(result["access_token"], expected_type="access")
    assert payload["sub"] == str(test_user["id"])
    assert payload["sid"] == result["session_id"]
    assert payload["role"] == "CUSTOMER"
    assert result["remember_token"] is None
    assert result["expires_in"] == 1440 * 60
    assert result["user"]["email"] == "customer@example.com"

    user = await UserService().get_user_by_id(db_session, test_user["id"])
    assert user["last_login_at"] is not None


@pytest.mark.asyncio
async def test_login_with_remember_me_issues_remember_token(
    auth_service: AuthService, db_session, test_user
):
    result = await auth_service.login(
        db_session, "+8801712345678", "Password123!", remember_me=True, device=DEVICE
    )

    assert result["remember_token"]
    session = await auth_service.sessions.get_session(db_session, UUID(result["session_id"]))
    assert session["login_type"] == "phone"
    assert session["remember_me"] is True


@pytest.mark.asyncio
async def test_login_invalid_credentials(auth_service: AuthService, db_session, test_user):
    with pytest.raises(UnauthorizedException) as exc_info:
        await auth_service.login(db_session, test_user["email"], "wrong-password")

    assert exc_info.value.message == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_deactivated_account(auth_service: AuthService, db_session, test_user):
    await UserService().set_active(db_session, test_user["id"], False)

    with pytest.raises(UnauthorizedException) as exc_info:
        await auth_service.login(db_session, test_user["email"], "Password123!")

    assert exc_info.value.message == "Account is deactivated"


@pytest.mark.asyncio
async def test_login_lockout_after_repeated_failures(
    auth_service: AuthService, db_session, test_user
):
    """After five failures even the right password is refused."""
    for _ in range(5):
        with pytest.raises(UnauthorizedException):
            await auth_service.login(db_session, test_user["email"], "wrong-password")

    with pytest.raises(RateLimitException) as exc_info:
        await auth_service.login(db_session, test_user["email"], "Password123!")

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_lockout_covers_every_spelling_of_an_identifier(
    auth_service: AuthService, db_session, test_user
):
    """Failures with one phone format lock out the others too."""
    for _ in range(5):
        with pytest.raises(UnauthorizedException):
            await auth_service.login(db_session, "01712345678", "wrong-password")

    for identifier in ("+8801712345678", "+880 1712-345678", "8801712345678"):
        with pytest.raises(RateLimitException):
            await auth_service.login(db_session, identifier, "Password123!")


@pytest.mark.asyncio
async def test_lockout_ignores_email_case(auth_service: AuthService, db_session, test_user):
    for _ in range(5):
        with pytest.raises(UnauthorizedException):
            await auth_service.login(db_session, "Customer@Example.com", "wrong-password")

    with pytest.raises(RateLimitException):
        await auth_service.login(db_session, " customer@example.com ", "Password123!")


@pytest.mark.asyncio
async def test_successful_login_resets_failure_count(
    auth_service: AuthService, db_session, test_user
):
    for _ in range(4):
        with pytest.raises(UnauthorizedException):
            await auth_service.login(db_session, test_user["email"], "wrong-password")

    await auth_service.login(db_session, test_user["email"], "Password123!")

    for _ in range(4):
        with pytest.raises(UnauthorizedException):
            await auth_service.login(db_session, test_user["email"], "wrong-password")

    assert await auth_service.login(db_session, test_user["email"], "Password123!")


@pytest.mark.asyncio
async def test_register_creates_customer(auth_service: AuthService, db_session):
    user = await auth_service.register(
        db_session,
        RegisterRequest(email="New@Example.com", password="Password123!", first_name="New"),
    )

    assert user["email"] == "new@example.com"
    assert user["role"] == "CUSTOMER"
    assert user["is_active"] is True
    assert "password_hash" not in user


@pytest.mark.asyncio
async def test_register_rejects_duplicates(auth_service: AuthService, db_session, test_user):
    with pytest.raises(BadRequestException):
        await auth_service.register(
            db_session, RegisterRequest(email=test_user["email"], password="Password123!")
        )

    with pytest.raises(BadRequestException):
        await auth_service.register(
            db_session, RegisterRequest(phone="01712345678", password="Password123!")
        )


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token_only(
    auth_service: AuthService, db_session, test_user
):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")

    result = await auth_service.refresh_token(db_session, login["refresh_token"])

    assert set(result) == {"access_token", "token_type", "expires_in"}
    payload = auth_service.tokens.verify(result["access_token"], expected_type="access")
    assert payload["sid"] == login["session_id"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(auth_service: AuthService, db_session, test_user):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")

    with pytest.raises(UnauthorizedException) as exc_info:
        await auth_service.refresh_token(db_session, login["access_token"])

    assert exc_info.value.message == "Invalid refresh token"


@pytest.mark.asyncio
async def test_refresh_rejects_revoked_token(auth_service: AuthService, db_session, test_user):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")

    assert auth_service.revoke_refresh_token(login["refresh_token"], test_user["id"])

    with pytest.raises(UnauthorizedException):
        await auth_service.refresh_token(db_session, login["refresh_token"])


@pytest.mark.asyncio
async def test_refresh_rejects_ended_session(auth_service: AuthService, db_session, test_user):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")
    await auth_service.sessions.destroy_session(db_session, UUID(login["session_id"]))

    with pytest.raises(UnauthorizedException):
        await auth_service.refresh_token(db_session, login["refresh_token"])


@pytest.mark.asyncio
async def test_refresh_rejects_inactive_user(auth_service: AuthService, db_session, test_user):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")
    await UserService().set_active(db_session, test_user["id"], False)

    with pytest.raises(UnauthorizedException):
        await auth_service.refresh_token(db_session, login["refresh_token"])


@pytest.mark.asyncio
async def test_revoke_refuses_token_of_other_user(
    auth_service: AuthService, db_session, test_user
):
    login = await auth_service.login(db_session, test_user["email"], "Password123!")
    other = await auth_service.register(
        db_session, RegisterRequest(email="other@example.com", password="Password123!")
    )

    assert not auth_service.revoke_refresh_token(login["refresh_token"], other["id"])
    assert await auth_service.refresh_token(db_session, login["refresh_token"])


@pytest.mark.asyncio
async def test_change_password_ends_other_sessions(
    auth_service: AuthService, db_session, test_user
):
    current = await auth_service.login(db_session, test_user["email"], "Password123!")
    other = await auth_service.login(
        db_session, test_user["email"], "Password123!", remember_me=True, device=DEVICE
    )

    await auth_service.change_password(
        db_session,
        test_user["id"],
        "Password123!",
        "NewPassword456!",
        current_session_id=UUID(current["session_id"]),
    )

    assert await auth_service.refresh_token(db_session, current["refresh_token"])
    with pytest.raises(UnauthorizedException):
        await auth_service.refresh_token(db_session, other["refresh_token"])
    assert await auth_service.sessions.validate_remember_token(
        db_session, other["remember_token"]
    ) is None

    assert await auth_service.validate_user(db_session, test_user["email"], "NewPassword456!")
    assert await auth_service.validate_user(db_session, test_user["email"], "Password123!") is None


@pytest.mark.asyncio
async def test_change_password_wrong_current(auth_service: AuthService, db_session, test_user):
    with pytest.raises(UnauthorizedException) as exc_info:
        await auth_service.change_password(db_session, test_user["id"], "wrong", "NewPassword456!")

    assert exc_info.value.message == "Current password is incorrect"


@pytest.mark.asyncio
async def test_logout_all_devices(auth_service: AuthService, db_session, test_user):
    first = await auth_service.login(db_session, test_user["email"], "Password123!")
    await auth_service.login(db_session, test_user["email"], "Password123!", remember_me=True)

    result = await auth_service.logout(
        db_session,
        test_user["id"],
        UUID(first["session_id"]),
        refresh_token=first["refresh_token"],
        all_devices=True,
    )

    assert result["destroyed_count"] == 2
    assert await auth_service.list_sessions(db_session, test_user["id"]) == []
