"""Tests for the client-side auth context."""

import json

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.client.auth_context import (
    REMEMBER_ME_SESSION_TIMEOUT,
    SESSION_TIMEOUT,
    AuthClientError,
    AuthContext,
    FileTokenStore,
    TokenStore,
)
from app.main import app


def _api_client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api")


@pytest_asyncio.fixture
async def context(client: AsyncClient):
    """Auth context talking to the app with the test overrides in place."""
    async with AuthContext(client=_api_client()) as ctx:
        yield ctx


@pytest.mark.asyncio
async def test_login_populates_state(context: AuthContext, test_user: dict):
    user = await context.login(test_user["email"], test_user["password"])

    assert user["email"] == "customer@example.com"
    assert context.is_authenticated
    assert context.is_loading is False
    assert context.session_timeout == SESSION_TIMEOUT
    assert context.remember_token is None
    assert context.store.load()["access_token"] == context.access_token


@pytest.mark.asyncio
async def test_login_failure_is_localized(client: AsyncClient, test_user: dict):
    async with AuthContext(client=_api_client(), language="bn") as ctx:
        with pytest.raises(AuthClientError) as exc_info:
            await ctx.login(test_user["email"], "wrong-password")

    error = exc_info.value
    assert error.status_code == 401
    assert error.message == "Invalid credentials"
    assert ctx.error == error.message_bn == "অবৈধ লগইন তথ্য"
    assert not ctx.is_authenticated


@pytest.mark.asyncio
async def test_register_then_login(context: AuthContext):
    user = await context.register(
        "Secret123!", email="new@example.com", first_name="New", last_name="User"
    )

    assert user["email"] == "new@example.com"
    assert not context.is_authenticated
    assert (await context.login("new@example.com", "Secret123!"))["firstName"] == "New"


@pytest.mark.asyncio
async def test_load_profile_refreshes_expired_access_token(
    context: AuthContext, test_user: dict
):
    await context.login(test_user["email"], test_user["password"])
    context.access_token = "expired"

    profile = await context.load_profile()

    assert profile["email"] == test_user["email"]
    assert context.access_token != "expired"


@pytest.mark.asyncio
async def test_failed_extension_logs_out(context: AuthContext, test_user: dict):
    await context.login(test_user["email"], test_user["password"])
    context.refresh_token = "not-a-token"

    assert await context.extend_session() is False
    assert context.user is None
    assert context.access_token is None
    assert context.store.load() == {}


@pytest.mark.asyncio
async def test_logout_ends_server_session(context: AuthContext, test_user: dict):
    await context.login(test_user["email"], test_user["password"])
    access_token = context.access_token

    await context.logout()

    assert not context.is_authenticated
    async with _api_client() as api:
        response = await api.get(
            "/auth/profile", headers={"Authorization": f"Bearer {access_token}"}
        )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_restore_from_remember_me_with_file_store(
    client: AsyncClient, test_user: dict, tmp_path
):
    path = tmp_path / "auth.json"
    async with AuthContext(client=_api_client(), store=FileTokenStore(path)) as first:
        await first.login(test_user["email"], test_user["password"], remember_me=True)
        issued = first.remember_token
        assert first.session_timeout == REMEMBER_ME_SESSION_TIMEOUT

    assert json.loads(path.read_text(encoding="utf-8"))["remember_token"] == issued

    async with AuthContext(client=_api_client(), store=FileTokenStore(path)) as second:
        assert await second.restore_from_remember_me() is True
        assert second.user["email"] == test_user["email"]
        assert second.remember_token != issued


@pytest.mark.asyncio
async def test_restore_with_spent_token_clears_state(context: AuthContext):
    context.remember_token = "unknown-token"

    assert await context.restore_from_remember_me() is False
    assert context.remember_token is None


def test_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "auth.json"
    path.write_text("{not json", encoding="utf-8")

    assert FileTokenStore(path).load() == {}


def test_unsupported_language_is_rejected():
    with pytest.raises(ValueError):
        AuthContext(language="fr", client=httpx.AsyncClient())


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test/api")


@pytest.mark.asyncio
async def test_logout_clears_state_when_server_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "Internal server error"})

    store = TokenStore()
    store.save({"access_token": "a", "refresh_token": "r", "remember_token": None})
    async with AuthContext(client=_mock_client(handler), store=store) as ctx:
        ctx.user = {"email": "a@b.com"}

        await ctx.logout()

        assert ctx.user is None
        assert ctx.access_token is None
        assert store.load() == {}


@pytest.mark.asyncio
async def test_error_without_envelope_uses_default_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    async with AuthContext(client=_mock_client(handler), language="bn") as ctx:
        with pytest.raises(AuthClientError) as exc_info:
            await ctx.login("a@b.com", "Secret123!")

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "An error occurred"
    assert ctx.error == "একটি ত্রুটি ঘটেছে"


@pytest.mark.asyncio
async def test_keep_alive_stops_when_refresh_is_rejected():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path.endswith("/auth/refresh"):
            return httpx.Response(401, json={"message": "Invalid refresh token"})
        return httpx.Response(200, json={"message": "Logged out"})

    async with AuthContext(client=_mock_client(handler), keep_alive_interval=0) as ctx:
        ctx.user = {"email": "a@b.com"}
        ctx.access_token = "access"
        ctx.refresh_token = "refresh"

        await ctx.start_keep_alive()

        assert not ctx.is_authenticated
        assert calls == ["/api/auth/refresh", "/api/auth/logout"]


@pytest.mark.asyncio
async def test_english_server_message_is_kept_for_bengali_users():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Not Found"})

    async with AuthContext(client=_mock_client(handler), language="bn") as ctx:
        with pytest.raises(AuthClientError) as exc_info:
            await ctx.login("a@b.com", "Secret123!")

    assert exc_info.value.message_bn is None
    assert ctx.error == "Not Found"


@pytest.mark.asyncio
async def test_load_profile_returns_none_when_retry_fails():
    profile_calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/refresh"):
            return httpx.Response(200, json={"accessToken": "fresh", "expiresIn": 60})
        profile_calls.append(1)
        if len(profile_calls) == 1:
            return httpx.Response(401, json={"message": "Token has expired"})
        return httpx.Response(500, json={"message": "An unexpected error occurred"})

    async with AuthContext(client=_mock_client(handler)) as ctx:
        ctx.access_token = "stale"
        ctx.refresh_token = "refresh"

        assert await ctx.load_profile() is None
        assert ctx.access_token == "fresh"
        assert len(profile_calls) == 2


@pytest.mark.asyncio
async def test_caller_owned_client_stays_open():
    http = _mock_client(lambda request: httpx.Response(200, json={}))

    async with AuthContext(client=http):
        pass

    assert not http.is_closed
    await http.aclose()
