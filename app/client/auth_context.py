"""Client-side auth context for driving the auth API from a UI or script."""

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

# Seconds between background token refreshes
KEEP_ALIVE_INTERVAL = 300

# Session lifetimes mirrored from the server defaults, in seconds
SESSION_TIMEOUT = 24 * 60 * 60
REMEMBER_ME_SESSION_TIMEOUT = 7 * 24 * 60 * 60

SUPPORTED_LANGUAGES = ("en", "bn")

DEFAULT_ERROR = {"en": "An error occurred", "bn": "একটি ত্রুটি ঘটেছে"}


class AuthClientError(Exception):
    """Error returned by the auth API, carrying both message languages."""

    def __init__(self, message: str, status_code: int | None = None, message_bn: str | None = None):
        """Initialize with the server message and HTTP status."""
        self.message = message
        self.message_bn = message_bn
        self.status_code = status_code
        super().__init__(message)

    def localized(self, language: str) -> str:
        """Message in the requested language, falling back to English."""
        if language == "bn" and self.message_bn:
            return self.message_bn
        return self.message


class TokenStore:
    """In-memory token storage."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def load(self) -> dict[str, Any]:
        """Return the stored tokens."""
        return dict(self._data)

    def save(self, data: dict[str, Any]) -> None:
        """Replace the stored tokens."""
        self._data = dict(data)

    def clear(self) -> None:
        """Forget every stored token."""
        self._data = {}


class FileTokenStore(TokenStore):
    """Token storage persisted as a JSON file, like browser local storage."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("token_store_unreadable", path=str(self.path), error=str(e))
            return {}

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class AuthContext:
    """
    Holds the signed-in user and tokens and talks to the auth endpoints.

    Operations update ``is_loading`` while a request is in flight and keep the
    last failure in ``error`` (already in the selected language).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001/api",
        store: TokenStore | None = None,
        language: str = "en",
        client: httpx.AsyncClient | None = None,
        keep_alive_interval: float = KEEP_ALIVE_INTERVAL,
    ):
        """
        Initialize the context.

        Args:
            base_url: API base URL including the prefix
            store: Where tokens are kept between runs (in-memory by default)
            language: Preferred message language, "en" or "bn"
            client: Pre-built HTTP client, e.g. one bound to a test transport
            keep_alive_interval: Seconds between background refreshes
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")

        self.language = language
        self.store = store or TokenStore()
        self.keep_alive_interval = keep_alive_interval
        # A client passed in stays owned by the caller
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=30.0)
        self._keep_alive_task: asyncio.Task | None = None

        self.user: dict[str, Any] | None = None
        self.is_loading = False
        self.error: str | None = None
        self.session_timeout: int | None = None

        tokens = self.store.load()
        self.access_token: str | None = tokens.get("access_token")
        self.refresh_token: str | None = tokens.get("refresh_token")
        self.remember_token: str | None = tokens.get("remember_token")

    async def __aenter__(self) -> "AuthContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def is_authenticated(self) -> bool:
        """Whether a user is signed in."""
        return self.user is not None and self.access_token is not None

    def set_language(self, language: str) -> None:
        """Switch the language used for error messages."""
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self.language = language

    def _persist(self) -> None:
        self.store.save(
            {
                "access_token": self.access_token,
                "refresh_token": self.refresh_token,
                "remember_token": self.remember_token,
            }
        )

    def _clear_local_state(self) -> None:
        self.user = None
        self.access_token = None
        self.refresh_token = None
        self.remember_token = None
        self.session_timeout = None
        self.store.clear()

    def _auth_headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        authenticated: bool = False,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            AuthClientError: If the server answered with an error status or
                could not be reached
        """
        self.is_loading = True
        self.error = None
        try:
            response = await self._client.request(
                method,
                path,
                json=payload,
                headers=self._auth_headers() if authenticated else None,
            )
        except httpx.HTTPError as e:
            error = AuthClientError(
                f"Could not reach the server: {e}",
                message_bn="সার্ভারের সাথে সংযোগ করা যায়নি",
            )
            self.error = error.localized(self.language)
            raise error from e
        finally:
            self.is_loading = False

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("message")
            error = AuthClientError(
                message or DEFAULT_ERROR["en"],
                status_code=response.status_code,
                message_bn=body.get("messageBn") or (None if message else DEFAULT_ERROR["bn"]),
            )
            self.error = error.localized(self.language)
            raise error

        return response.json()

    def _apply_login(self, data: dict[str, Any]) -> None:
        self.user = data["user"]
        self.access_token = data["accessToken"]
        self.refresh_token = data["refreshToken"]
        if data.get("rememberToken"):
            self.remember_token = data["rememberToken"]
        self.session_timeout = (
            REMEMBER_ME_SESSION_TIMEOUT if data.get("rememberMe") else SESSION_TIMEOUT
        )
        self._persist()

    async def login(self, identifier: str, password: str, remember_me: bool = False) -> dict:
        """
        Sign in with an email or phone number.

        Returns:
            The signed-in user

        Raises:
            AuthClientError: If the credentials are rejected
        """
        data = await self._request(
            "POST",
            "/auth/login",
            {"identifier": identifier, "password": password, "rememberMe": remember_me},
        )
        self._apply_login(data)
        logger.info("client_logged_in", remember_me=remember_me)
        return self.user

    async def register(
        self,
        password: str,
        email: str | None = None,
        phone: str | None = None,
        first_name: str = "",
        last_name: str = "",
    ) -> dict:
        """Create an account; the user still has to log in afterwards."""
        payload: dict[str, Any] = {
            "password": password,
            "firstName": first_name,
            "lastName": last_name,
        }
        if email:
            payload["email"] = email
        if phone:
            payload["phone"] = phone

        data = await self._request("POST", "/auth/register", payload)
        return data["user"]

    async def logout(self, all_devices: bool = False) -> None:
        """
        Sign out.

        Local state is cleared even when the server call fails.
        """
        try:
            if self.access_token:
                await self._request(
                    "POST",
                    "/auth/logout",
                    {"refreshToken": self.refresh_token, "allDevices": all_devices},
                    authenticated=True,
                )
        except AuthClientError as e:
            logger.warning("client_logout_failed", error=e.message)
        finally:
            self.stop_keep_alive()
            self._clear_local_state()

    async def extend_session(self) -> bool:
        """
        Get a fresh access token.

        Returns:
            True on success; on failure the context is logged out
        """
        if not self.refresh_token:
            await self.logout()
            return False

        try:
            data = await self._request(
                "POST", "/auth/refresh", {"refreshToken": self.refresh_token}
            )
        except AuthClientError as e:
            logger.info("client_session_extension_failed", error=e.message)
            await self.logout()
            return False

        self.access_token = data["accessToken"]
        self.session_timeout = (
            REMEMBER_ME_SESSION_TIMEOUT if self.remember_token else SESSION_TIMEOUT
        )
        self._persist()
        return True

    async def restore_from_remember_me(self) -> bool:
        """
        Sign back in with the stored remember-me token.

        Returns:
            True if a session was restored
        """
        if not self.remember_token:
            return False

        try:
            data = await self._request(
                "POST", "/auth/refresh-from-remember-me", {"token": self.remember_token}
            )
        except AuthClientError as e:
            logger.info("client_remember_me_restore_failed", error=e.message)
            self._clear_local_state()
            return False

        self._apply_login(data)
        return True

    async def load_profile(self) -> dict | None:
        """
        Fetch the current user, refreshing the access token once if it expired.

        Returns:
            The user, or None when not signed in
        """
        if not self.access_token:
            return None

        try:
            self.user = await self._request("GET", "/auth/profile", authenticated=True)
        except AuthClientError as e:
            if e.status_code != 401 or not await self.extend_session():
                return None
            try:
                self.user = await self._request("GET", "/auth/profile", authenticated=True)
            except AuthClientError:
                return None

        return self.user

    async def keep_alive(self) -> None:
        """Refresh the access token periodically until the session ends."""
        while self.is_authenticated:
            await asyncio.sleep(self.keep_alive_interval)
            if not self.is_authenticated or not await self.extend_session():
                break

    def start_keep_alive(self) -> asyncio.Task:
        """Run ``keep_alive`` in the background."""
        if self._keep_alive_task is None or self._keep_alive_task.done():
            self._keep_alive_task = asyncio.create_task(self.keep_alive())
        return self._keep_alive_task

    def stop_keep_alive(self) -> None:
        """Cancel the background refresh loop."""
        task = self._keep_alive_task
        self._keep_alive_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def aclose(self) -> None:
        """Stop background work and close the HTTP client."""
        self.stop_keep_alive()
        if self._owns_client:
            await self._client.aclose()
