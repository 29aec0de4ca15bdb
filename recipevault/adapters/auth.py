"""
Supabase Auth (GoTrue) session.
Holds the current user and tokens, and notifies subscribers on sign-in,
sign-out and token refresh.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from recipevault.adapters.supabase import create_http_client
from recipevault.config import Settings
from recipevault.core.abstractions import (
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    AuthListener,
)
from recipevault.core.errors import CONNECTION_MESSAGE, map_auth_error
from recipevault.core.results import ErrorCode, Ok, Result, err, not_authenticated
from recipevault.models import AuthUser

logger = logging.getLogger(__name__)


def _user_from_payload(payload: Dict[str, Any]) -> Optional[AuthUser]:
    user = payload.get("user", payload)
    if not isinstance(user, dict) or not user.get("id"):
        return None
    return AuthUser(
        id=user["id"],
        email=user.get("email") or "",
        created_at=user.get("created_at"),
    )


class _Listeners:
    """Async subscriber list shared by the session implementations."""

    def __init__(self) -> None:
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def emit(self, event: str, user: Optional[AuthUser]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, user)
            except Exception:
                logger.exception("Auth listener failed on %s", event)


class SupabaseAuthSession:
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        self._client = client if client is not None else create_http_client(
            settings, settings.auth_url
        )
        self._listeners = _Listeners()
        self._user: Optional[AuthUser] = None
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None and self._access_token is not None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, with_token: bool = False) -> Dict[str, str]:
        headers = {"apikey": self._settings.supabase_anon_key}
        if with_token and self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _send(
        self, path: str, payload: Dict[str, Any], params: Optional[Dict[str, str]] = None,
        with_token: bool = False, method: str = "POST",
    ) -> Result[Dict[str, Any]]:
        try:
            response = await self._client.request(
                method, path, json=payload, params=params, headers=self._headers(with_token)
            )
        except (httpx.TimeoutException, httpx.TransportError) as e:
            logger.warning("Auth request %s failed: %s", path, e)
            return err(ErrorCode.CONNECTION, CONNECTION_MESSAGE)

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = ""
            if isinstance(body, dict):
                message = body.get("error_description") or body.get("msg") or body.get("message") or ""
            logger.warning("Auth request %s HTTP error %s: %s", path, response.status_code, message)
            code = ErrorCode.CONNECTION if response.status_code >= 500 else ErrorCode.NOT_AUTHENTICATED
            return err(code, map_auth_error(response.status_code, message))

        if not response.content:
            return Ok({})
        try:
            body = response.json()
        except ValueError:
            return Ok({})
        return Ok(body if isinstance(body, dict) else {})

    def _store_session(self, payload: Dict[str, Any]) -> Optional[AuthUser]:
        user = _user_from_payload(payload)
        token = payload.get("access_token")
        if user is not None and token:
            self._user = user
            self._access_token = token
            self._refresh_token = payload.get("refresh_token")
        return user

    def _clear_session(self) -> None:
        self._user = None
        self._access_token = None
        self._refresh_token = None

    async def sign_in(self, email: str, password: str) -> Result[AuthUser]:
        result = await self._send(
            "/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        if not result.is_ok:
            return result
        user = self._store_session(result.value)
        if user is None or not self.is_authenticated:
            return err(ErrorCode.NOT_AUTHENTICATED, "An error occurred during login. Please try again.")
        logger.info("Signed in user %s", user.id)
        await self._listeners.emit(SIGNED_IN, user)
        return Ok(user)

    async def sign_up(self, email: str, password: str) -> Result[AuthUser]:
        """Register a user. A session starts only when the project auto-confirms emails."""
        result = await self._send("/signup", {"email": email, "password": password})
        if not result.is_ok:
            return result
        user = self._store_session(result.value)
        if user is None:
            return err(ErrorCode.UNKNOWN, "Sign up did not return a user")
        if self.is_authenticated:
            await self._listeners.emit(SIGNED_IN, user)
        return Ok(user)

    async def sign_out(self) -> Result[None]:
        """Ends the local session even when the server call fails."""
        result: Result = Ok(None)
        if self._access_token:
            result = await self._send("/logout", {}, with_token=True)
        self._clear_session()
        await self._listeners.emit(SIGNED_OUT, None)
        return Ok(None) if result.is_ok else result

    async def refresh(self) -> Result[AuthUser]:
        if not self._refresh_token:
            return not_authenticated()
        result = await self._send(
            "/token",
            {"refresh_token": self._refresh_token},
            params={"grant_type": "refresh_token"},
        )
        if not result.is_ok:
            if result.error.code == ErrorCode.NOT_AUTHENTICATED:
                self._clear_session()
                await self._listeners.emit(SIGNED_OUT, None)
            return result
        user = self._store_session(result.value)
        if user is None:
            return not_authenticated()
        await self._listeners.emit(TOKEN_REFRESHED, user)
        return Ok(user)

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> Result[None]:
        params = {"redirect_to": redirect_to} if redirect_to else None
        result = await self._send("/recover", {"email": email}, params=params)
        return Ok(None) if result.is_ok else result

    async def update_password(self, password: str) -> Result[None]:
        if not self.is_authenticated:
            return not_authenticated()
        result = await self._send("/user", {"password": password}, with_token=True, method="PUT")
        return Ok(None) if result.is_ok else result


class StaticAuthSession:
    """Fixed identity without a backend, for tests and scripts."""

    def __init__(self, user: Optional[AuthUser] = None, access_token: Optional[str] = "static-token"):
        self._user = user
        self._access_token = access_token if user is not None else None
        self._listeners = _Listeners()

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    async def sign_in_as(self, user: AuthUser, access_token: str = "static-token") -> None:
        self._user = user
        self._access_token = access_token
        await self._listeners.emit(SIGNED_IN, user)

    async def sign_out(self) -> None:
        self._user = None
        self._access_token = None
        await self._listeners.emit(SIGNED_OUT, None)
