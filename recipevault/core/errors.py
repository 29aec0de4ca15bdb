"""
Mapping of remote failures onto user-facing error results.
Covers PostgREST/GoTrue HTTP responses and httpx transport exceptions.
"""

from typing import Any, Optional

import httpx

from recipevault.core.results import Err, ErrorCode, err


CONNECTION_MESSAGE = (
    "Connection error. Please check your internet connection and try again."
)
SERVER_MESSAGE = "Server error. Please try again later."
GENERIC_MESSAGE = "Something went wrong. Please try again."
NOT_FOUND_MESSAGE = "Recipe not found"
NOT_AUTHENTICATED_MESSAGE = "User not authenticated"

# Longer remote messages are treated as internal detail
MAX_DISPLAY_MESSAGE_LENGTH = 100

# PostgREST error codes
PGRST_NO_ROWS = "PGRST116"
PGRST_JWT_EXPIRED = "PGRST301"
PGRST_JWT_INVALID = "PGRST302"


def _is_displayable(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return (
        len(message) < MAX_DISPLAY_MESSAGE_LENGTH
        and "fetch" not in lowered
        and "exception" not in lowered
        and "traceback" not in lowered
    )


def _extract_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str):
        return body
    return ""


def from_http_error(status_code: int, body: Any) -> Err:
    """Convert a failed HTTP response into an error result."""
    code = body.get("code") if isinstance(body, dict) else None
    message = _extract_message(body)

    if status_code in (401, 403) or code in (PGRST_JWT_EXPIRED, PGRST_JWT_INVALID):
        return err(
            ErrorCode.NOT_AUTHENTICATED,
            message if _is_displayable(message) else NOT_AUTHENTICATED_MESSAGE,
        )
    if status_code == 404 or code == PGRST_NO_ROWS:
        return err(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
    if status_code >= 500:
        return err(ErrorCode.CONNECTION, SERVER_MESSAGE)
    return err(
        ErrorCode.VALIDATION,
        message if _is_displayable(message) else GENERIC_MESSAGE,
    )


def from_response(response: httpx.Response) -> Err:
    try:
        body = response.json()
    except ValueError:
        body = response.text
    return from_http_error(response.status_code, body)


def from_exception(exc: Exception) -> Err:
    """Convert an exception raised inside a repository call into an error result."""
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return err(ErrorCode.CONNECTION, CONNECTION_MESSAGE)
    return err(ErrorCode.UNKNOWN, GENERIC_MESSAGE)


def map_auth_error(status_code: Optional[int], message: Optional[str]) -> str:
    """Translate a GoTrue error into a message suitable for a login form."""
    if message:
        lowered = message.lower()
        if "email not confirmed" in lowered or "confirm your email" in lowered:
            return "Please confirm your email before logging in."
        if "invalid login credentials" in lowered or "invalid email or password" in lowered:
            return "Incorrect email or password."
        if "too many requests" in lowered or "rate limit" in lowered:
            return "Too many login attempts. Please try again later."
        if "network" in lowered or "fetch" in lowered or "server" in lowered:
            return CONNECTION_MESSAGE

    if status_code == 400:
        return "Incorrect email or password."
    if status_code == 422:
        return "Please confirm your email before logging in."
    if status_code == 429:
        return "Too many login attempts. Please try again later."
    if status_code in (500, 502, 503):
        return SERVER_MESSAGE
    if message and len(message) < MAX_DISPLAY_MESSAGE_LENGTH and "fetch" not in message:
        return message
    return "An error occurred during login. Please try again."


def is_inline_auth_error(message: Optional[str]) -> bool:
    """True when the error belongs under the password field rather than above the form."""
    if not message:
        return True
    lowered = message.lower()
    return (
        "invalid login credentials" in lowered
        or "invalid email or password" in lowered
        or "incorrect email or password" in lowered
        or "email not confirmed" in lowered
        or "confirm your email" in lowered
    )
