from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from recipevault.core.dependencies import AppContainer, get_container
from recipevault.core.errors import is_inline_auth_error
from recipevault.routes.api import STATUS_BY_CODE, unwrap

router = APIRouter(prefix="/api/auth")


class Credentials(BaseModel):
    email: str
    password: str


class PasswordResetRequest(BaseModel):
    email: str
    redirect_to: Optional[str] = None


def _session_body(container: AppContainer) -> dict:
    user = container.auth.current_user
    return {
        "is_authenticated": container.auth.is_authenticated,
        "user": user.model_dump() if user else None,
    }


@router.get("/session")
def get_session(container: AppContainer = Depends(get_container)):
    return _session_body(container)


@router.post("/sign-in")
async def sign_in(
    credentials: Credentials,
    container: AppContainer = Depends(get_container),
):
    """Sign in with email and password. Triggers the one-time legacy migration."""
    result = await container.auth.sign_in(credentials.email, credentials.password)
    if not result.is_ok:
        detail = result.error.to_dict()
        detail["inline"] = is_inline_auth_error(result.error.message)
        raise HTTPException(status_code=STATUS_BY_CODE.get(result.error.code, 400), detail=detail)
    return _session_body(container)


@router.post("/sign-up")
async def sign_up(
    credentials: Credentials,
    container: AppContainer = Depends(get_container),
):
    user = unwrap(await container.auth.sign_up(credentials.email, credentials.password))
    body = _session_body(container)
    body["user"] = user.model_dump()
    body["confirmation_required"] = not container.auth.is_authenticated
    return body


@router.post("/sign-out")
async def sign_out(container: AppContainer = Depends(get_container)):
    await container.auth.sign_out()
    return {"message": "Signed out", "status": "success"}


@router.post("/reset-password")
async def reset_password(
    request: PasswordResetRequest,
    container: AppContainer = Depends(get_container),
):
    unwrap(await container.auth.reset_password(request.email, request.redirect_to))
    return {"message": "Password reset email sent", "status": "success"}
