import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from recipe_share.app.api.deps import (
    ACCESS_TOKEN_COOKIE,
    get_current_user,
    get_db_session,
    get_identity_provider,
    request_access_token,
    security,
)
from recipe_share.app.core.config import get_settings
from recipe_share.app.schemas.auth import CurrentUser, SignInRequest
from recipe_share.app.schemas.profile import ProfileRead
from recipe_share.app.services import profiles_service
from recipe_share.app.services.identity_provider import IdentityError, IdentityProviderClient, new_code_verifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_TOKEN_COOKIE = "refresh_token"
VERIFIER_COOKIE = "pkce_verifier"
VERIFIER_MAX_AGE_SECONDS = 600
AUTH_ERROR_PATH = "/auth/auth-code-error"


def _callback_url(request: Request) -> str:
    return str(request.url_for("auth_callback"))


def _safe_next(next_path: Optional[str]) -> str:
    # Same-site relative paths only; "//host" and absolute URLs fall back to the root
    if not next_path or not next_path.startswith("/") or next_path.startswith("//") or "\\" in next_path:
        return "/"
    return next_path


def _set_cookie(response, name: str, value: str, max_age: int) -> None:
    settings = get_settings()
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )


def _identity_failure(exc: Exception) -> HTTPException:
    if isinstance(exc, IdentityError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.exception("Identity provider request failed")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/sign-in")
async def sign_in(
    payload: SignInRequest,
    request: Request,
    identity: IdentityProviderClient = Depends(get_identity_provider),
):
    redirect_to = payload.redirectTo or _callback_url(request)
    try:
        if payload.provider == "google":
            verifier = new_code_verifier()
            response = JSONResponse({"url": identity.authorize_url("google", redirect_to, verifier)})
            _set_cookie(response, VERIFIER_COOKIE, verifier, VERIFIER_MAX_AGE_SECONDS)
            return response

        if payload.provider == "email" and payload.email:
            verifier = new_code_verifier()
            data = await identity.send_magic_link(payload.email, redirect_to, verifier)
            response = JSONResponse({"message": "Check your email for the login link!", "data": data})
            _set_cookie(response, VERIFIER_COOKIE, verifier, VERIFIER_MAX_AGE_SECONDS)
            return response

        if payload.provider == "phone" and payload.phone:
            data = await identity.send_phone_otp(payload.phone)
            return JSONResponse({"message": "Check your phone for the verification code!", "data": data})
    except (IdentityError, httpx.HTTPError) as exc:
        raise _identity_failure(exc)

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid provider or missing email/phone")


@router.get("/callback", name="auth_callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    next_path: Optional[str] = Query(None, alias="next"),
    identity: IdentityProviderClient = Depends(get_identity_provider),
):
    verifier = request.cookies.get(VERIFIER_COOKIE)
    if code and verifier:
        try:
            session = await identity.exchange_code(code, verifier)
        except (IdentityError, httpx.HTTPError):
            logger.exception("Authorization code exchange failed")
        else:
            settings = get_settings()
            response = RedirectResponse(_safe_next(next_path), status_code=status.HTTP_303_SEE_OTHER)
            _set_cookie(response, ACCESS_TOKEN_COOKIE, session["access_token"], settings.auth_cookie_max_age_seconds)
            if session.get("refresh_token"):
                _set_cookie(
                    response, REFRESH_TOKEN_COOKIE, session["refresh_token"], settings.auth_cookie_max_age_seconds
                )
            response.delete_cookie(VERIFIER_COOKIE, path="/")
            user = session.get("user") or {}
            logger.info("Session established for user %s", user.get("id"))
            return response

    return RedirectResponse(AUTH_ERROR_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/sign-out")
async def sign_out(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity: IdentityProviderClient = Depends(get_identity_provider),
):
    token = request_access_token(request, credentials)
    if token and get_settings().identity_base_url:
        try:
            await identity.sign_out(token)
        except (IdentityError, httpx.HTTPError) as exc:
            logger.warning("Provider sign-out failed; clearing local session anyway: %s", exc)
    response = JSONResponse({"message": "Signed out successfully"})
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, VERIFIER_COOKIE):
        response.delete_cookie(name, path="/")
    return response


@router.get("/user")
def get_user(
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    profile = profiles_service.get_profile(db, current_user.id)
    return {
        "user": {
            "id": current_user.id,
            "email": current_user.email,
            "profile": ProfileRead.model_validate(profile).model_dump(mode="json") if profile else None,
        }
    }
