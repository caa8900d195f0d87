"""
Client for the hosted identity provider (GoTrue-compatible REST API).

Sign-in flows use PKCE: the verifier stays with the browser in an HttpOnly
cookie and only its S256 challenge is sent to the provider. Access tokens the
provider issues are verified locally with the shared JWT secret.
"""
import base64
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from jose import JWTError, jwt

from recipe_share.app.core.config import Settings, get_settings
from recipe_share.app.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)


class IdentityError(RuntimeError):
    pass


def new_code_verifier() -> str:
    return secrets.token_urlsafe(64)[:96]


def code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_token(token: str, settings: Optional[Settings] = None) -> Optional[CurrentUser]:
    """Return the token's user, or None when the token is missing, expired or forged."""
    settings = settings or get_settings()
    if not token:
        return None
    options = {} if settings.auth_jwt_audience else {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except JWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    return CurrentUser(id=str(sub), email=payload.get("email"))


class IdentityProviderClient:
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def base_url(self) -> str:
        if not self.settings.identity_base_url:
            raise IdentityError("IDENTITY_BASE_URL is not configured")
        return self.settings.identity_base_url.rstrip("/")

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.identity_anon_key:
            headers["apikey"] = self.settings.identity_anon_key
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0), transport=self._transport)

    async def _post(self, path: str, body: Dict[str, Any], params: Optional[Dict[str, str]] = None,
                    access_token: Optional[str] = None) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(
                f"{self.base_url}{path}",
                params=params,
                json=body,
                headers=self._headers(access_token),
            )
        try:
            data = resp.json() if resp.content else {}
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = ""
            if isinstance(data, dict):
                message = data.get("error_description") or data.get("msg") or data.get("message") or ""
            logger.warning("Identity provider %s failed with status %s: %s", path, resp.status_code, message)
            raise IdentityError(message or f"Identity provider request failed ({resp.status_code})")
        return data if isinstance(data, dict) else {}

    def authorize_url(self, provider: str, redirect_to: str, verifier: str) -> str:
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": code_challenge(verifier),
                "code_challenge_method": "s256",
            }
        )
        return f"{self.base_url}/auth/v1/authorize?{query}"

    async def send_magic_link(self, email: str, redirect_to: str, verifier: str) -> Dict[str, Any]:
        body = {
            "email": email,
            "create_user": True,
            "code_challenge": code_challenge(verifier),
            "code_challenge_method": "s256",
        }
        return await self._post("/auth/v1/otp", body, params={"redirect_to": redirect_to})

    async def send_phone_otp(self, phone: str) -> Dict[str, Any]:
        return await self._post("/auth/v1/otp", {"phone": phone, "create_user": True})

    async def exchange_code(self, auth_code: str, verifier: str) -> Dict[str, Any]:
        """Trade an authorization code for a session ({access_token, refresh_token, user})."""
        session = await self._post(
            "/auth/v1/token",
            {"auth_code": auth_code, "code_verifier": verifier},
            params={"grant_type": "pkce"},
        )
        if not session.get("access_token"):
            raise IdentityError("Identity provider returned no access token")
        return session

    async def sign_out(self, access_token: str) -> None:
        await self._post("/auth/v1/logout", {}, access_token=access_token)
