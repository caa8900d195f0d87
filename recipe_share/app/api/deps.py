import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from recipe_share.app.core.config import get_settings
from recipe_share.app.db.session import get_db
from recipe_share.app.schemas.auth import CurrentUser
from recipe_share.app.services.identity_provider import IdentityProviderClient, verify_token
from recipe_share.app.storage.base import StorageProvider
from recipe_share.app.storage.local import LocalStorageProvider
from recipe_share.app.storage.s3 import S3StorageProvider

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"

security = HTTPBearer(auto_error=False)


def request_access_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[CurrentUser]:
    settings = get_settings()
    token = request_access_token(request, credentials)
    user = verify_token(token, settings) if token else None
    if user is None and settings.auth_demo_mode:
        logger.warning("AUTH_DEMO_MODE is on; treating unauthenticated request as %s", settings.auth_demo_user_id)
        return CurrentUser(id=settings.auth_demo_user_id, email=settings.auth_demo_user_email)
    return user


def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


def get_db_session(db: Session = Depends(get_db)) -> Session:
    return db


def get_storage_provider() -> StorageProvider:
    settings = get_settings()
    if settings.s3_bucket_name and settings.s3_public_base_url:
        return S3StorageProvider(settings.s3_bucket_name, settings.s3_public_base_url)
    return LocalStorageProvider(settings.media_root)


def get_identity_provider() -> IdentityProviderClient:
    return IdentityProviderClient(get_settings())
