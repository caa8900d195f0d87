from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recipe_share.app.db import models
from recipe_share.app.schemas.profile import ProfileCreate, validate_display_name, validate_handle


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def get_profile(db: Session, user_id: str) -> Optional[models.Profile]:
    return db.get(models.Profile, user_id)


def handle_taken(db: Session, handle: str) -> bool:
    stmt = select(models.Profile.id).where(func.lower(models.Profile.handle) == handle.lower())
    return db.scalars(stmt).first() is not None


def create_profile(db: Session, user_id: str, data: ProfileCreate) -> models.Profile:
    handle = (data.handle or "").strip()
    display_name = (data.displayName or "").strip()
    if not handle or not display_name:
        raise _bad_request("Handle and display name are required")

    error = validate_handle(handle) or validate_display_name(display_name)
    if error:
        raise _bad_request(error)

    if get_profile(db, user_id) is not None:
        raise _bad_request("User already has a profile")
    if handle_taken(db, handle):
        raise _bad_request("Handle is already taken")

    profile = models.Profile(id=user_id, handle=handle.lower(), display_name=display_name, avatar_url=None)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race for the same handle
        db.rollback()
        raise _bad_request("Handle is already taken")
    db.refresh(profile)
    return profile
