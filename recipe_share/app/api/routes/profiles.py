import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_share.app.api.deps import get_current_user, get_db_session
from recipe_share.app.api.responses import success_response
from recipe_share.app.schemas.auth import CurrentUser
from recipe_share.app.schemas.profile import ProfileCreate, ProfileRead
from recipe_share.app.services import profiles_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_profile(
    payload: ProfileCreate,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        profile = profiles_service.create_profile(db, current_user.id, payload)
    except SQLAlchemyError:
        logger.exception("Failed to create profile for user %s", current_user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create profile")
    return success_response(ProfileRead.model_validate(profile), status_code=status.HTTP_201_CREATED)


@router.get("")
def get_my_profile(
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        profile = profiles_service.get_profile(db, current_user.id)
    except SQLAlchemyError:
        logger.exception("Failed to fetch profile for user %s", current_user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch profile")
    return success_response(
        {
            "profile": ProfileRead.model_validate(profile) if profile else None,
            "hasProfile": profile is not None,
        }
    )
