import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_share.app.api.deps import get_current_user, get_db_session
from recipe_share.app.api.responses import message_response, success_response
from recipe_share.app.schemas.auth import CurrentUser
from recipe_share.app.schemas.recipe import CommentCreate, CommentRead, ImageAppend, ImageRead
from recipe_share.app.services import recipes_service, social_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes/{identifier}", tags=["social"])


@router.post("/like")
def toggle_like(
    identifier: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_visible_recipe(db, identifier, current_user.id)
    try:
        liked, count = social_service.toggle_like(db, recipe, current_user.id)
    except SQLAlchemyError:
        logger.exception("Failed to toggle like on recipe %s", recipe.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like")
    return success_response({"liked": liked, "like_count": count})


@router.post("/comments", status_code=status.HTTP_201_CREATED)
def add_comment(
    identifier: str,
    payload: CommentCreate,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_visible_recipe(db, identifier, current_user.id)
    try:
        comment = social_service.add_comment(db, recipe, current_user.id, payload)
    except SQLAlchemyError:
        logger.exception("Failed to add comment on recipe %s", recipe.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add comment")
    return success_response(CommentRead.model_validate(comment), status_code=status.HTTP_201_CREATED)


@router.delete("/comments/{comment_id}")
def delete_comment(
    identifier: str,
    comment_id: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_visible_recipe(db, identifier, current_user.id)
    social_service.delete_comment(db, recipe, comment_id, current_user.id)
    return message_response("Comment deleted successfully")


@router.post("/images", status_code=status.HTTP_201_CREATED)
def append_image(
    identifier: str,
    payload: ImageAppend,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_owned_recipe(db, identifier, current_user.id, "update")
    image = social_service.append_image(db, recipe, payload)
    return success_response(ImageRead.model_validate(image), status_code=status.HTTP_201_CREATED)
