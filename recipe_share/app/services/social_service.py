import logging
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recipe_share.app.db import models
from recipe_share.app.schemas.recipe import CommentCreate, ImageAppend
from recipe_share.app.services.recipes_service import like_count

logger = logging.getLogger(__name__)


def toggle_like(db: Session, recipe: models.Recipe, user_id: str) -> Tuple[bool, int]:
    """Flip the caller's like; returns (liked, like_count)."""
    stmt = select(models.Like).where(models.Like.recipe_id == recipe.id, models.Like.user_id == user_id)
    existing = db.scalars(stmt).first()
    try:
        if existing is not None:
            db.delete(existing)
            liked = False
        else:
            db.add(models.Like(recipe_id=recipe.id, user_id=user_id))
            liked = True
        db.commit()
    except IntegrityError:
        # A concurrent request already inserted the same pair
        db.rollback()
        liked = True
    return liked, like_count(db, recipe.id)


def add_comment(db: Session, recipe: models.Recipe, user_id: str, data: CommentCreate) -> models.Comment:
    body = (data.body or "").strip()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment body is required")
    comment = models.Comment(recipe_id=recipe.id, user_id=user_id, body_md=body)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, recipe: models.Recipe, comment_id: str, user_id: str) -> None:
    comment = db.get(models.Comment, comment_id)
    if comment is None or comment.recipe_id != recipe.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    if comment.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the comment author can delete this comment")
    db.delete(comment)
    db.commit()


def append_image(db: Session, recipe: models.Recipe, data: ImageAppend) -> models.Image:
    image = models.Image(recipe_id=recipe.id, url=data.url, caption=data.caption)
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info("Appended image %s to recipe %s", image.id, recipe.id)
    return image
