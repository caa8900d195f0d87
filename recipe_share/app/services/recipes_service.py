import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from recipe_share.app.db import models
from recipe_share.app.schemas.recipe import (
    FeedRow,
    MyRecipeRow,
    RecipeChildren,
    RecipeCreate,
    RecipeDetail,
    RecipeUpdate,
)
from recipe_share.app.services.slugs import unique_slug

logger = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# Parent-first insert order for child collections
CHILD_MODELS = (
    ("ingredients", models.Ingredient),
    ("steps", models.Step),
    ("substitutions", models.Substitution),
    ("images", models.Image),
)


def _insert_batch(db: Session, model, recipe_id: str, rows: Iterable[Dict[str, Any]]) -> None:
    db.add_all([model(recipe_id=recipe_id, **row) for row in rows])
    db.flush()


def _insert_children(db: Session, recipe_id: str, data: RecipeChildren) -> None:
    for attr, model in CHILD_MODELS:
        rows = [row.model_dump() for row in getattr(data, attr)]
        if rows:
            _insert_batch(db, model, recipe_id, rows)


def create_recipe(db: Session, user_id: str, data: RecipeCreate) -> models.Recipe:
    """Insert a recipe and all of its children in one transaction; the caller always owns it."""
    title = data.resolved_title()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")

    fields = data.recipe.model_dump(exclude_unset=True, exclude={"title", "public"})
    recipe = models.Recipe(
        user_id=user_id,
        title=title,
        slug=unique_slug(db, title),
        public=True if data.recipe.public is None else data.recipe.public,
        **fields,
    )
    try:
        db.add(recipe)
        db.flush()
        _insert_children(db, recipe.id, data)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(recipe)
    logger.info("Created recipe %s (%s) for user %s", recipe.id, recipe.slug, user_id)
    return recipe


def update_recipe(db: Session, recipe: models.Recipe, data: RecipeUpdate) -> models.Recipe:
    """Apply scalar fields and replace every child collection; owner and slug never change."""
    fields = data.recipe.model_dump(exclude_unset=True)
    try:
        for field, value in fields.items():
            if field in ("title", "public") and value is None:
                continue
            if field == "title":
                value = value.strip() or recipe.title
            setattr(recipe, field, value)
        for _, model in CHILD_MODELS:
            db.execute(delete(model).where(model.recipe_id == recipe.id).execution_options(synchronize_session=False))
        db.flush()
        _insert_children(db, recipe.id, data)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(recipe)
    return recipe


def delete_recipe(db: Session, recipe: models.Recipe) -> None:
    try:
        db.delete(recipe)
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_recipe_by_identifier(db: Session, identifier: str) -> Optional[models.Recipe]:
    if UUID_RE.match(identifier):
        stmt = select(models.Recipe).where(models.Recipe.id == identifier.lower())
    else:
        stmt = select(models.Recipe).where(models.Recipe.slug == identifier)
    return db.scalars(stmt).first()


def get_visible_recipe(db: Session, identifier: str, viewer_id: Optional[str]) -> models.Recipe:
    """
    Resolve a recipe the viewer may read.

    Private recipes look missing to anonymous callers; signed-in non-owners
    get an explicit forbidden.
    """
    recipe = get_recipe_by_identifier(db, identifier)
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    if not recipe.public and recipe.user_id != viewer_id:
        if viewer_id is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Recipe is private")
    return recipe


def get_owned_recipe(db: Session, identifier: str, user_id: str, action: str) -> models.Recipe:
    recipe = get_recipe_by_identifier(db, identifier)
    if recipe is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipe not found")
    if recipe.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the recipe author can {action} this recipe",
        )
    return recipe


def like_count(db: Session, recipe_id: str) -> int:
    return db.scalar(select(func.count(models.Like.id)).where(models.Like.recipe_id == recipe_id)) or 0


def liked_by(db: Session, recipe_id: str, user_id: Optional[str]) -> bool:
    if user_id is None:
        return False
    stmt = select(models.Like.id).where(models.Like.recipe_id == recipe_id, models.Like.user_id == user_id)
    return db.scalars(stmt).first() is not None


def build_detail(db: Session, recipe: models.Recipe, viewer_id: Optional[str]) -> RecipeDetail:
    detail = RecipeDetail.model_validate(recipe)
    return detail.model_copy(
        update={
            "like_count": like_count(db, recipe.id),
            "liked_by_me": liked_by(db, recipe.id, viewer_id),
            "isOwner": viewer_id is not None and recipe.user_id == viewer_id,
        }
    )


def _feed_row(recipe: models.Recipe, handle: Optional[str]) -> FeedRow:
    minutes = recipe.total_time_min if recipe.total_time_min is not None else recipe.active_time_min
    return FeedRow(
        id=recipe.id,
        slug=recipe.slug,
        title=recipe.title,
        hero_image_url=recipe.hero_image_url,
        minutes=minutes,
        diet_tags=recipe.diet_tags,
        created_at=recipe.created_at,
        author_handle=handle,
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_feed(db: Session, page: int, page_size: int, search: Optional[str] = None) -> Tuple[List[FeedRow], int]:
    conditions = [models.Recipe.public.is_(True)]
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(
            or_(
                models.Recipe.title.ilike(pattern, escape="\\"),
                models.Recipe.description_md.ilike(pattern, escape="\\"),
            )
        )

    total = db.scalar(select(func.count(models.Recipe.id)).where(*conditions)) or 0
    stmt = (
        select(models.Recipe, models.Profile.handle)
        .outerjoin(models.Profile, models.Profile.id == models.Recipe.user_id)
        .where(*conditions)
        .order_by(models.Recipe.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = [_feed_row(recipe, handle) for recipe, handle in db.execute(stmt).all()]
    return rows, total


def list_for_owner(
    db: Session,
    user_id: str,
    page: int,
    page_size: int,
    include_private: bool = True,
) -> Tuple[List[MyRecipeRow], int]:
    conditions = [models.Recipe.user_id == user_id]
    if not include_private:
        conditions.append(models.Recipe.public.is_(True))

    total = db.scalar(select(func.count(models.Recipe.id)).where(*conditions)) or 0
    stmt = (
        select(models.Recipe)
        .where(*conditions)
        .order_by(models.Recipe.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return [MyRecipeRow.model_validate(recipe) for recipe in db.scalars(stmt).all()], total
