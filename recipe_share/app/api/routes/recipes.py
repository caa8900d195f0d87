import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_share.app.api.deps import get_current_user, get_db_session, get_optional_user
from recipe_share.app.api.responses import message_response, paginated_response, success_response
from recipe_share.app.core.config import get_settings
from recipe_share.app.schemas.auth import CurrentUser
from recipe_share.app.schemas.recipe import RecipeCreate, RecipeUpdate
from recipe_share.app.services import recipes_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["recipes"])

MAX_PAGE_SIZE = 100


def _page_size(page_size: Optional[int]) -> int:
    return page_size or get_settings().default_page_size


def _internal_error(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.get("")
def list_recipes(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db_session),
):
    size = _page_size(page_size)
    term = search.strip() if search else None
    try:
        rows, total = recipes_service.list_feed(db, page, size, search=term or None)
    except SQLAlchemyError:
        logger.exception("Failed to fetch recipes")
        raise _internal_error("Failed to fetch recipes")
    return paginated_response(rows, page, size, total)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_recipe(
    payload: RecipeCreate,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        recipe = recipes_service.create_recipe(db, current_user.id, payload)
    except SQLAlchemyError:
        logger.exception("Failed to create recipe for user %s", current_user.id)
        raise _internal_error("Failed to create recipe")
    return success_response({"id": recipe.id, "slug": recipe.slug}, status_code=status.HTTP_201_CREATED)


@router.get("/me")
def list_my_recipes(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1, le=MAX_PAGE_SIZE),
    include_private: bool = Query(True, alias="includePrivate"),
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    size = _page_size(page_size)
    try:
        rows, total = recipes_service.list_for_owner(db, current_user.id, page, size, include_private)
    except SQLAlchemyError:
        logger.exception("Failed to fetch recipes for user %s", current_user.id)
        raise _internal_error("Failed to fetch your recipes")
    return paginated_response(rows, page, size, total)


@router.get("/{identifier}")
def get_recipe(
    identifier: str,
    db: Session = Depends(get_db_session),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
):
    viewer_id = current_user.id if current_user else None
    recipe = recipes_service.get_visible_recipe(db, identifier, viewer_id)
    return success_response(recipes_service.build_detail(db, recipe, viewer_id))


@router.put("/{identifier}")
def update_recipe(
    identifier: str,
    payload: RecipeUpdate,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_owned_recipe(db, identifier, current_user.id, "update")
    try:
        recipes_service.update_recipe(db, recipe, payload)
    except SQLAlchemyError:
        logger.exception("Failed to update recipe %s", recipe.id)
        raise _internal_error("Failed to update recipe")
    return message_response("Recipe updated successfully")


@router.delete("/{identifier}")
def delete_recipe(
    identifier: str,
    db: Session = Depends(get_db_session),
    current_user: CurrentUser = Depends(get_current_user),
):
    recipe = recipes_service.get_owned_recipe(db, identifier, current_user.id, "delete")
    try:
        recipes_service.delete_recipe(db, recipe)
    except SQLAlchemyError:
        logger.exception("Failed to delete recipe %s", recipe.id)
        raise _internal_error("Failed to delete recipe")
    return message_response("Recipe deleted successfully")
