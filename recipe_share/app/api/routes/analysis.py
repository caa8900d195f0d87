import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from recipe_share.app.api.deps import get_current_user, get_storage_provider
from recipe_share.app.api.responses import success_response
from recipe_share.app.schemas.auth import CurrentUser
from recipe_share.app.services import image_service, recipe_analyzer
from recipe_share.app.storage.base import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["analysis"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class AnalyzeRequest(BaseModel):
    text: Optional[str] = None


class GenerateImageRequest(BaseModel):
    analyzedRecipe: Optional[Dict[str, Any]] = None


@router.post("/analyze")
async def analyze_recipe(
    payload: AnalyzeRequest,
    current_user: CurrentUser = Depends(get_current_user),
):
    text = payload.text or ""
    if len(text.strip()) < recipe_analyzer.MIN_TEXT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Recipe text must be at least 10 characters long",
        )
    logger.info("Starting recipe analysis for user %s (%d chars)", current_user.id, len(text))
    return StreamingResponse(
        recipe_analyzer.stream_recipe_analysis(text),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/generate-image")
async def generate_image(
    payload: GenerateImageRequest,
    current_user: CurrentUser = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage_provider),
):
    analyzed = payload.analyzedRecipe
    recipe = analyzed.get("recipe") if analyzed else None
    if not isinstance(recipe, dict) or not str(recipe.get("title") or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Analyzed recipe data is required")
    try:
        result = await image_service.generate_recipe_image(analyzed, storage)
    except (RuntimeError, ValueError, httpx.HTTPError):
        logger.exception("Image generation failed for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate and upload image",
        )
    return success_response(result)
