import logging
import math
from typing import Any, Dict, List, Optional

from recipe_share.app.services import json_repair
from recipe_share.app.services.quantity_parser import parse_quantity

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Recipe in Progress"
FAILED_TITLE = "Recipe Analysis Failed"
FAILED_DESCRIPTION = "There was an issue parsing the recipe. Please try again."

RECIPE_KEYS = (
    "title",
    "description_md",
    "yield_text",
    "total_time_min",
    "active_time_min",
    "cuisine",
    "difficulty",
    "diet_tags",
    "allergen_tags",
    "hero_image_url",
    "nutrition_json",
    "public",
)
_DIFFICULTIES = {"easy", "medium", "hard"}


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    number = parse_quantity(value)
    if number is None:
        return None
    return int(round(number))


def _coerce_tags(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",")]
    if not isinstance(value, list):
        return None
    return [str(tag) for tag in value if tag not in (None, "")]


def _normalize_recipe(raw: Dict[str, Any]) -> Dict[str, Any]:
    recipe = dict(raw)
    title = recipe.get("title")
    recipe["title"] = title.strip() if isinstance(title, str) and title.strip() else DEFAULT_TITLE
    if not isinstance(recipe.get("public"), bool):
        recipe["public"] = True

    for key in ("total_time_min", "active_time_min"):
        if key in recipe:
            minutes = _coerce_int(recipe[key])
            recipe[key] = minutes if minutes is not None and minutes >= 0 else None

    if "difficulty" in recipe:
        difficulty = recipe["difficulty"]
        difficulty = difficulty.strip().lower() if isinstance(difficulty, str) else None
        recipe["difficulty"] = difficulty if difficulty in _DIFFICULTIES else None

    for key in ("diet_tags", "allergen_tags"):
        if key in recipe:
            recipe[key] = _coerce_tags(recipe[key])

    if "nutrition_json" in recipe and not isinstance(recipe["nutrition_json"], dict):
        recipe["nutrition_json"] = None
    return recipe


def _normalize_ordered(rows: Any) -> List[Dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    normalized = []
    for position, row in enumerate(r for r in rows if isinstance(r, dict)):
        item = dict(row)
        idx = _coerce_int(item.get("idx"))
        item["idx"] = idx if idx is not None and idx >= 0 else position
        normalized.append(item)
    return normalized


def _normalize_ingredients(rows: Any) -> List[Dict[str, Any]]:
    ingredients = _normalize_ordered(rows)
    for ingredient in ingredients:
        if "quantity" in ingredient:
            ingredient["quantity"] = parse_quantity(ingredient["quantity"])
        if not isinstance(ingredient.get("item"), str):
            ingredient["item"] = "" if ingredient.get("item") is None else str(ingredient["item"])
    return ingredients


def _normalize_steps(rows: Any) -> List[Dict[str, Any]]:
    steps = _normalize_ordered(rows)
    for step in steps:
        if "timer_seconds" in step:
            step["timer_seconds"] = _coerce_int(step["timer_seconds"])
        if "temperature_c" in step:
            step["temperature_c"] = parse_quantity(step["temperature_c"])
    return steps


def _normalize_substitutions(rows: Any) -> List[Dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    substitutions = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        item = dict(row)
        item["ingredient_idx"] = _coerce_int(item.get("ingredient_idx"))
        substitutions.append(item)
    return substitutions


def _drop_non_finite(value: Any) -> Any:
    # NaN and Infinity are not valid JSON for browser clients
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _drop_non_finite(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_drop_non_finite(item) for item in value]
    return value


def normalize_draft(data: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a parsed model object into {recipe, ingredients, steps, substitutions, images}."""
    raw_recipe = data.get("recipe")
    if not isinstance(raw_recipe, dict):
        # Some models flatten the recipe fields into the top-level object
        raw_recipe = {key: data[key] for key in RECIPE_KEYS if key in data}
    images = data.get("images")
    draft = {
        "recipe": _normalize_recipe(raw_recipe),
        "ingredients": _normalize_ingredients(data.get("ingredients")),
        "steps": _normalize_steps(data.get("steps")),
        "substitutions": _normalize_substitutions(data.get("substitutions")),
        "images": [image for image in images if isinstance(image, dict)] if isinstance(images, list) else [],
    }
    return _drop_non_finite(draft)


def failed_draft() -> Dict[str, Any]:
    return {
        "recipe": {"title": FAILED_TITLE, "description_md": FAILED_DESCRIPTION, "public": True},
        "ingredients": [],
        "steps": [],
        "substitutions": [],
        "images": [],
    }


def parse_recipe_draft(accumulated: str) -> Dict[str, Any]:
    """
    Build the best draft available from the model output so far.

    Never raises: a repaired parse is preferred, then field-level extraction,
    and finally a placeholder draft that tells the user to retry.
    """
    try:
        parsed = json_repair.parse_partial_json(accumulated)
        if not isinstance(parsed, dict):
            logger.warning("Model output did not yield a JSON object; extracting fields. raw=%s", accumulated[:500])
            parsed = {"recipe": json_repair.extract_recipe_fields(accumulated)}
        return normalize_draft(parsed)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to assemble recipe draft")
        return failed_draft()
