import logging
import re
import time
from io import BytesIO
from typing import Any, Dict, List

from PIL import Image, UnidentifiedImageError

from recipe_share.app.core.config import get_settings
from recipe_share.app.services import llm_client
from recipe_share.app.storage.base import StorageProvider

logger = logging.getLogger(__name__)

PROMPT_INGREDIENT_LIMIT = 5

IMAGE_PROMPT_TEMPLATE = (
    "Generate a 16x16 pixel-art image in the style of crocheted granny squares, with bright, saturated "
    "yet slightly pastel colors, as if each pixel were a small crocheted stitch. The scene should depict "
    "{dish} with simple, blocky shapes that clearly show the main ingredients ({ingredients}) while keeping "
    "a cozy, handmade aesthetic. Maintain a balanced color palette with clear contrast between ingredients. "
    "The background should be soft and unobtrusive, often a solid or subtly checkered pastel color, to "
    "highlight the food. The final look should be cute, vibrant, and highly stylized, prioritizing charm and "
    "recognizability over realism. Every pixel should feel like a piece of crochet yarn, creating a soft, "
    "tactile feel."
)


def build_image_prompt(recipe: Dict[str, Any], ingredients: List[Any]) -> str:
    title = str(recipe.get("title") or "a homemade dish")
    description = recipe.get("description_md")
    dish = f"{title}: {description}" if description else title
    items = [
        str(ingredient.get("item"))
        for ingredient in ingredients[:PROMPT_INGREDIENT_LIMIT]
        if isinstance(ingredient, dict) and ingredient.get("item")
    ]
    return IMAGE_PROMPT_TEMPLATE.format(dish=dish, ingredients=", ".join(items))


def build_image_key(title: str) -> str:
    prefix = get_settings().s3_image_prefix.strip("/")
    slug = re.sub(r"[^a-z0-9]", "-", (title or "recipe").lower())
    return f"{prefix}/{slug}-{int(time.time() * 1000)}.png"


def ensure_png(data: bytes) -> bytes:
    """Reject undecodable bytes and re-encode anything that is not already PNG."""
    try:
        with Image.open(BytesIO(data)) as probe:
            probe.verify()
        img = Image.open(BytesIO(data))
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Generated image could not be decoded") from exc
    if img.format == "PNG":
        return data
    out = BytesIO()
    img.convert("RGBA").save(out, format="PNG")
    return out.getvalue()


async def generate_recipe_image(analyzed_recipe: Dict[str, Any], storage: StorageProvider) -> Dict[str, str]:
    """Generate a hero image for a draft, store it, and return {imageUrl, prompt}."""
    recipe = analyzed_recipe["recipe"]
    ingredients = analyzed_recipe.get("ingredients") or []
    prompt = build_image_prompt(recipe, ingredients if isinstance(ingredients, list) else [])

    temporary_url = await llm_client.generate_image(prompt)
    data = ensure_png(await llm_client.download_bytes(temporary_url))
    key = build_image_key(str(recipe.get("title") or "recipe"))
    public_url = storage.save_bytes(key, data, "image/png")
    logger.info("Stored generated image for %r at %s", recipe.get("title"), public_url)
    return {"imageUrl": public_url, "prompt": prompt}
