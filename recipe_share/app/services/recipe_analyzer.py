import logging
from typing import AsyncIterator

import httpx

from recipe_share.app.services import llm_client
from recipe_share.app.services.llm_client import LLMError
from recipe_share.app.services.recipe_draft import parse_recipe_draft
from recipe_share.app.services.sse import format_sse

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10
STATUS_MESSAGE = "Analyzing recipe..."
FAILURE_MESSAGE = "Failed to analyze recipe"

SYSTEM_PROMPT = (
    "You turn free-form recipe descriptions into structured recipe data.\n\n"
    "Output rules:\n"
    "- Reply with exactly one JSON object. Start with { and end with }.\n"
    "- No markdown, no code fences, no commentary before or after the object.\n"
    "- Use the field names below exactly. Use null when a value is unknown.\n\n"
    "Shape:\n"
    "{\n"
    '  "recipe": {\n'
    '    "title": string,\n'
    '    "description_md": string|null,\n'
    '    "yield_text": string|null,\n'
    '    "total_time_min": number|null,\n'
    '    "active_time_min": number|null,\n'
    '    "cuisine": string|null,\n'
    '    "difficulty": "easy"|"medium"|"hard"|null,\n'
    '    "diet_tags": [string]|null,\n'
    '    "allergen_tags": [string]|null,\n'
    '    "hero_image_url": string|null,\n'
    '    "nutrition_json": object|null,\n'
    '    "public": true\n'
    "  },\n"
    '  "ingredients": [{"idx": number, "quantity": number|null, "unit": string|null, "item": string, "notes": string|null}],\n'
    '  "steps": [{"idx": number, "instruction": string, "timer_seconds": number|null, "temperature_c": number|null, '
    '"tool": string|null, "tip": string|null, "image_url": string|null}],\n'
    '  "substitutions": [{"ingredient_idx": number, "suggestion": string}],\n'
    '  "images": []\n'
    "}\n\n"
    "Guidelines:\n"
    "- idx values are 0-based and follow the order in the text.\n"
    "- Quantities are numbers: convert fractions (1/2 -> 0.5, 1 1/2 -> 1.5).\n"
    "- Units use short forms: cup, tbsp, tsp, lb, oz, g, kg, ml, l, clove, pinch, dash.\n"
    "- Convert Fahrenheit temperatures to Celsius and all times to minutes (step timers in seconds).\n"
    "- Infer tools from the instructions.\n"
    "- Only list substitutions the text mentions or clearly implies.\n"
    "- difficulty: easy for under 30 minutes with basic techniques, medium for 30-60 minutes, "
    "hard for longer or advanced techniques.\n"
    "- Record dietary tags (vegetarian, vegan, gluten-free, dairy-free) and allergens "
    "(nuts, dairy, eggs, soy, shellfish, fish, wheat, sesame)."
)


def build_messages(text: str):
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Please analyze this recipe and convert it to structured JSON format:\n\n{text}",
        },
    ]


async def stream_recipe_analysis(text: str) -> AsyncIterator[str]:
    """
    Relay a streamed structuring completion as server-sent events.

    Emits one ``status`` event, a ``content`` event per delta carrying the
    running accumulation, then exactly one terminal event: ``complete`` with
    a best-effort draft, or ``error`` when the model call itself fails.
    """
    yield format_sse({"type": "status", "message": STATUS_MESSAGE})
    accumulated = ""
    try:
        async for delta in llm_client.stream_chat_completion(build_messages(text)):
            accumulated += delta
            yield format_sse({"type": "content", "content": delta, "accumulated": accumulated})
    except (LLMError, httpx.HTTPError) as exc:
        logger.exception("Recipe analysis stream failed: %s", exc)
        yield format_sse({"type": "error", "error": FAILURE_MESSAGE})
        return

    if not accumulated.strip():
        logger.warning("Model returned no content for recipe analysis")
    yield format_sse({"type": "complete", "recipe": parse_recipe_draft(accumulated)})
