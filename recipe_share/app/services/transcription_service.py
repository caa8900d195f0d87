import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx

from recipe_share.app.core.config import get_settings
from recipe_share.app.services import llm_client
from recipe_share.app.services.llm_client import LLMError
from recipe_share.app.services.sse import format_sse

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to transcribe audio"


async def stream_transcription(filename: str, data: bytes, content_type: Optional[str]) -> AsyncIterator[str]:
    """
    Replay a finished transcription word by word.

    The upstream API is not incremental, so each ``word`` event is paced by
    TRANSCRIBE_STREAM_WORD_DELAY_MS before the closing ``complete`` event.
    """
    try:
        transcription = await llm_client.transcribe_audio(filename, data, content_type)
    except (LLMError, httpx.HTTPError):
        logger.exception("Streaming transcription failed")
        yield format_sse({"type": "error", "error": FAILURE_MESSAGE})
        return

    delay = get_settings().transcribe_stream_word_delay_ms / 1000
    for word in transcription["words"]:
        yield format_sse({"type": "word", **word})
        if delay > 0:
            await asyncio.sleep(delay)
    yield format_sse({"type": "complete", "text": transcription["text"], "duration": transcription["duration"]})
