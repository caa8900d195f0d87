import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from recipe_share.app.core.config import get_settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    pass


def _headers(json_body: bool = True) -> Dict[str, str]:
    settings = get_settings()
    if not settings.llm_api_key:
        raise LLMError("LLM_API_KEY must be set to call the model API")
    headers = {"Authorization": f"Bearer {settings.llm_api_key}"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


def _timeout() -> httpx.Timeout:
    seconds = get_settings().llm_timeout_seconds
    return httpx.Timeout(seconds, read=seconds, connect=10.0)


def _error_message(data: Any) -> Optional[str]:
    if isinstance(data, dict) and data.get("error"):
        error_info = data["error"]
        if isinstance(error_info, dict):
            return f"{error_info.get('type', 'unknown_error')}: {error_info.get('message', 'Unknown error')}"
        return str(error_info)
    return None


def _delta_content(chunk: Any) -> str:
    if not isinstance(chunk, dict):
        return ""
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


async def stream_chat_completion(
    messages: List[Dict[str, str]],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
) -> AsyncIterator[str]:
    """
    Yield content deltas from a streamed chat completion.

    Closing the generator (for example when the downstream client disconnects)
    exits the stream context and releases the upstream connection.
    """
    settings = get_settings()
    payload = {
        "model": model or settings.llm_chat_model,
        "temperature": settings.llm_chat_temperature if temperature is None else temperature,
        "messages": messages,
        "stream": True,
    }
    async with httpx.AsyncClient(timeout=_timeout()) as client:
        async with client.stream(
            "POST",
            f"{settings.llm_base_url}/v1/chat/completions",
            json=payload,
            headers=_headers(),
        ) as resp:
            if resp.status_code >= 400:
                body = await resp.aread()
                logger.warning("Chat completion failed with status %s: %s", resp.status_code, body[:500])
                raise LLMError(f"Chat completion failed with status {resp.status_code}")
            async for line in resp.aiter_lines():
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                data = line[len("data:") :].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed stream chunk: %s", data[:200])
                    continue
                error = _error_message(chunk)
                if error:
                    logger.error("Model API returned error mid-stream: %s", error[:500])
                    raise LLMError(error)
                content = _delta_content(chunk)
                if content:
                    yield content


async def generate_image(prompt: str, model: Optional[str] = None, size: str = "1024x1024") -> str:
    """Request a single image and return the temporary URL the API hands back."""
    settings = get_settings()
    payload = {
        "model": model or settings.llm_image_model,
        "prompt": prompt,
        "n": 1,
        "size": size,
        "quality": "standard",
    }
    async with httpx.AsyncClient(timeout=_timeout()) as client:
        resp = await client.post(
            f"{settings.llm_base_url}/v1/images/generations",
            json=payload,
            headers=_headers(),
        )
    data = resp.json() if resp.content else {}
    error = _error_message(data)
    if resp.status_code >= 400 or error:
        logger.error("Image generation failed: status=%s error=%s", resp.status_code, error)
        raise LLMError(error or f"Image generation failed with status {resp.status_code}")
    items = data.get("data") or []
    url = items[0].get("url") if items and isinstance(items[0], dict) else None
    if not url:
        raise LLMError("No image URL returned")
    return url


async def download_bytes(url: str) -> bytes:
    async with httpx.AsyncClient(timeout=_timeout(), follow_redirects=True) as client:
        resp = await client.get(url)
    if resp.status_code >= 400:
        raise LLMError(f"Failed to download generated image (status {resp.status_code})")
    return resp.content


async def transcribe_audio(filename: str, data: bytes, content_type: Optional[str] = None) -> Dict[str, Any]:
    """Transcribe audio, returning {text, words: [{word, start, end}], duration}."""
    settings = get_settings()
    files = {"file": (filename or "audio.webm", data, content_type or "application/octet-stream")}
    form = {
        "model": settings.llm_transcribe_model,
        "response_format": "verbose_json",
        "timestamp_granularities[]": "word",
    }
    async with httpx.AsyncClient(timeout=_timeout()) as client:
        resp = await client.post(
            f"{settings.llm_base_url}/v1/audio/transcriptions",
            data=form,
            files=files,
            headers=_headers(json_body=False),
        )
    try:
        body = resp.json()
    except ValueError:
        body = {}
    error = _error_message(body)
    if resp.status_code >= 400 or error:
        logger.error("Transcription failed: status=%s error=%s", resp.status_code, error)
        raise LLMError(error or f"Transcription failed with status {resp.status_code}")
    words = [
        {"word": w.get("word"), "start": w.get("start"), "end": w.get("end")}
        for w in body.get("words") or []
        if isinstance(w, dict)
    ]
    return {"text": body.get("text") or "", "words": words, "duration": body.get("duration")}
