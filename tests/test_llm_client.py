import json

import httpx
import pytest

from recipe_share.app.services import llm_client
from recipe_share.app.services.llm_client import LLMError


def sse_body(*chunks, done=True) -> bytes:
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n\n" for c in chunks]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


@pytest.mark.asyncio
async def test_stream_chat_completion_yields_deltas(settings, mock_httpx):
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=sse_body('{"recipe"', ': {"title": "Toast"}}'))

    mock_httpx(handler)
    chunks = [c async for c in llm_client.stream_chat_completion([{"role": "user", "content": "hi"}])]

    assert "".join(chunks) == '{"recipe": {"title": "Toast"}}'
    assert seen["url"] == "https://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-llm-key"
    assert seen["body"]["stream"] is True
    assert seen["body"]["model"] == settings.llm_chat_model


@pytest.mark.asyncio
async def test_stream_chat_completion_stops_at_done(settings, mock_httpx):
    async def handler(request):
        body = sse_body("a", "b") + b'data: {"choices": [{"delta": {"content": "after"}}]}\n\n'
        return httpx.Response(200, content=body)

    mock_httpx(handler)
    chunks = [c async for c in llm_client.stream_chat_completion([])]
    assert chunks == ["a", "b"]


@pytest.mark.asyncio
async def test_stream_chat_completion_raises_on_status(settings, mock_httpx):
    async def handler(request):
        return httpx.Response(500, json={"error": {"message": "boom"}})

    mock_httpx(handler)
    with pytest.raises(LLMError):
        [c async for c in llm_client.stream_chat_completion([])]


@pytest.mark.asyncio
async def test_missing_api_key_raises(settings, monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", None)
    with pytest.raises(LLMError):
        await llm_client.generate_image("a cake")


@pytest.mark.asyncio
async def test_generate_image_returns_url(settings, mock_httpx):
    async def handler(request):
        payload = json.loads(request.content)
        assert payload["size"] == "1024x1024"
        assert payload["n"] == 1
        assert payload["model"] == settings.llm_image_model
        return httpx.Response(200, json={"data": [{"url": "https://img.test/1.png"}]})

    mock_httpx(handler)
    assert await llm_client.generate_image("a cake") == "https://img.test/1.png"


@pytest.mark.asyncio
async def test_generate_image_error_payload(settings, mock_httpx):
    async def handler(request):
        return httpx.Response(400, json={"error": {"type": "invalid_request_error", "message": "bad prompt"}})

    mock_httpx(handler)
    with pytest.raises(LLMError, match="bad prompt"):
        await llm_client.generate_image("a cake")


@pytest.mark.asyncio
async def test_transcribe_audio_sends_word_timestamps(settings, mock_httpx):
    async def handler(request):
        body = request.content.decode("latin-1")
        assert "verbose_json" in body
        assert "timestamp_granularities[]" in body
        return httpx.Response(
            200,
            json={
                "text": "two cups flour",
                "duration": 1.5,
                "words": [
                    {"word": "two", "start": 0.0, "end": 0.4},
                    {"word": "cups", "start": 0.4, "end": 0.8},
                    {"word": "flour", "start": 0.8, "end": 1.5},
                ],
            },
        )

    mock_httpx(handler)
    result = await llm_client.transcribe_audio("clip.wav", b"RIFF0000", "audio/wav")
    assert result["text"] == "two cups flour"
    assert result["duration"] == 1.5
    assert [w["word"] for w in result["words"]] == ["two", "cups", "flour"]
