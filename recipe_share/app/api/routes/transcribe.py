import logging
from typing import Optional

import httpx
from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from recipe_share.app.api.responses import success_response
from recipe_share.app.services import llm_client, transcription_service
from recipe_share.app.services.llm_client import LLMError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transcribe", tags=["transcribe"])

DEFAULT_AUDIO_TYPE = "audio/wav"


async def _read_audio(audio: Optional[UploadFile]):
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")
    data = await audio.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")
    return audio.filename or "audio.wav", data, audio.content_type or DEFAULT_AUDIO_TYPE


@router.post("")
async def transcribe(audio: Optional[UploadFile] = File(None)):
    filename, data, content_type = await _read_audio(audio)
    try:
        transcription = await llm_client.transcribe_audio(filename, data, content_type)
    except (LLMError, httpx.HTTPError):
        logger.exception("Transcription failed for %s", filename)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=transcription_service.FAILURE_MESSAGE,
        )
    return success_response(transcription)


@router.post("/stream")
async def transcribe_stream(audio: Optional[UploadFile] = File(None)):
    filename, data, content_type = await _read_audio(audio)
    return StreamingResponse(
        transcription_service.stream_transcription(filename, data, content_type),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
