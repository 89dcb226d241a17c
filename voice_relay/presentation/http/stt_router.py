from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse

from voice_relay.application.use_cases.transcribe_voice import ResponseExchange, TranscribeVoiceUseCase
from voice_relay.domain.artifacts import UploadArtifact
from voice_relay.domain.results import Failed, FailureKind, ResponsePayload, to_response
from voice_relay.infrastructure.storage.artifacts import InMemoryArtifact, TempFileArtifact
from voice_relay.presentation.http.dependencies import app_settings, transcription_workflow
from voice_relay.settings import AppConfig

router = APIRouter(tags=["stt"])
logger = logging.getLogger(__name__)


@router.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "OK"


@router.post("/stt/{source}")
async def stt_endpoint(
    source: str,
    voice: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    chat_id_form: str | None = Form(default=None, alias="chatId"),
    chat_id_query: str | None = Query(default=None, alias="chatId"),
    workflow: TranscribeVoiceUseCase = Depends(transcription_workflow),
    settings: AppConfig = Depends(app_settings),
):
    incoming = voice or file
    conversation_id = chat_id_form or chat_id_query or None
    max_bytes = settings.pipeline.max_upload_bytes

    content = b""
    if incoming is not None:
        content = await incoming.read(max_bytes + 1)
        if len(content) > max_bytes:
            logger.warning("Rejected %s upload larger than %s bytes", source, max_bytes)
            return _json(to_response(
                Failed(FailureKind.INVALID_FILE, f"File exceeds the {max_bytes} byte limit."),
                conversation_id,
            ))

    if settings.pipeline.dry_run and content:
        return JSONResponse(
            content={"ok": True, "bytes": len(content), "mimetype": incoming.content_type},
        )

    try:
        upload = _build_upload(incoming, content, settings) if content else None
    except OSError as exc:
        logger.exception("Could not stage %s upload", source)
        return _json(to_response(
            Failed(FailureKind.INTERNAL_ERROR, f"Could not store upload: {exc}"),
            conversation_id,
        ))
    sent: list[ResponsePayload] = []

    async def _collect(payload: ResponsePayload) -> None:
        sent.append(payload)

    logger.info("stt request source=%s bytes=%s chatId=%s", source, len(content), conversation_id)
    await workflow(upload, conversation_id=conversation_id, exchange=ResponseExchange(_collect))
    if not sent:
        return _json(to_response(Failed(FailureKind.INTERNAL_ERROR, "No response produced."), conversation_id))
    return _json(sent[0])


def _build_upload(incoming: UploadFile, content: bytes, settings: AppConfig) -> UploadArtifact:
    filename = incoming.filename or "voice.ogg"
    if settings.transcoder.mode == "file":
        handle = TempFileArtifact.from_bytes(
            content,
            suffix=Path(filename).suffix or ".ogg",
            directory=settings.transcoder.temp_dir,
        )
    else:
        handle = InMemoryArtifact(content)
    return UploadArtifact(
        handle=handle,
        filename=filename,
        media_type=incoming.content_type,
        size=len(content),
    )


def _json(payload: ResponsePayload) -> JSONResponse:
    return JSONResponse(status_code=payload.status_code, content=payload.body)
