from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from voice_relay.domain.artifacts import DecodedArtifact, UploadArtifact
from voice_relay.domain.ports import RecognitionPort, TranscoderPort
from voice_relay.domain.results import (
    Failed,
    FailureKind,
    PipelineError,
    PipelineResult,
    ResponsePayload,
    to_response,
)
from voice_relay.infrastructure.storage.artifacts import ArtifactScope

logger = logging.getLogger(__name__)

ResponseSender = Callable[[ResponsePayload], Awaitable[None]]


class PipelineStage(str, Enum):
    START = "start"
    VALIDATE = "validate"
    TRANSCODING = "transcoding"
    RECOGNIZING = "recognizing"
    RESPONDING = "responding"
    DONE = "done"


_STAGE_ORDER = list(PipelineStage)


class ResponseExchange:
    """Hands exactly one response payload to the transport."""

    def __init__(self, sender: ResponseSender) -> None:
        self._sender = sender
        self._payload: ResponsePayload | None = None

    @property
    def payload(self) -> ResponsePayload | None:
        return self._payload

    async def respond(self, payload: ResponsePayload) -> bool:
        if self._payload is not None:
            logger.warning("Response already sent; dropping %s", payload.body)
            return False
        self._payload = payload
        await self._sender(payload)
        return True


class PipelineRun:
    """Tracks one request through the linear stage sequence."""

    def __init__(self, conversation_id: str | None) -> None:
        self.conversation_id = conversation_id
        self.stage = PipelineStage.START
        self.history: list[PipelineStage] = [PipelineStage.START]

    def advance(self, stage: PipelineStage) -> None:
        if _STAGE_ORDER.index(stage) <= _STAGE_ORDER.index(self.stage):
            raise RuntimeError(f"Illegal pipeline transition {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)


class TranscribeVoiceUseCase:
    """Validates an upload, transcodes it, recognizes speech and emits one response.

    Every artifact handed to or produced by the run is released when the run
    ends, including when sending the response fails.
    """

    def __init__(
        self,
        *,
        transcoder: TranscoderPort,
        recognizer: RecognitionPort,
    ) -> None:
        self._transcoder = transcoder
        self._recognizer = recognizer

    async def __call__(
        self,
        upload: UploadArtifact | None,
        *,
        conversation_id: str | None,
        exchange: ResponseExchange,
    ) -> PipelineResult:
        run = PipelineRun(conversation_id)
        with ArtifactScope() as scope:
            if upload is not None:
                scope.adopt(upload.handle)
            try:
                result = await self._execute(run, upload, scope)
            except Exception as exc:
                logger.exception("Unexpected failure in %s stage", run.stage.value)
                result = Failed(FailureKind.INTERNAL_ERROR, str(exc) or exc.__class__.__name__)

            run.advance(PipelineStage.RESPONDING)
            try:
                await exchange.respond(to_response(result, conversation_id))
            except Exception:
                logger.exception("Failed to send response for conversation %s", conversation_id)
        run.advance(PipelineStage.DONE)
        return result

    async def _execute(
        self,
        run: PipelineRun,
        upload: UploadArtifact | None,
        scope: ArtifactScope,
    ) -> PipelineResult:
        run.advance(PipelineStage.VALIDATE)
        if upload is None or upload.is_empty:
            return Failed(FailureKind.NO_FILE, "No audio file was uploaded.")

        run.advance(PipelineStage.TRANSCODING)
        logger.info("convert_start %s %s", upload.media_type, upload.size)
        try:
            decoded: DecodedArtifact = await self._transcoder.transcode(upload)
        except PipelineError as exc:
            logger.warning("Transcoding failed: %s", exc)
            return exc.to_result()
        scope.adopt(decoded.handle)
        upload.handle.release()
        logger.info("convert_ok %s", decoded.handle.path or "memory")

        run.advance(PipelineStage.RECOGNIZING)
        logger.info("stt_start provider=%s", self._recognizer.provider)
        result = await self._recognizer.recognize(decoded)
        if isinstance(result, Failed):
            logger.warning("stt_failed %s %s", result.kind.value, result.message)
        else:
            logger.info("stt_ok %s", len(result.text))
        return result


__all__ = [
    "PipelineRun",
    "PipelineStage",
    "ResponseExchange",
    "ResponseSender",
    "TranscribeVoiceUseCase",
]
