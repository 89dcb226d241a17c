from __future__ import annotations

import asyncio
import logging
import wave
from typing import Callable, List

import azure.cognitiveservices.speech as speechsdk

from voice_relay.domain.artifacts import DecodedArtifact
from voice_relay.domain.results import RecognitionConfigError, RecognitionError
from voice_relay.infrastructure.audio import normalizer
from voice_relay.infrastructure.transcription.base import (
    CompletionGate,
    RecognitionAdapter,
    join_segments,
)

logger = logging.getLogger(__name__)


class AzureSpeechRecognizer(RecognitionAdapter):
    """Azure Cognitive Services single-shot push recognition.

    The whole WAV payload is written into a push stream which is closed right
    away, so the service sees end-of-stream after the last frame. The first of
    session-stopped, end-of-stream cancellation, error cancellation or the
    timeout settles the call; the recognizer is stopped and its handlers
    disconnected in exactly one place afterwards.
    """

    provider = "azure"

    def __init__(
        self,
        *,
        key: str | None,
        region: str | None,
        language: str = "he-IL",
        timeout_seconds: float | None = 15.0,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self._key = key
        self._region = region
        self._language = language or "he-IL"

    @property
    def language(self) -> str:
        return self._language

    def _check_config(self) -> None:
        if not self._key or not self._region:
            raise RecognitionConfigError("Missing AZURE_SPEECH_KEY or AZURE_SPEECH_REGION")

    def _build_speech_config(self) -> speechsdk.SpeechConfig:
        config = speechsdk.SpeechConfig(subscription=self._key, region=self._region)
        config.speech_recognition_language = self._language
        return config

    def _audio_config_from_wav(self, wav_bytes: bytes) -> tuple[speechsdk.audio.AudioConfig, Callable[[], None]]:
        frames, _, sample_rate, sample_width, channels = normalizer.wav_payload(wav_bytes)
        stream_format = speechsdk.audio.AudioStreamFormat(
            sample_rate,
            sample_width * 8,
            channels,
        )
        push_stream = speechsdk.audio.PushAudioInputStream(stream_format=stream_format)

        def feed_audio() -> None:
            push_stream.write(frames)
            push_stream.close()

        audio_config = speechsdk.audio.AudioConfig(stream=push_stream)
        return audio_config, feed_audio

    def _open_session(self, artifact: DecodedArtifact) -> tuple[speechsdk.SpeechRecognizer, Callable[[], None]]:
        audio_config, feed_audio = self._audio_config_from_wav(artifact.handle.read_bytes())
        recognizer = speechsdk.SpeechRecognizer(
            speech_config=self._build_speech_config(),
            audio_config=audio_config,
        )
        return recognizer, feed_audio

    async def _recognize_text(self, artifact: DecodedArtifact) -> str:
        try:
            recognizer, feed_audio = self._open_session(artifact)
        except (wave.Error, EOFError, ValueError, RuntimeError) as exc:
            raise RecognitionError(f"Failed to open Azure recognition session: {exc}") from exc
        gate: CompletionGate[str] = CompletionGate()
        recognized_segments: List[str] = []

        def _recognized_handler(evt: speechsdk.SpeechRecognitionEventArgs) -> None:
            result = evt.result
            if result.reason == speechsdk.ResultReason.RecognizedSpeech:
                text = (result.text or "").strip()
                if text:
                    recognized_segments.append(text)
            elif result.reason == speechsdk.ResultReason.NoMatch:
                logger.debug("Azure returned no match for an utterance")

        def _canceled_handler(evt: speechsdk.SpeechRecognitionCanceledEventArgs) -> None:
            cancellation_details = evt.result.cancellation_details
            if cancellation_details.reason == speechsdk.CancellationReason.EndOfStream:
                gate.resolve(join_segments(recognized_segments))
                return

            error_details = getattr(cancellation_details, "error_details", "")
            message = f"Speech recognition canceled: {cancellation_details.reason}"
            if error_details:
                message = f"{message}. {error_details}"
            gate.reject(RecognitionError(message))

        def _stopped_handler(_: speechsdk.SessionEventArgs) -> None:
            gate.resolve(join_segments(recognized_segments))

        recognizer.recognized.connect(_recognized_handler)
        recognizer.canceled.connect(_canceled_handler)
        recognizer.session_stopped.connect(_stopped_handler)

        try:
            try:
                await asyncio.to_thread(lambda: recognizer.start_continuous_recognition_async().get())
            except RuntimeError as exc:
                raise RecognitionError(f"Azure recognition could not start: {exc}") from exc
            feed_audio()
            return await gate.wait()
        finally:
            await self._close(recognizer)

    async def _close(self, recognizer: speechsdk.SpeechRecognizer) -> None:
        try:
            await asyncio.to_thread(lambda: recognizer.stop_continuous_recognition_async().get())
        except Exception:
            logger.warning("Failed to stop Azure recognizer cleanly", exc_info=True)
        finally:
            recognizer.recognized.disconnect_all()
            recognizer.canceled.disconnect_all()
            recognizer.session_stopped.disconnect_all()


__all__ = ["AzureSpeechRecognizer"]
