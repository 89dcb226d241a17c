from __future__ import annotations

import logging
from functools import lru_cache

from voice_relay.application.use_cases.transcribe_voice import TranscribeVoiceUseCase
from voice_relay.infrastructure.audio.transcoder import FFmpegTranscoder
from voice_relay.infrastructure.transcription.azure_speech import AzureSpeechRecognizer
from voice_relay.infrastructure.transcription.base import RecognitionAdapter
from voice_relay.infrastructure.transcription.soniox import SonioxRecognizer
from voice_relay.settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_transcoder() -> FFmpegTranscoder:
    cfg = get_settings().transcoder
    return FFmpegTranscoder(
        ffmpeg_path=cfg.ffmpeg_path,
        timeout_seconds=cfg.timeout_seconds,
        mode=cfg.mode,
        temp_dir=cfg.temp_dir,
        sample_rate=cfg.sample_rate,
    )


@lru_cache(maxsize=1)
def get_recognizer() -> RecognitionAdapter:
    settings = get_settings()
    timeout = settings.pipeline.recognition_timeout_seconds
    if settings.provider == "soniox":
        cfg = settings.soniox
        if not cfg.api_key:
            logger.warning("SONIOX_API_KEY is not set; recognition requests will fail with ConfigError")
        return SonioxRecognizer(
            api_key=cfg.api_key,
            language=cfg.language,
            base_url=cfg.base_url,
            model=cfg.model,
            poll_interval_seconds=cfg.poll_interval_seconds,
            max_poll_attempts=cfg.max_poll_attempts,
            timeout_seconds=timeout,
        )

    cfg = settings.azure_speech
    if not cfg.key or not cfg.region:
        logger.warning("Azure Speech key/region missing; recognition requests will fail with ConfigError")
    return AzureSpeechRecognizer(
        key=cfg.key,
        region=cfg.region,
        language=cfg.language,
        timeout_seconds=timeout,
    )


@lru_cache(maxsize=1)
def get_transcribe_use_case() -> TranscribeVoiceUseCase:
    return TranscribeVoiceUseCase(
        transcoder=get_transcoder(),
        recognizer=get_recognizer(),
    )
