from __future__ import annotations

from voice_relay.application.use_cases.transcribe_voice import TranscribeVoiceUseCase
from voice_relay.container import get_transcribe_use_case
from voice_relay.settings import AppConfig, get_settings


def transcription_workflow() -> TranscribeVoiceUseCase:
    return get_transcribe_use_case()


def app_settings() -> AppConfig:
    return get_settings()
