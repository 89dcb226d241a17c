from __future__ import annotations

import pytest

from voice_relay import container
from voice_relay.infrastructure.transcription.azure_speech import AzureSpeechRecognizer
from voice_relay.infrastructure.transcription.soniox import SonioxRecognizer
from voice_relay.settings import AppConfig


def _reset(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "STT_PROVIDER",
        "AZURE_SPEECH_KEY",
        "AZURE_SPEECH_REGION",
        "SPEECH_LANG",
        "AZURE_SPEECH_LANGUAGE",
        "SONIOX_API_KEY",
        "TRANSCODE_TIMEOUT",
        "TRANSCODE_MODE",
        "RECOGNITION_TIMEOUT",
        "DRY_RUN",
    ):
        monkeypatch.delenv(key, raising=False)
    container.get_settings.cache_clear()
    container.get_transcoder.cache_clear()
    container.get_recognizer.cache_clear()
    container.get_transcribe_use_case.cache_clear()


def test_defaults_use_hebrew_and_fifteen_second_timeouts(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset(monkeypatch)

    cfg = AppConfig.load()

    assert cfg.provider == "azure"
    assert cfg.azure_speech.language == "he-IL"
    assert cfg.soniox.language == "he"
    assert cfg.transcoder.timeout_seconds == 15
    assert cfg.pipeline.recognition_timeout_seconds == 15
    assert cfg.soniox.max_poll_attempts == 30
    assert cfg.pipeline.dry_run is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset(monkeypatch)
    monkeypatch.setenv("SPEECH_LANG", "en-US")
    monkeypatch.setenv("TRANSCODE_TIMEOUT", "7")
    monkeypatch.setenv("TRANSCODE_MODE", "FILE")
    monkeypatch.setenv("DRY_RUN", "1")

    cfg = AppConfig.load()

    assert cfg.azure_speech.language == "en-US"
    assert cfg.transcoder.timeout_seconds == 7
    assert cfg.transcoder.mode == "file"
    assert cfg.pipeline.dry_run is True


def test_container_builds_azure_recognizer_without_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset(monkeypatch)

    recognizer = container.get_recognizer()

    assert isinstance(recognizer, AzureSpeechRecognizer)


def test_container_selects_soniox(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset(monkeypatch)
    monkeypatch.setenv("STT_PROVIDER", "soniox")
    monkeypatch.setenv("SONIOX_API_KEY", "secret")

    recognizer = container.get_recognizer()

    assert isinstance(recognizer, SonioxRecognizer)
    assert container.get_transcribe_use_case() is container.get_transcribe_use_case()


def test_container_bounds_soniox_by_recognition_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    _reset(monkeypatch)
    monkeypatch.setenv("STT_PROVIDER", "soniox")
    monkeypatch.setenv("SONIOX_API_KEY", "secret")
    monkeypatch.setenv("RECOGNITION_TIMEOUT", "0.5")

    recognizer = container.get_recognizer()

    assert isinstance(recognizer, SonioxRecognizer)
    assert recognizer._timeout == 0.5
