from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


class AzureSpeechSettings(BaseModel):
    key: str | None = None
    region: str | None = None
    language: str = "he-IL"


class SonioxSettings(BaseModel):
    api_key: str | None = None
    base_url: str = "https://api.soniox.com"
    model: str = "stt-async-preview"
    language: str = "he"
    poll_interval_seconds: float = 1.0
    max_poll_attempts: int = Field(default=30, ge=1)


class TranscoderSettings(BaseModel):
    ffmpeg_path: str | None = None
    timeout_seconds: float = Field(default=15.0, gt=0)
    mode: Literal["memory", "file"] = "memory"
    temp_dir: str | None = None
    sample_rate: int = 16000


class PipelineSettings(BaseModel):
    recognition_timeout_seconds: float = Field(default=15.0, gt=0)
    max_upload_bytes: int = 15 * 1024 * 1024
    dry_run: bool = False


class AppConfig(BaseModel):
    provider: Literal["azure", "soniox"] = "azure"
    azure_speech: AzureSpeechSettings = AzureSpeechSettings()
    soniox: SonioxSettings = SonioxSettings()
    transcoder: TranscoderSettings = TranscoderSettings()
    pipeline: PipelineSettings = PipelineSettings()
    cors_allow_origins: list[str] = ["*"]
    log_level: str = "INFO"

    @classmethod
    def load(cls) -> "AppConfig":
        origins = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()]
        return cls(
            provider=os.getenv("STT_PROVIDER", "azure").lower(),
            azure_speech=AzureSpeechSettings(
                key=os.getenv("AZURE_SPEECH_KEY") or None,
                region=os.getenv("AZURE_SPEECH_REGION") or None,
                language=os.getenv("SPEECH_LANG") or os.getenv("AZURE_SPEECH_LANGUAGE") or "he-IL",
            ),
            soniox=SonioxSettings(
                api_key=os.getenv("SONIOX_API_KEY") or None,
                base_url=os.getenv("SONIOX_BASE_URL", "https://api.soniox.com"),
                model=os.getenv("SONIOX_MODEL", "stt-async-preview"),
                language=os.getenv("SONIOX_LANGUAGE") or "he",
                poll_interval_seconds=float(os.getenv("SONIOX_POLL_INTERVAL", "1.0")),
                max_poll_attempts=int(os.getenv("SONIOX_MAX_POLL_ATTEMPTS", "30")),
            ),
            transcoder=TranscoderSettings(
                ffmpeg_path=os.getenv("FFMPEG_PATH") or None,
                timeout_seconds=float(os.getenv("TRANSCODE_TIMEOUT", "15")),
                mode=os.getenv("TRANSCODE_MODE", "memory").lower(),
                temp_dir=os.getenv("TRANSCODE_TEMP_DIR") or None,
                sample_rate=int(os.getenv("TRANSCODER_SAMPLE_RATE", "16000")),
            ),
            pipeline=PipelineSettings(
                recognition_timeout_seconds=float(os.getenv("RECOGNITION_TIMEOUT", "15")),
                max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(15 * 1024 * 1024))),
                dry_run=os.getenv("DRY_RUN", "0").lower() in _TRUTHY,
            ),
            cors_allow_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> AppConfig:
    return AppConfig.load()
