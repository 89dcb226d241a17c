from __future__ import annotations

from dataclasses import dataclass

from voice_relay.domain.ports import ArtifactHandlePort

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1
TARGET_SAMPLE_WIDTH = 2


@dataclass(frozen=True, slots=True)
class UploadArtifact:
    """Raw bytes of an inbound voice message."""

    handle: ArtifactHandlePort
    filename: str
    media_type: str | None
    size: int

    @property
    def is_empty(self) -> bool:
        return self.size <= 0


@dataclass(frozen=True, slots=True)
class DecodedArtifact:
    """16-bit little-endian PCM WAV produced from exactly one upload."""

    handle: ArtifactHandlePort
    sample_rate: int = TARGET_SAMPLE_RATE
    channels: int = TARGET_CHANNELS
    sample_width: int = TARGET_SAMPLE_WIDTH
