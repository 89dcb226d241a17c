from __future__ import annotations

import io
import wave

import pytest

from voice_relay.domain.artifacts import (
    DecodedArtifact,
    TARGET_CHANNELS,
    TARGET_SAMPLE_RATE,
    TARGET_SAMPLE_WIDTH,
)
from voice_relay.infrastructure.storage.artifacts import InMemoryArtifact


def silent_wav_bytes(duration_ms: int = 200) -> bytes:
    frame_count = int(TARGET_SAMPLE_RATE * duration_ms / 1000)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_writer:
        wav_writer.setnchannels(TARGET_CHANNELS)
        wav_writer.setsampwidth(TARGET_SAMPLE_WIDTH)
        wav_writer.setframerate(TARGET_SAMPLE_RATE)
        wav_writer.writeframes(b"\x00" * frame_count * TARGET_SAMPLE_WIDTH * TARGET_CHANNELS)
    return buffer.getvalue()


@pytest.fixture
def silent_wav() -> bytes:
    """200 ms of 16 kHz mono 16-bit silence."""

    return silent_wav_bytes()


@pytest.fixture
def silent_artifact(silent_wav) -> DecodedArtifact:
    return DecodedArtifact(handle=InMemoryArtifact(silent_wav))
