from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from voice_relay.domain.artifacts import DecodedArtifact, UploadArtifact
    from voice_relay.domain.results import PipelineResult


@runtime_checkable
class ArtifactHandlePort(Protocol):
    @property
    def released(self) -> bool:
        """True once release() has run."""

    @property
    def path(self) -> Path | None:
        """Filesystem location for file-backed artifacts, None for in-memory ones."""

    def read_bytes(self) -> bytes:
        """Return the artifact payload."""

    def release(self) -> None:
        """Free the backing resource. Safe to call more than once."""


@runtime_checkable
class TranscoderPort(Protocol):
    async def transcode(self, upload: "UploadArtifact") -> "DecodedArtifact":
        """Convert an upload into 16 kHz mono PCM WAV."""


@runtime_checkable
class RecognitionPort(Protocol):
    provider: str

    async def recognize(self, artifact: "DecodedArtifact") -> "PipelineResult":
        """Return Recognized, NoSpeech or Failed for a decoded artifact."""
