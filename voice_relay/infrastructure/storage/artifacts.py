from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from types import TracebackType

from voice_relay.domain.ports import ArtifactHandlePort

logger = logging.getLogger(__name__)


class InMemoryArtifact(ArtifactHandlePort):
    """Artifact backed by a bytes buffer; release drops the reference."""

    def __init__(self, data: bytes) -> None:
        self._data: bytes | None = data

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def path(self) -> Path | None:
        return None

    def read_bytes(self) -> bytes:
        if self._data is None:
            raise RuntimeError("Artifact has already been released.")
        return self._data

    def release(self) -> None:
        self._data = None


class TempFileArtifact(ArtifactHandlePort):
    """Artifact backed by a temp file that is unlinked on release."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._released = False

    @classmethod
    def reserve(cls, *, suffix: str = "", directory: str | Path | None = None) -> "TempFileArtifact":
        """Create an empty temp file and return a handle owning it."""

        fd, name = tempfile.mkstemp(prefix="voice-relay-", suffix=suffix, dir=directory)
        os.close(fd)
        return cls(name)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        suffix: str = "",
        directory: str | Path | None = None,
    ) -> "TempFileArtifact":
        handle = cls.reserve(suffix=suffix, directory=directory)
        try:
            handle.path.write_bytes(data)
        except BaseException:
            handle.release()
            raise
        return handle

    @property
    def released(self) -> bool:
        return self._released

    @property
    def path(self) -> Path:
        return self._path

    def read_bytes(self) -> bytes:
        if self._released:
            raise RuntimeError("Artifact has already been released.")
        return self._path.read_bytes()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._path.unlink()
        except FileNotFoundError:
            logger.warning("Temp artifact %s was already removed", self._path)


class ArtifactScope:
    """Owns every artifact handle of one pipeline run and releases them on exit."""

    def __init__(self) -> None:
        self._handles: list[ArtifactHandlePort] = []

    def adopt(self, handle: ArtifactHandlePort) -> ArtifactHandlePort:
        self._handles.append(handle)
        return handle

    def release_all(self) -> None:
        while self._handles:
            handle = self._handles.pop()
            try:
                handle.release()
            except Exception:
                logger.warning("Failed to release artifact %r", handle, exc_info=True)

    def __enter__(self) -> "ArtifactScope":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release_all()


__all__ = ["ArtifactScope", "InMemoryArtifact", "TempFileArtifact"]
