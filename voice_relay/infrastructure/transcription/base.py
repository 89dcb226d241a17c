from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, TypeVar

from voice_relay.domain.artifacts import DecodedArtifact
from voice_relay.domain.ports import RecognitionPort
from voice_relay.domain.results import (
    Failed,
    FailureKind,
    NoSpeech,
    PipelineResult,
    Recognized,
    RecognitionConfigError,
    RecognitionError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecognitionAdapter(RecognitionPort, ABC):
    """Shared contract for speech providers.

    Subclasses implement ``_check_config`` and ``_recognize_text``. This class
    turns their outcome into a ``PipelineResult``: configuration problems surface
    before any network call, empty text becomes ``NoSpeech``, provider errors and
    timeouts become ``Failed`` with a distinct kind.
    """

    provider: str = "unknown"

    def __init__(self, *, timeout_seconds: float | None = 15.0) -> None:
        self._timeout = timeout_seconds

    async def recognize(self, artifact: DecodedArtifact) -> PipelineResult:
        try:
            self._check_config()
        except RecognitionConfigError as exc:
            logger.error("%s recognizer is not configured: %s", self.provider, exc)
            return exc.to_result()

        try:
            if self._timeout is None:
                text = await self._recognize_text(artifact)
            else:
                text = await asyncio.wait_for(self._recognize_text(artifact), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s recognition timed out after %ss", self.provider, self._timeout)
            return Failed(
                FailureKind.RECOGNITION_TIMEOUT,
                f"Speech recognition did not finish within {self._timeout:g}s",
            )
        except RecognitionError as exc:
            logger.warning("%s recognition failed: %s", self.provider, exc)
            return exc.to_result()

        text = (text or "").strip()
        if not text:
            return NoSpeech()
        return Recognized(text)

    @abstractmethod
    def _check_config(self) -> None:
        """Raise RecognitionConfigError when credentials are missing."""

    @abstractmethod
    async def _recognize_text(self, artifact: DecodedArtifact) -> str | None:
        """Run the provider call and return the recognized text, if any."""


def join_segments(segments: Iterable[Any]) -> str:
    """Join word/token/segment strings with single spaces, preserving order."""

    parts = []
    for segment in segments:
        if isinstance(segment, dict):
            segment = segment.get("text") or segment.get("word") or ""
        cleaned = str(segment).strip() if segment is not None else ""
        if cleaned:
            parts.append(cleaned)
    return " ".join(parts)


class CompletionGate(Generic[T]):
    """Single-claim exchange between provider callbacks and an awaiting coroutine.

    Callbacks may fire on SDK threads and race each other; only the first call
    to ``resolve`` or ``reject`` settles the future, later ones return False.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[T] = self._loop.create_future()
        self._lock = threading.Lock()
        self._claimed = False

    @property
    def claimed(self) -> bool:
        return self._claimed

    def _claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def resolve(self, value: T) -> bool:
        if not self._claim():
            return False
        self._loop.call_soon_threadsafe(self._settle, value, None)
        return True

    def reject(self, error: BaseException) -> bool:
        if not self._claim():
            return False
        self._loop.call_soon_threadsafe(self._settle, None, error)
        return True

    def _settle(self, value: T | None, error: BaseException | None) -> None:
        if self._future.done():
            return
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(value)  # type: ignore[arg-type]

    async def wait(self) -> T:
        try:
            return await self._future
        except asyncio.CancelledError:
            self._claim()
            raise


__all__ = ["CompletionGate", "RecognitionAdapter", "join_segments"]
