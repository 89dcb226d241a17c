from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Literal

from voice_relay.domain.artifacts import (
    DecodedArtifact,
    TARGET_CHANNELS,
    TARGET_SAMPLE_RATE,
    TARGET_SAMPLE_WIDTH,
    UploadArtifact,
)
from voice_relay.domain.ports import TranscoderPort
from voice_relay.domain.results import TranscodeError, TranscodeTimeoutError
from voice_relay.infrastructure.audio import normalizer
from voice_relay.infrastructure.storage.artifacts import InMemoryArtifact, TempFileArtifact

logger = logging.getLogger(__name__)

TranscodeMode = Literal["memory", "file"]


class FFmpegTranscoder(TranscoderPort):
    """Runs ffmpeg as a subprocess to turn an upload into 16 kHz mono PCM WAV.

    In ``memory`` mode the upload is piped through stdin/stdout. In ``file`` mode
    ffmpeg reads a temp file and writes another one; the output file is removed on
    every failure path so only a complete artifact ever leaves this adapter.
    """

    def __init__(
        self,
        *,
        ffmpeg_path: str | None = None,
        timeout_seconds: float = 15.0,
        mode: TranscodeMode = "memory",
        temp_dir: str | Path | None = None,
        sample_rate: int = TARGET_SAMPLE_RATE,
        channels: int = TARGET_CHANNELS,
    ) -> None:
        if mode not in ("memory", "file"):
            raise ValueError(f"Unsupported transcode mode: {mode}")
        self._ffmpeg_path = ffmpeg_path
        self._timeout = timeout_seconds
        self._mode = mode
        self._temp_dir = temp_dir
        self._sample_rate = sample_rate
        self._channels = channels

    async def transcode(self, upload: UploadArtifact) -> DecodedArtifact:
        try:
            binary = normalizer.resolve_ffmpeg(self._ffmpeg_path)
        except normalizer.FFmpegNotAvailableError as exc:
            raise TranscodeError(str(exc)) from exc

        if self._mode == "file":
            return await self._transcode_file(binary, upload)
        return await self._transcode_memory(binary, upload)

    async def _transcode_memory(self, binary: str, upload: UploadArtifact) -> DecodedArtifact:
        args = normalizer.standard_wav_args(
            "pipe:0", "pipe:1", sample_rate=self._sample_rate, channels=self._channels
        )
        stdout = await self._run(binary, args, stdin_payload=upload.handle.read_bytes())
        if not stdout:
            raise TranscodeError("FFmpeg produced no audio output")
        return self._decoded(InMemoryArtifact(stdout))

    async def _transcode_file(self, binary: str, upload: UploadArtifact) -> DecodedArtifact:
        source = upload.handle.path
        if source is None:
            raise TranscodeError("File mode transcoding requires a file-backed upload")

        try:
            output = TempFileArtifact.reserve(suffix=".wav", directory=self._temp_dir)
        except OSError as exc:
            raise TranscodeError(f"Could not create transcoder output file: {exc}") from exc
        try:
            args = normalizer.standard_wav_args(
                str(source), str(output.path), sample_rate=self._sample_rate, channels=self._channels
            )
            await self._run(binary, args, stdin_payload=None)
            if output.path.stat().st_size == 0:
                raise TranscodeError("FFmpeg produced an empty output file")
        except BaseException:
            output.release()
            raise
        return self._decoded(output)

    def _decoded(self, handle: InMemoryArtifact | TempFileArtifact) -> DecodedArtifact:
        return DecodedArtifact(
            handle=handle,
            sample_rate=self._sample_rate,
            channels=self._channels,
            sample_width=TARGET_SAMPLE_WIDTH,
        )

    async def _run(self, binary: str, args: list[str], *, stdin_payload: bytes | None) -> bytes:
        logger.info("ffmpeg_start %s %s", binary, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                binary,
                *args,
                stdin=asyncio.subprocess.PIPE if stdin_payload is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscodeError(f"Could not start FFmpeg: {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=stdin_payload), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            await _terminate(process)
            raise TranscodeTimeoutError(
                f"FFmpeg did not finish within {self._timeout:g}s"
            ) from exc
        except BaseException:
            await _terminate(process)
            raise

        if process.returncode != 0:
            error_details = stderr.decode("utf-8", errors="ignore").strip()
            raise TranscodeError(
                f"Failed to normalize audio via FFmpeg (exit {process.returncode}): {error_details}"
            )
        return stdout


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
    logger.warning("Killed ffmpeg process %s", process.pid)


__all__ = ["FFmpegTranscoder", "TranscodeMode"]
