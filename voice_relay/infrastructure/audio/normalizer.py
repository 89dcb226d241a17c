from __future__ import annotations

import io
import os
import shutil
import wave
from typing import Tuple


class FFmpegNotAvailableError(RuntimeError):
    """Raised when ffmpeg is missing from PATH."""


def resolve_ffmpeg(binary: str | None = None) -> str:
    candidate = binary or "ffmpeg"
    if os.path.sep in candidate:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        raise FFmpegNotAvailableError(f"FFmpeg binary {candidate} is missing or not executable")
    resolved = shutil.which(candidate)
    if resolved is None:
        raise FFmpegNotAvailableError("FFmpeg is required to handle audio but was not found in PATH")
    return resolved


def standard_wav_args(
    source: str,
    target: str,
    *,
    sample_rate: int,
    channels: int,
) -> list[str]:
    """ffmpeg arguments that normalize any input into mono 16-bit PCM WAV."""

    return [
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        source,
        "-ac",
        str(channels),
        "-ar",
        str(sample_rate),
        "-f",
        "wav",
        "-acodec",
        "pcm_s16le",
        target,
    ]


def wav_payload(wav_bytes: bytes) -> Tuple[bytes, int, int, int, int]:
    with wave.open(io.BytesIO(wav_bytes)) as wav_reader:
        reported_frames = wav_reader.getnframes()
        frames = wav_reader.readframes(reported_frames)
        sample_rate = wav_reader.getframerate()
        sample_width = wav_reader.getsampwidth()
        channels = wav_reader.getnchannels()
    if not frames:
        # ffmpeg leaves the data size unset when writing WAV to a pipe
        marker = wav_bytes.find(b"data")
        if marker != -1:
            frames = wav_bytes[marker + 8:]
    bytes_per_frame = sample_width * channels
    num_frames = len(frames) // bytes_per_frame if bytes_per_frame else 0
    return frames, num_frames, sample_rate, sample_width, channels

