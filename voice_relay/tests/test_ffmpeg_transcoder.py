from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from voice_relay.domain.artifacts import UploadArtifact
from voice_relay.domain.results import FailureKind, TranscodeError, TranscodeTimeoutError
from voice_relay.infrastructure.audio.transcoder import FFmpegTranscoder
from voice_relay.infrastructure.storage.artifacts import InMemoryArtifact, TempFileArtifact

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts as ffmpeg")

# Copies input to output, honouring pipe:0/pipe:1 like ffmpeg does.
PASSTHROUGH_SCRIPT = """#!/bin/sh
src=""
prev=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then src="$arg"; fi
  prev="$arg"
  dst="$arg"
done
if [ "$src" = "pipe:0" ]; then cat; else cat "$src" > "$dst"; fi
"""

CRASH_SCRIPT = """#!/bin/sh
prev=""
for arg in "$@"; do prev="$arg"; done
cat > /dev/null
printf 'partial' > "$prev" 2>/dev/null
echo "Invalid data found when processing input" >&2
exit 1
"""

HANG_SCRIPT = """#!/bin/sh
echo $$ > "{pid_file}"
exec sleep 30
"""


def _script(tmp_path: Path, body: str, name: str = "ffmpeg") -> str:
    path = tmp_path / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def _memory_upload(payload: bytes) -> UploadArtifact:
    return UploadArtifact(handle=InMemoryArtifact(payload), filename="voice.ogg", media_type="audio/ogg", size=len(payload))


def _file_upload(payload: bytes, directory: Path) -> UploadArtifact:
    handle = TempFileArtifact.from_bytes(payload, suffix=".ogg", directory=directory)
    return UploadArtifact(handle=handle, filename="voice.ogg", media_type="audio/ogg", size=len(payload))


@pytest.mark.asyncio
async def test_memory_mode_pipes_audio_through_ffmpeg(tmp_path, silent_wav):
    binary = _script(tmp_path, PASSTHROUGH_SCRIPT)
    transcoder = FFmpegTranscoder(ffmpeg_path=binary, timeout_seconds=5)
    payload = silent_wav

    decoded = await transcoder.transcode(_memory_upload(payload))

    assert decoded.handle.read_bytes() == payload
    assert decoded.handle.path is None
    assert (decoded.sample_rate, decoded.channels, decoded.sample_width) == (16000, 1, 2)


@pytest.mark.asyncio
async def test_file_mode_writes_output_temp_file(tmp_path, silent_wav):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    binary = _script(tmp_path, PASSTHROUGH_SCRIPT)
    transcoder = FFmpegTranscoder(ffmpeg_path=binary, timeout_seconds=5, mode="file", temp_dir=work_dir)
    payload = silent_wav
    upload = _file_upload(payload, work_dir)

    decoded = await transcoder.transcode(upload)

    assert decoded.handle.path is not None
    assert decoded.handle.path.parent == work_dir
    assert decoded.handle.read_bytes() == payload
    decoded.handle.release()
    upload.handle.release()
    assert list(work_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_non_zero_exit_raises_transcode_error_and_removes_partial_output(tmp_path):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    binary = _script(tmp_path, CRASH_SCRIPT)
    transcoder = FFmpegTranscoder(ffmpeg_path=binary, timeout_seconds=5, mode="file", temp_dir=work_dir)
    upload = _file_upload(b"not really opus", work_dir)

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.transcode(upload)

    assert excinfo.value.kind is FailureKind.TRANSCODE_FAILED
    assert "Invalid data" in str(excinfo.value)
    assert [p.name for p in work_dir.iterdir()] == [upload.handle.path.name]


@pytest.mark.asyncio
async def test_timeout_kills_running_ffmpeg(tmp_path):
    pid_file = tmp_path / "ffmpeg.pid"
    binary = _script(tmp_path, HANG_SCRIPT.format(pid_file=pid_file))
    transcoder = FFmpegTranscoder(ffmpeg_path=binary, timeout_seconds=0.5)

    with pytest.raises(TranscodeTimeoutError) as excinfo:
        await transcoder.transcode(_memory_upload(b"OggS"))

    assert excinfo.value.kind is FailureKind.TRANSCODE_TIMEOUT
    pid = int(pid_file.read_text().strip())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.asyncio
async def test_file_mode_timeout_kills_ffmpeg_and_removes_output(tmp_path):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    pid_file = tmp_path / "ffmpeg.pid"
    binary = _script(tmp_path, HANG_SCRIPT.format(pid_file=pid_file))
    transcoder = FFmpegTranscoder(ffmpeg_path=binary, timeout_seconds=0.5, mode="file", temp_dir=work_dir)
    upload = _file_upload(b"OggS", work_dir)

    with pytest.raises(TranscodeTimeoutError):
        await transcoder.transcode(upload)

    assert [p.name for p in work_dir.iterdir()] == [upload.handle.path.name]
    pid = int(pid_file.read_text().strip())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.asyncio
async def test_missing_binary_is_transcode_failure(tmp_path):
    transcoder = FFmpegTranscoder(ffmpeg_path=str(tmp_path / "no-such-ffmpeg"))

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.transcode(_memory_upload(b"OggS"))

    assert excinfo.value.kind is FailureKind.TRANSCODE_FAILED


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        FFmpegTranscoder(mode="stream")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_unwritable_output_directory_is_transcode_failure(tmp_path):
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    binary = _script(tmp_path, PASSTHROUGH_SCRIPT)
    transcoder = FFmpegTranscoder(
        ffmpeg_path=binary, timeout_seconds=5, mode="file", temp_dir=tmp_path / "missing"
    )
    upload = _file_upload(b"OggS", upload_dir)

    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.transcode(upload)

    assert excinfo.value.kind is FailureKind.TRANSCODE_FAILED
    assert [p.name for p in upload_dir.iterdir()] == [upload.handle.path.name]


@pytest.mark.asyncio
async def test_binary_that_cannot_be_executed_is_transcode_failure(tmp_path):
    # executable bit set but no interpreter line, so exec fails with ENOEXEC
    binary = _script(tmp_path, "\x00\x01\x02")

    with pytest.raises(TranscodeError) as excinfo:
        await FFmpegTranscoder(ffmpeg_path=binary).transcode(_memory_upload(b"OggS"))

    assert excinfo.value.kind is FailureKind.TRANSCODE_FAILED
