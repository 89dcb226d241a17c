from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class FailureKind(str, Enum):
    NO_FILE = "NoFile"
    INVALID_FILE = "InvalidFile"
    CONFIG_ERROR = "ConfigError"
    TRANSCODE_FAILED = "TranscodeFailed"
    TRANSCODE_TIMEOUT = "TranscodeTimeout"
    PROVIDER_ERROR = "ProviderError"
    RECOGNITION_TIMEOUT = "RecognitionTimeout"
    INTERNAL_ERROR = "InternalError"

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND.get(self, 500)


_STATUS_BY_KIND = {
    FailureKind.NO_FILE: 400,
    FailureKind.INVALID_FILE: 400,
    FailureKind.TRANSCODE_TIMEOUT: 504,
    FailureKind.RECOGNITION_TIMEOUT: 504,
}


@dataclass(frozen=True, slots=True)
class Recognized:
    text: str


@dataclass(frozen=True, slots=True)
class NoSpeech:
    text: str = ""


@dataclass(frozen=True, slots=True)
class Failed:
    kind: FailureKind
    message: str | None = None


PipelineResult = Union[Recognized, NoSpeech, Failed]


@dataclass(frozen=True, slots=True)
class ResponsePayload:
    status_code: int
    body: dict[str, Any]


def to_response(result: PipelineResult, conversation_id: str | None) -> ResponsePayload:
    """Map a terminal pipeline result onto the JSON body returned to the caller."""

    if isinstance(result, Failed):
        body: dict[str, Any] = {"error": result.kind.value}
        if result.message:
            body["message"] = result.message
        return ResponsePayload(status_code=result.kind.status_code, body=body)
    return ResponsePayload(status_code=200, body={"text": result.text, "chatId": conversation_id})


class PipelineError(RuntimeError):
    """Base error for failures raised inside a pipeline stage."""

    kind: FailureKind = FailureKind.INTERNAL_ERROR

    def __init__(self, message: str, *, kind: FailureKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    def to_result(self) -> Failed:
        return Failed(self.kind, str(self) or None)


class TranscodeError(PipelineError):
    kind = FailureKind.TRANSCODE_FAILED


class TranscodeTimeoutError(TranscodeError):
    kind = FailureKind.TRANSCODE_TIMEOUT


class RecognitionError(PipelineError):
    kind = FailureKind.PROVIDER_ERROR


class RecognitionConfigError(RecognitionError):
    kind = FailureKind.CONFIG_ERROR


class RecognitionTimeoutError(RecognitionError):
    kind = FailureKind.RECOGNITION_TIMEOUT
