from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from voice_relay.domain.artifacts import DecodedArtifact
from voice_relay.domain.results import (
    RecognitionConfigError,
    RecognitionError,
    RecognitionTimeoutError,
)
from voice_relay.infrastructure.transcription.base import RecognitionAdapter, join_segments

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.soniox.com"
DEFAULT_MODEL = "stt-async-preview"
REQUEST_TIMEOUT = 15.0


class SonioxRecognizer(RecognitionAdapter):
    """Soniox async REST transcription: upload, create job, poll, fetch, clean up."""

    provider = "soniox"

    def __init__(
        self,
        *,
        api_key: str | None,
        language: str = "he",
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        poll_interval_seconds: float = 1.0,
        max_poll_attempts: int = 30,
        request_timeout: float = REQUEST_TIMEOUT,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self._api_key = api_key
        self._language = language or "he"
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._poll_interval = poll_interval_seconds
        self._max_poll_attempts = max_poll_attempts
        self._request_timeout = request_timeout
        self._client = client

    def _check_config(self) -> None:
        if not self._api_key:
            raise RecognitionConfigError("Missing SONIOX_API_KEY")

    async def _recognize_text(self, artifact: DecodedArtifact) -> str:
        if self._client is not None:
            return await self._transcribe(self._client, artifact)
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._request_timeout,
        ) as client:
            return await self._transcribe(client, artifact)

    async def _transcribe(self, client: httpx.AsyncClient, artifact: DecodedArtifact) -> str:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        file_id: str | None = None
        transcription_id: str | None = None
        try:
            upload = await self._call(
                client,
                "POST",
                "/v1/files",
                headers=headers,
                files={"file": ("voice.wav", artifact.handle.read_bytes(), "audio/wav")},
            )
            file_id = upload["id"]
            job = await self._call(
                client,
                "POST",
                "/v1/transcriptions",
                headers=headers,
                json={
                    "model": self._model,
                    "file_id": file_id,
                    "language_hints": [self._language],
                },
            )
            transcription_id = job["id"]
            logger.info("Soniox job %s created for file %s", transcription_id, file_id)

            await self._wait_for_completion(client, transcription_id, headers)
            transcript = await self._call(
                client, "GET", f"/v1/transcriptions/{transcription_id}/transcript", headers=headers
            )
            return extract_text(transcript)
        finally:
            await self._cleanup(client, headers, transcription_id=transcription_id, file_id=file_id)

    async def _wait_for_completion(
        self,
        client: httpx.AsyncClient,
        transcription_id: str,
        headers: dict[str, str],
    ) -> None:
        for attempt in range(1, self._max_poll_attempts + 1):
            await asyncio.sleep(self._poll_interval)
            status_payload = await self._call(
                client, "GET", f"/v1/transcriptions/{transcription_id}", headers=headers
            )
            status = str(status_payload.get("status", "")).lower()
            logger.debug("Soniox job %s poll %s status=%s", transcription_id, attempt, status)
            if status == "completed":
                return
            if status == "error":
                detail = status_payload.get("error_message") or "Soniox transcription failed"
                raise RecognitionError(str(detail))
        raise RecognitionTimeoutError(
            f"Soniox job {transcription_id} not completed after {self._max_poll_attempts} polls"
        )

    async def _call(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RecognitionTimeoutError(f"Soniox request {method} {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise RecognitionError(f"Soniox request {method} {url} failed: {exc}") from exc

        if response.is_error:
            raise RecognitionError(
                f"Soniox {method} {url} returned {response.status_code}: {_error_detail(response)}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RecognitionError(f"Soniox {method} {url} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise RecognitionError(f"Soniox {method} {url} returned an unexpected payload")
        return payload

    async def _cleanup(
        self,
        client: httpx.AsyncClient,
        headers: dict[str, str],
        *,
        transcription_id: str | None,
        file_id: str | None,
    ) -> None:
        targets = []
        if transcription_id:
            targets.append(f"/v1/transcriptions/{transcription_id}")
        if file_id:
            targets.append(f"/v1/files/{file_id}")
        for url in targets:
            try:
                response = await client.delete(url, headers=headers)
                if response.is_error and response.status_code != 404:
                    logger.warning("Soniox cleanup of %s returned %s", url, response.status_code)
            except httpx.HTTPError as exc:
                logger.warning("Soniox cleanup of %s failed: %s", url, exc)


def extract_text(payload: dict[str, Any]) -> str:
    """Pull transcript text out of the shapes Soniox has returned over time."""

    text = payload.get("text")
    if isinstance(text, str):
        return text
    for key in ("tokens", "words"):
        segments = payload.get(key)
        if isinstance(segments, list):
            return join_segments(segments)
    return ""


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_message") or body)
    return str(body)


__all__ = ["SonioxRecognizer", "extract_text"]
