from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from diagnosis_backend.asr.models import Utterance

from ..config import ServiceConfig
from .base import (
    DiarizerSource,
    SourceErr,
    SourceError,
    SourceOk,
    SourceRejectionError,
    SourceResult,
    SourceTransientError,
    SourceUnavailable,
)
from .retry import RetryPolicy, Sleep, call_with_retry, classify_http_failure

logger = logging.getLogger(__name__)

DEFAULT_SPEAKER = "A"


def _clip_confidence(raw: Any, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, value))


def _duration_ms(raw: Any) -> int:
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(seconds):
        return 0
    return max(0, int(round(seconds * 1000)))


def parse_transcript_payload(payload: dict[str, Any]) -> tuple[list[Utterance], dict[str, Any]]:
    """Convert a finished transcript job into typed utterances.

    Items that cannot be typed (missing timing, end before start) are skipped
    and counted. A transcript with text but no utterances becomes a single
    utterance spanning the audio duration.
    """
    overall_confidence = _clip_confidence(payload.get("confidence"), 0.5)
    raw_items = payload.get("utterances") or []
    utterances: list[Utterance] = []
    dropped = 0
    for item in raw_items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            utterances.append(
                Utterance(
                    speaker=str(item.get("speaker") or DEFAULT_SPEAKER),
                    text=str(item.get("text") or ""),
                    start_ms=int(item.get("start")),
                    end_ms=int(item.get("end")),
                    confidence=_clip_confidence(item.get("confidence"), overall_confidence),
                )
            )
        except (TypeError, ValueError, ValidationError):
            dropped += 1

    debug: dict[str, Any] = {"utterances_in": len(raw_items), "utterances_dropped": dropped}
    if utterances:
        return utterances, debug

    text = str(payload.get("text") or "").strip()
    if not text:
        return [], {**debug, "whole_text_fallback": False}
    duration_ms = _duration_ms(payload.get("audio_duration"))
    return [
        Utterance(
            speaker=DEFAULT_SPEAKER,
            text=text,
            start_ms=0,
            end_ms=duration_ms,
            confidence=overall_confidence,
        )
    ], {**debug, "whole_text_fallback": True}


class AssemblyAIDiarizerSource(DiarizerSource):
    """Upload, submit a speaker-labelled transcript job, then poll until it settles."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.assemblyai.com/v2",
        policy: Optional[RetryPolicy] = None,
        poll_interval_seconds: float = 3.0,
        poll_timeout_seconds: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._policy = policy or RetryPolicy()
        self._poll_interval_seconds = float(poll_interval_seconds)
        self._poll_timeout_seconds = float(poll_timeout_seconds)
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_service_config(cls, cfg: ServiceConfig, **kwargs) -> "AssemblyAIDiarizerSource":
        return cls(
            api_key=cfg.DIARIZER_API_KEY,
            base_url=cfg.DIARIZER_BASE_URL,
            policy=RetryPolicy.from_service_config(cfg),
            poll_interval_seconds=cfg.DIARIZER_POLL_INTERVAL_SECONDS,
            poll_timeout_seconds=cfg.DIARIZER_POLL_TIMEOUT_SECONDS,
            **kwargs,
        )

    def name(self) -> str:
        return "diarizer"

    async def _request_json(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
        async def attempt() -> dict[str, Any]:
            response = await client.request(method, url, **kwargs)
            if response.status_code not in {200, 201}:
                raise classify_http_failure(self.name(), response.status_code, response.text)
            try:
                body = response.json()
            except ValueError as exc:
                raise SourceTransientError("BAD_RESPONSE", f"Non-JSON response from {url}", self.name()) from exc
            if not isinstance(body, dict):
                raise SourceTransientError("BAD_RESPONSE", f"Unexpected response shape from {url}", self.name())
            return body

        return await call_with_retry(attempt, policy=self._policy, source_name=self.name(), sleep=self._sleep)

    async def _poll_transcript(self, client: httpx.AsyncClient, transcript_id: str) -> dict[str, Any]:
        url = f"{self._base_url}/transcript/{transcript_id}"
        deadline = time.monotonic() + self._poll_timeout_seconds
        while True:
            body = await self._request_json(client, "GET", url)
            status = str(body.get("status") or "").lower()
            if status == "completed":
                return body
            if status == "error":
                raise SourceRejectionError(
                    "JOB_FAILED",
                    f"Diarization job failed: {body.get('error') or 'unknown error'}",
                    self.name(),
                )
            if time.monotonic() >= deadline:
                raise SourceUnavailable(
                    "TIMEOUT",
                    f"Diarization job still '{status or 'unknown'}' after {self._poll_timeout_seconds:g}s",
                    self.name(),
                )
            await self._sleep(self._poll_interval_seconds)

    async def diarize(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[list[Utterance]]:
        debug: dict[str, Any] = {"source": self.name(), "bytes": len(audio), "filename": filename}
        if not self._api_key:
            return SourceErr(
                SourceRejectionError("NOT_CONFIGURED", "Diarizer API key is not configured.", self.name()),
                {**debug, "status": "not_configured"},
            )

        headers = {"authorization": self._api_key}
        async with httpx.AsyncClient(
            timeout=self._policy.timeout_seconds,
            transport=self._transport,
            headers=headers,
        ) as client:
            try:
                uploaded = await self._request_json(
                    client,
                    "POST",
                    f"{self._base_url}/upload",
                    content=audio,
                    headers={"content-type": "application/octet-stream"},
                )
                audio_url = str(uploaded.get("upload_url") or "")
                if not audio_url:
                    raise SourceRejectionError("UPLOAD_FAILED", "Upload returned no audio reference.", self.name())

                job = await self._request_json(
                    client,
                    "POST",
                    f"{self._base_url}/transcript",
                    json={
                        "audio_url": audio_url,
                        "speaker_labels": True,
                        "punctuate": True,
                        "format_text": True,
                    },
                )
                transcript_id = str(job.get("id") or "")
                if not transcript_id:
                    raise SourceRejectionError("SUBMIT_FAILED", "Transcript job returned no id.", self.name())
                debug["transcript_id"] = transcript_id

                payload = await self._poll_transcript(client, transcript_id)
            except SourceError as exc:
                logger.warning("diarizer failed code=%s", exc.code)
                return SourceErr(exc, {**debug, "status": "failed", "code": exc.code})

        utterances, parse_debug = parse_transcript_payload(payload)
        debug.update(parse_debug)
        if not utterances:
            return SourceErr(
                SourceRejectionError("EMPTY_TRANSCRIPT", "Diarizer returned no utterances or text.", self.name()),
                {**debug, "status": "empty"},
            )
        return SourceOk(utterances, {**debug, "status": "ok", "utterances": len(utterances)})
