from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..config import ServiceConfig
from .base import SourceErr, SourceError, SourceOk, SourceRejectionError, SourceResult, TranslatorSource
from .retry import RetryPolicy, Sleep, call_with_retry, classify_http_failure

logger = logging.getLogger(__name__)


class OpenAITranslatorSource(TranslatorSource):
    """Speaker-blind translation to English via an OpenAI-compatible `/audio/translations` endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._policy = policy or RetryPolicy()
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_service_config(cls, cfg: ServiceConfig, **kwargs) -> "OpenAITranslatorSource":
        return cls(
            api_key=cfg.TRANSLATOR_API_KEY,
            base_url=cfg.TRANSLATOR_BASE_URL,
            model=cfg.TRANSLATOR_MODEL,
            policy=RetryPolicy.from_service_config(cfg),
            **kwargs,
        )

    def name(self) -> str:
        return "translator"

    async def translate(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[str]:
        debug = {"source": self.name(), "model": self._model, "bytes": len(audio)}
        if not self._api_key:
            return SourceErr(
                SourceRejectionError("NOT_CONFIGURED", "Translator API key is not configured.", self.name()),
                {**debug, "status": "not_configured"},
            )

        url = f"{self._base_url}/audio/translations"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        files = {"file": (filename, audio, content_type or "application/octet-stream")}
        data = {"model": self._model, "response_format": "text"}

        async with httpx.AsyncClient(timeout=self._policy.timeout_seconds, transport=self._transport) as client:

            async def attempt() -> str:
                response = await client.post(url, headers=headers, files=files, data=data)
                if response.status_code != 200:
                    raise classify_http_failure(self.name(), response.status_code, response.text)
                return response.text

            try:
                text = await call_with_retry(attempt, policy=self._policy, source_name=self.name(), sleep=self._sleep)
            except SourceError as exc:
                logger.warning("translator failed code=%s", exc.code)
                return SourceErr(exc, {**debug, "status": "failed", "code": exc.code})

        text = text.strip()
        if not text:
            return SourceErr(
                SourceRejectionError("EMPTY_TRANSCRIPT", "Translator returned no text.", self.name()),
                {**debug, "status": "empty"},
            )
        return SourceOk(text, {**debug, "status": "ok", "chars": len(text)})
