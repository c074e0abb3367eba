from __future__ import annotations

from typing import Optional, Sequence

from diagnosis_backend.asr.models import Utterance

from .base import DiarizerSource, SourceErr, SourceError, SourceOk, SourceResult, TranslatorSource


class MockTranslatorSource(TranslatorSource):
    def __init__(self, text: str = "", *, error: Optional[SourceError] = None) -> None:
        self._text = text
        self._error = error
        self.calls: list[dict[str, object]] = []

    async def translate(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[str]:
        self.calls.append({"bytes": len(audio), "filename": filename, "content_type": content_type})
        if self._error is not None:
            return SourceErr(self._error, {"source": self.name(), "status": "failed"})
        return SourceOk(self._text, {"source": self.name(), "status": "ok"})

    def name(self) -> str:
        return "mock_translator"


class MockDiarizerSource(DiarizerSource):
    def __init__(
        self,
        utterances: Sequence[Utterance] = (),
        *,
        error: Optional[SourceError] = None,
    ) -> None:
        self._utterances = list(utterances)
        self._error = error
        self.calls: list[dict[str, object]] = []

    async def diarize(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[list[Utterance]]:
        self.calls.append({"bytes": len(audio), "filename": filename, "content_type": content_type})
        if self._error is not None:
            return SourceErr(self._error, {"source": self.name(), "status": "failed"})
        return SourceOk(list(self._utterances), {"source": self.name(), "status": "ok"})

    def name(self) -> str:
        return "mock_diarizer"
