from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

from diagnosis_backend.asr.models import Utterance

T = TypeVar("T")


class SourceError(RuntimeError):
    def __init__(self, code: str, message: str, source_name: str):
        super().__init__(message)
        self.code = code
        self.message = message
        self.source_name = source_name


class SourceTransientError(SourceError):
    """Network, timeout, rate-limit or 5xx failure; worth another attempt."""


class SourceRejectionError(SourceError):
    """The source refused this input or these credentials; retrying will not help."""


class SourceUnavailable(SourceError):
    """Retries exhausted. Keeps the code of the last transient failure."""


class BothSourcesFailed(SourceError):
    def __init__(self, translator_error: SourceError, diarizer_error: SourceError):
        message = (
            f"Translation failed: {translator_error.message}; "
            f"Speaker detection failed: {diarizer_error.message}"
        )
        super().__init__("BOTH_SOURCES_FAILED", message, "pipeline")
        self.translator_error = translator_error
        self.diarizer_error = diarizer_error

    @property
    def codes(self) -> list[str]:
        return [self.translator_error.code, self.diarizer_error.code]


@dataclass(frozen=True)
class SourceOk(Generic[T]):
    value: T
    debug: dict[str, Any] = field(default_factory=dict)
    ok: bool = True


@dataclass(frozen=True)
class SourceErr:
    error: SourceError
    debug: dict[str, Any] = field(default_factory=dict)
    ok: bool = False


SourceResult = Union[SourceOk[T], SourceErr]


class TranslatorSource(ABC):
    @abstractmethod
    async def translate(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[str]: ...

    @abstractmethod
    def name(self) -> str: ...


class DiarizerSource(ABC):
    @abstractmethod
    async def diarize(
        self, audio: bytes, *, filename: str, content_type: Optional[str] = None
    ) -> SourceResult[list[Utterance]]: ...

    @abstractmethod
    def name(self) -> str: ...
