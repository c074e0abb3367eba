from .base import (
    BothSourcesFailed,
    DiarizerSource,
    SourceErr,
    SourceError,
    SourceOk,
    SourceRejectionError,
    SourceResult,
    SourceTransientError,
    SourceUnavailable,
    TranslatorSource,
)
from .diarizer import AssemblyAIDiarizerSource
from .mock import MockDiarizerSource, MockTranslatorSource
from .retry import RetryPolicy, call_with_retry, classify_http_failure
from .translator import OpenAITranslatorSource

__all__ = [
    "AssemblyAIDiarizerSource",
    "BothSourcesFailed",
    "DiarizerSource",
    "MockDiarizerSource",
    "MockTranslatorSource",
    "OpenAITranslatorSource",
    "RetryPolicy",
    "SourceErr",
    "SourceError",
    "SourceOk",
    "SourceRejectionError",
    "SourceResult",
    "SourceTransientError",
    "SourceUnavailable",
    "TranslatorSource",
    "call_with_retry",
    "classify_http_failure",
]
