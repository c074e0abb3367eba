from __future__ import annotations

"""
Lexical monologue detection over the full translated transcript.

Design intent:
- Recognise a single uninterrupted patient statement that the diarizer over-split.
- Require several agreeing signals (phrase register, opening words, segment count) before overriding fusion.
- Emit one segment carrying the translated text verbatim when declared.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from diagnosis_backend.asr.models import AlignedSegment, OptimizedSegment, Utterance
from diagnosis_backend.internal_core.config import ReconcileConfig

_PATIENT_PHRASES = (
    "hello doctor",
    "hi doctor",
    "good morning doctor",
    "i am having",
    "i'm having",
    "i have been",
    "i've been",
    "i feel",
    "i am feeling",
    "my head",
    "my stomach",
    "pain",
    "ache",
    "aching",
    "headache",
    "fever",
    "cough",
    "stomach",
    "since",
    "nausea",
    "dizzy",
    "tired",
    "vomiting",
    "bleeding",
    "swelling",
    "breathing",
)
_DOCTOR_PHRASES = (
    "can you",
    "could you",
    "please describe",
    "how long",
    "how often",
    "do you",
    "have you",
    "are you taking",
    "tell me",
    "when did",
    "any other",
    "let me",
    "i recommend",
    "i will prescribe",
    "prescribe",
)


def _phrase_pattern(phrases: Sequence[str]) -> re.Pattern[str]:
    escaped = sorted((re.escape(phrase) for phrase in phrases), key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(escaped) + r")\b", flags=re.IGNORECASE)


_PATIENT_RE = _phrase_pattern(_PATIENT_PHRASES)
_DOCTOR_RE = _phrase_pattern(_DOCTOR_PHRASES)
_PATIENT_OPENING_RE = re.compile(
    r"^\s*(?:(?:hello|hi|good (?:morning|afternoon|evening))\s*,?\s*doctor\b|doctor\b|i am\b|i'm\b|i have\b|i've\b|my\b)",
    flags=re.IGNORECASE,
)


@dataclass(frozen=True)
class MonologueVerdict:
    is_monologue: bool
    patient_score: int
    doctor_score: int
    opening_matched: bool
    segment_count: int

    def as_debug(self) -> dict[str, object]:
        return {
            "is_monologue": self.is_monologue,
            "patient_score": self.patient_score,
            "doctor_score": self.doctor_score,
            "opening_matched": self.opening_matched,
            "segment_count": self.segment_count,
        }


def score_register(text: str) -> tuple[int, int]:
    """Return (patient_hits, doctor_hits) for the text."""
    source = str(text or "")
    if not source:
        return 0, 0
    return len(_PATIENT_RE.findall(source)), len(_DOCTOR_RE.findall(source))


def detect_monologue(text: str, diarized_segment_count: int, config: ReconcileConfig) -> MonologueVerdict:
    patient_score, doctor_score = score_register(text)
    opening_matched = bool(_PATIENT_OPENING_RE.match(str(text or "")))
    is_monologue = (
        patient_score >= config.monologue_min_patient_score
        and patient_score > doctor_score
        and opening_matched
        and diarized_segment_count > config.monologue_min_segments
    )
    return MonologueVerdict(
        is_monologue=is_monologue,
        patient_score=patient_score,
        doctor_score=doctor_score,
        opening_matched=opening_matched,
        segment_count=int(diarized_segment_count),
    )


def build_monologue_segment(
    text: str,
    segments: Sequence[OptimizedSegment],
    config: ReconcileConfig,
    *,
    window: Optional[Sequence[Utterance]] = None,
) -> AlignedSegment:
    """Collapse the transcript into one patient segment.

    The time span covers `window` when given (the raw diarized utterances, so
    edges dropped as noise still count); otherwise it covers `segments`.
    Confidence is the mean over `segments`.
    """
    span = list(window) if window else list(segments)
    start_ms = min((item.start_ms for item in span), default=0)
    end_ms = max((item.end_ms for item in span), default=0)
    if segments:
        confidence = float(np.clip(np.mean([item.confidence for item in segments]), 0.0, 1.0))
    else:
        confidence = 0.0
    return AlignedSegment(
        speaker=config.patient_speaker_label,
        text=text.strip(),
        start_ms=start_ms,
        end_ms=end_ms,
        confidence=round(confidence, 6),
        whisper_based=True,
        assembly_ai=True,
        mapping_method="monologue",
    )
