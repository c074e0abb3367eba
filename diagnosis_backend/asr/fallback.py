from __future__ import annotations

"""
Synthesize approximate speaker segments from translated text alone.

Design intent:
- Used only when the diarizer produced nothing usable but the translator succeeded.
- Mark every synthetic span so callers never mistake it for real diarization.
- Keep the synthetic clock monotonic and every word of the text accounted for.
"""

from diagnosis_backend.asr.formatting import normalize_whitespace, split_sentences
from diagnosis_backend.asr.models import AlignedSegment
from diagnosis_backend.internal_core.config import ReconcileConfig

_ALTERNATING_SPEAKERS = ("A", "B")


def _estimated_duration_ms(text: str, config: ReconcileConfig) -> int:
    return max(int(config.fallback_min_duration_ms), len(text) * int(config.fallback_ms_per_char))


def synthesize_fallback_segments(text: str, config: ReconcileConfig) -> list[AlignedSegment]:
    source = normalize_whitespace(text)
    if not source:
        return []

    sentences = split_sentences(source, min_chars=config.min_sentence_chars)
    if len(sentences) <= 1:
        return [
            AlignedSegment(
                speaker=_ALTERNATING_SPEAKERS[0],
                text=source,
                start_ms=0,
                end_ms=_estimated_duration_ms(source, config),
                confidence=config.fallback_single_confidence,
                whisper_based=True,
                assembly_ai=False,
                mapping_method="fallback-single",
                fallback=True,
            )
        ]

    out: list[AlignedSegment] = []
    cursor_ms = 0
    for idx, sentence in enumerate(sentences):
        end_ms = cursor_ms + _estimated_duration_ms(sentence, config)
        out.append(
            AlignedSegment(
                speaker=_ALTERNATING_SPEAKERS[idx % len(_ALTERNATING_SPEAKERS)],
                text=sentence,
                start_ms=cursor_ms,
                end_ms=end_ms,
                confidence=config.fallback_alternating_confidence,
                whisper_based=True,
                assembly_ai=False,
                mapping_method="fallback-alternating",
                fallback=True,
            )
        )
        cursor_ms = end_ms + int(config.fallback_gap_ms)
    return out
