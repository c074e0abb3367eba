from __future__ import annotations

"""
Redistribute translated transcript text across diarizer segments.

Design intent:
- Final wording comes from the translator; timing and speaker identity come from the diarizer.
- Pick a strategy from the sentence/segment count relationship and tag every output with it.
- Never drop or duplicate a word, whatever the granularity mismatch.
"""

import math
from typing import Any, Sequence

from diagnosis_backend.asr.formatting import ensure_terminal_punctuation, split_sentences
from diagnosis_backend.asr.models import AlignedSegment, MappingMethod, OptimizedSegment
from diagnosis_backend.internal_core.config import ReconcileConfig


def _aligned(segment: OptimizedSegment, text: str, method: MappingMethod) -> AlignedSegment:
    return AlignedSegment(
        speaker=segment.speaker,
        text=text,
        start_ms=segment.start_ms,
        end_ms=segment.end_ms,
        confidence=segment.confidence,
        whisper_based=True,
        assembly_ai=True,
        mapping_method=method,
    )


def _map_one_to_one(sentences: Sequence[str], segments: Sequence[OptimizedSegment]) -> list[AlignedSegment]:
    return [_aligned(segment, sentence, "one-to-one") for sentence, segment in zip(sentences, segments)]


def _map_sentence_groups(sentences: Sequence[str], segments: Sequence[OptimizedSegment]) -> list[AlignedSegment]:
    group_size = math.ceil(len(sentences) / len(segments))
    out: list[AlignedSegment] = []
    for idx, segment in enumerate(segments):
        start = idx * group_size
        end = None if idx == len(segments) - 1 else start + group_size
        group = sentences[start:end]
        if not group:
            continue
        text = " ".join(ensure_terminal_punctuation(sentence) for sentence in group)
        out.append(_aligned(segment, text, "sentence-grouping"))
    return out


def _map_by_duration(text: str, segments: Sequence[OptimizedSegment]) -> list[AlignedSegment]:
    words = text.split()
    total_words = len(words)
    durations = [max(0, segment.duration_ms) for segment in segments]
    total_duration = sum(durations)
    if total_duration > 0:
        shares = [duration / total_duration for duration in durations]
    else:
        shares = [1.0 / len(segments)] * len(segments)

    out: list[AlignedSegment] = []
    cursor = 0
    last_idx = len(segments) - 1
    for idx, (segment, share) in enumerate(zip(segments, shares)):
        remaining = total_words - cursor
        if remaining <= 0:
            break
        if idx == last_idx:
            take = remaining
        else:
            take = max(1, round(share * total_words))
            # Leave at least one word for each later segment when there are enough words.
            take = min(take, max(1, remaining - (last_idx - idx)))
        out.append(_aligned(segment, " ".join(words[cursor : cursor + take]), "content-proportional"))
        cursor += take
    return out


def align_text_to_segments_with_debug(
    text: str,
    segments: Sequence[OptimizedSegment],
    config: ReconcileConfig,
) -> tuple[list[AlignedSegment], dict[str, Any]]:
    source = (text or "").strip()
    ordered = sorted(segments, key=lambda item: (item.start_ms, item.end_ms))
    if not source or not ordered:
        return [], {"strategy": "none", "reason": "empty_input", "segments_in": len(ordered)}

    if len(ordered) == 1:
        return [_aligned(ordered[0], source, "single-segment")], {
            "strategy": "single-segment",
            "segments_in": 1,
            "segments_out": 1,
        }

    sentences = split_sentences(source, min_chars=config.min_sentence_chars)
    if len(sentences) == len(ordered):
        aligned = _map_one_to_one(sentences, ordered)
        strategy = "one-to-one"
    elif len(sentences) > len(ordered):
        aligned = _map_sentence_groups(sentences, ordered)
        strategy = "sentence-grouping"
    else:
        aligned = _map_by_duration(source, ordered)
        strategy = "content-proportional"

    return aligned, {
        "strategy": strategy,
        "sentences": len(sentences),
        "segments_in": len(ordered),
        "segments_out": len(aligned),
        "words_in": len(source.split()),
        "words_out": sum(len(item.text.split()) for item in aligned),
    }


def align_text_to_segments(
    text: str,
    segments: Sequence[OptimizedSegment],
    config: ReconcileConfig,
) -> list[AlignedSegment]:
    aligned, _ = align_text_to_segments_with_debug(text, segments, config)
    return aligned
