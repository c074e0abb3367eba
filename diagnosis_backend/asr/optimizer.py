from __future__ import annotations

"""
Clean and merge raw diarizer utterances into optimized segments.

Design intent:
- Drop noise before it can distort speaker statistics.
- Absorb speaker flips at utterance boundaries that no real dialogue produces.
- Keep every step a new-list transform; segments are never mutated in place.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from diagnosis_backend.asr.models import OptimizedSegment, QualityMetrics, Utterance
from diagnosis_backend.asr.quality import compute_quality_metrics
from diagnosis_backend.asr.single_speaker import SingleSpeakerVerdict, detect_single_speaker
from diagnosis_backend.asr.speaker_labels import canonicalize_speaker
from diagnosis_backend.internal_core.config import ReconcileConfig


@dataclass(frozen=True)
class OptimizationResult:
    segments: list[OptimizedSegment]
    quality_before: QualityMetrics
    quality_after: QualityMetrics
    verdict: Optional[SingleSpeakerVerdict] = None
    debug: dict[str, Any] = field(default_factory=dict)


def _should_merge(prev: OptimizedSegment, item: Utterance, config: ReconcileConfig) -> bool:
    gap = item.start_ms - prev.end_ms
    if item.speaker == prev.speaker:
        return (
            gap < config.merge_gap_ms
            and prev.confidence > config.merge_min_confidence
            and item.confidence > config.merge_min_confidence
        )
    return (
        gap < config.same_person_gap_ms
        and prev.confidence > config.same_person_min_confidence
        and item.confidence > config.same_person_min_confidence
    )


def _merge_pair(prev: OptimizedSegment, item: Utterance) -> OptimizedSegment:
    return OptimizedSegment(
        speaker=prev.speaker,
        text=f"{prev.text.rstrip()} {item.text.lstrip()}".strip(),
        start_ms=prev.start_ms,
        end_ms=max(prev.end_ms, item.end_ms),
        confidence=max(prev.confidence, item.confidence),
        merged=True,
    )


def merge_adjacent_segments(
    utterances: Sequence[Utterance],
    config: ReconcileConfig,
) -> list[OptimizedSegment]:
    merged: list[OptimizedSegment] = []
    for item in sorted(utterances, key=lambda seg: (seg.start_ms, seg.end_ms)):
        if merged and _should_merge(merged[-1], item, config):
            merged[-1] = _merge_pair(merged[-1], item)
            continue
        merged.append(OptimizedSegment(**item.model_dump()))
    return merged


def optimize_segments(utterances: Sequence[Utterance], config: ReconcileConfig) -> OptimizationResult:
    ordered = sorted(utterances, key=lambda item: (item.start_ms, item.end_ms))
    quality_before = compute_quality_metrics(ordered, config)
    if not ordered:
        return OptimizationResult(
            segments=[],
            quality_before=quality_before,
            quality_after=quality_before,
            debug={"status": "empty_input"},
        )

    kept = [item for item in ordered if len(item.text.strip()) >= config.min_segment_chars]
    noise_dropped = len(ordered) - len(kept)

    low_confidence_dropped = 0
    if compute_quality_metrics(kept, config).has_high_confidence_segments:
        confident = [item for item in kept if item.confidence >= config.low_confidence_cutoff]
        low_confidence_dropped = len(kept) - len(confident)
        kept = confident

    merged = merge_adjacent_segments(kept, config)
    segments = [item.model_copy(update={"speaker": canonicalize_speaker(item.speaker)}) for item in merged]
    quality_after = compute_quality_metrics(segments, config)

    verdict: Optional[SingleSpeakerVerdict] = None
    if segments and quality_after.average_confidence > config.trust_threshold:
        verdict = detect_single_speaker(segments, config)
        if verdict.single_speaker and verdict.primary_speaker:
            segments = [
                item.model_copy(update={"speaker": verdict.primary_speaker, "single_speaker_detected": True})
                for item in segments
            ]
            quality_after = compute_quality_metrics(segments, config)

    if verdict is not None:
        detector_debug: dict[str, Any] = verdict.as_debug()
    else:
        detector_debug = {"status": "skipped", "reason": "untrusted" if segments else "no_segments"}

    debug = {
        "status": "ok",
        "segments_in": len(ordered),
        "noise_dropped": noise_dropped,
        "low_confidence_dropped": low_confidence_dropped,
        "segments_out": len(segments),
        "merged_segments": sum(1 for item in segments if item.merged),
        "detector": detector_debug,
    }
    return OptimizationResult(
        segments=segments,
        quality_before=quality_before,
        quality_after=quality_after,
        verdict=verdict,
        debug=debug,
    )
