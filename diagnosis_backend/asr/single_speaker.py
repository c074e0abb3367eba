from __future__ import annotations

"""
Detect diarizer over-segmentation of a single real speaker.

Design intent:
- Run independent statistical tests in a fixed, auditable order; first match wins.
- Each test is a pure predicate returning a verdict with a human-readable justification.
- Never collapse on too little data.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from diagnosis_backend.asr.models import Utterance
from diagnosis_backend.internal_core.config import ReconcileConfig


@dataclass(frozen=True)
class SingleSpeakerVerdict:
    single_speaker: bool
    primary_speaker: Optional[str]
    reason: str
    test: Optional[str] = None

    def as_debug(self) -> dict[str, object]:
        return {
            "single_speaker": self.single_speaker,
            "primary_speaker": self.primary_speaker,
            "reason": self.reason,
            "test": self.test,
        }


SpeakerTest = Callable[[Sequence[Utterance], ReconcileConfig], Optional[SingleSpeakerVerdict]]


def _speaker_counts(segments: Sequence[Utterance]) -> Counter[str]:
    return Counter(item.speaker for item in segments)


def _most_common_speaker(segments: Sequence[Utterance]) -> str:
    counts = _speaker_counts(segments)
    # Ties resolve to the speaker heard first.
    first_seen: dict[str, int] = {}
    for idx, item in enumerate(segments):
        first_seen.setdefault(item.speaker, idx)
    return sorted(counts.items(), key=lambda pair: (-pair[1], first_seen[pair[0]]))[0][0]


def dominance_test(segments: Sequence[Utterance], config: ReconcileConfig) -> Optional[SingleSpeakerVerdict]:
    speaker = _most_common_speaker(segments)
    share = _speaker_counts(segments)[speaker] / len(segments)
    if share > config.dominance_ratio:
        return SingleSpeakerVerdict(
            single_speaker=True,
            primary_speaker=speaker,
            reason=f"speaker {speaker} holds {share:.0%} of segments (> {config.dominance_ratio:.0%})",
            test="dominance",
        )
    return None


def rapid_alternation_test(
    segments: Sequence[Utterance], config: ReconcileConfig
) -> Optional[SingleSpeakerVerdict]:
    gaps: list[int] = []
    for prev, item in zip(segments, segments[1:]):
        if item.speaker != prev.speaker:
            gaps.append(item.start_ms - prev.end_ms)
    if not gaps:
        return None

    rapid = int(np.count_nonzero(np.asarray(gaps) < config.rapid_alternation_gap_ms))
    ratio = rapid / len(gaps)
    if ratio > config.rapid_alternation_ratio:
        speaker = _most_common_speaker(segments)
        return SingleSpeakerVerdict(
            single_speaker=True,
            primary_speaker=speaker,
            reason=(
                f"{rapid}/{len(gaps)} speaker changes happen within "
                f"{config.rapid_alternation_gap_ms}ms; back-and-forth this fast looks like diarizer noise"
            ),
            test="rapid_alternation",
        )
    return None


def confidence_disparity_test(
    segments: Sequence[Utterance], config: ReconcileConfig
) -> Optional[SingleSpeakerVerdict]:
    by_speaker: dict[str, list[float]] = {}
    for item in segments:
        by_speaker.setdefault(item.speaker, []).append(float(item.confidence))
    if len(by_speaker) != 2:
        return None

    (first, first_conf), (second, second_conf) = [
        (speaker, float(np.mean(values))) for speaker, values in by_speaker.items()
    ]
    disparity = abs(first_conf - second_conf)
    if disparity > config.confidence_disparity:
        winner = first if first_conf >= second_conf else second
        loser = second if winner == first else first
        return SingleSpeakerVerdict(
            single_speaker=True,
            primary_speaker=winner,
            reason=f"mean confidence gap {disparity:.2f} between {winner} and {loser}; {loser} deemed spurious",
            test="confidence_disparity",
        )
    return None


def short_segment_test(segments: Sequence[Utterance], config: ReconcileConfig) -> Optional[SingleSpeakerVerdict]:
    short = sum(1 for item in segments if len(item.text.strip()) < config.short_segment_chars)
    ratio = short / len(segments)
    if ratio > config.short_segment_ratio:
        speaker = _most_common_speaker(segments)
        return SingleSpeakerVerdict(
            single_speaker=True,
            primary_speaker=speaker,
            reason=f"{short}/{len(segments)} segments are shorter than {config.short_segment_chars} characters",
            test="short_segments",
        )
    return None


SPEAKER_TESTS: tuple[SpeakerTest, ...] = (
    dominance_test,
    rapid_alternation_test,
    confidence_disparity_test,
    short_segment_test,
)


def detect_single_speaker(
    segments: Sequence[Utterance],
    config: ReconcileConfig,
    *,
    tests: Sequence[SpeakerTest] = SPEAKER_TESTS,
) -> SingleSpeakerVerdict:
    ordered = sorted(segments, key=lambda item: (item.start_ms, item.end_ms))
    if len(ordered) < 2:
        return SingleSpeakerVerdict(
            single_speaker=False,
            primary_speaker=ordered[0].speaker if ordered else None,
            reason="insufficient data",
        )

    for test in tests:
        verdict = test(ordered, config)
        if verdict is not None:
            return verdict

    return SingleSpeakerVerdict(
        single_speaker=False,
        primary_speaker=ordered[0].speaker,
        reason="multi-speaker pattern",
    )
