from diagnosis_backend.asr.single_speaker import (
    confidence_disparity_test,
    detect_single_speaker,
    dominance_test,
)
from diagnosis_backend.internal_core.config import ReconcileConfig
from diagnosis_backend.tests.helpers import seg

LONG_TEXT = "a reasonably long utterance"


def _alternating(confidences: list[float], gap_ms: int, texts: list[str] | None = None) -> list:
    out = []
    cursor = 0
    for idx, confidence in enumerate(confidences):
        text = texts[idx] if texts else LONG_TEXT
        out.append(seg("A" if idx % 2 == 0 else "B", cursor, cursor + 1000, confidence=confidence, text=text))
        cursor += 1000 + gap_ms
    return out


def test_detect_single_speaker_dominance_nine_of_ten() -> None:
    segments = [seg("B" if idx == 3 else "A", idx * 3000, idx * 3000 + 1000, text=LONG_TEXT) for idx in range(10)]

    verdict = detect_single_speaker(segments, ReconcileConfig())

    assert verdict.single_speaker is True
    assert verdict.primary_speaker == "A"
    assert verdict.test == "dominance"
    assert "90%" in verdict.reason


def test_detect_single_speaker_insufficient_data() -> None:
    verdict = detect_single_speaker([seg("A", 0, 1000)], ReconcileConfig())

    assert verdict.single_speaker is False
    assert verdict.reason == "insufficient data"


def test_detect_single_speaker_rapid_alternation() -> None:
    segments = _alternating([0.9, 0.9, 0.9, 0.9], gap_ms=100)

    verdict = detect_single_speaker(segments, ReconcileConfig())

    assert verdict.single_speaker is True
    assert verdict.test == "rapid_alternation"
    assert verdict.primary_speaker == "A"


def test_detect_single_speaker_confidence_disparity_picks_confident_speaker() -> None:
    segments = _alternating([0.6, 0.95, 0.6, 0.95], gap_ms=3000)

    verdict = detect_single_speaker(segments, ReconcileConfig())

    assert verdict.single_speaker is True
    assert verdict.test == "confidence_disparity"
    assert verdict.primary_speaker == "B"


def test_detect_single_speaker_short_segments() -> None:
    segments = _alternating([0.9] * 4, gap_ms=3000, texts=["ok yes", "mm", "right", LONG_TEXT])

    verdict = detect_single_speaker(segments, ReconcileConfig())

    assert verdict.single_speaker is True
    assert verdict.test == "short_segments"


def test_detect_single_speaker_multi_speaker_pattern() -> None:
    segments = _alternating([0.9] * 4, gap_ms=3000)

    verdict = detect_single_speaker(segments, ReconcileConfig())

    assert verdict.single_speaker is False
    assert verdict.reason == "multi-speaker pattern"
    assert verdict.primary_speaker == "A"


def test_detect_single_speaker_first_match_wins() -> None:
    segments = [seg("B" if idx == 0 else "A", idx * 3000, idx * 3000 + 1000, confidence=0.5 if idx == 0 else 0.95) for idx in range(10)]

    verdict = detect_single_speaker(segments, ReconcileConfig(), tests=(confidence_disparity_test, dominance_test))

    assert verdict.test == "confidence_disparity"
