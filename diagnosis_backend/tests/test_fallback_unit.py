from diagnosis_backend.asr.fallback import synthesize_fallback_segments
from diagnosis_backend.internal_core.config import ReconcileConfig


def test_synthesize_fallback_single_sentence() -> None:
    out = synthesize_fallback_segments("I have a headache", ReconcileConfig())

    assert len(out) == 1
    assert out[0].speaker == "A"
    assert out[0].confidence == 0.3
    assert out[0].fallback is True
    assert out[0].mapping_method == "fallback-single"
    assert out[0].start_ms == 0
    assert out[0].end_ms == len("I have a headache") * 65


def test_synthesize_fallback_alternates_with_monotonic_clock() -> None:
    text = "I have a headache. How long has it hurt? Since yesterday morning."
    config = ReconcileConfig()

    out = synthesize_fallback_segments(text, config)

    assert [item.speaker for item in out] == ["A", "B", "A"]
    assert all(item.fallback for item in out)
    assert all(item.mapping_method == "fallback-alternating" for item in out)
    assert all(item.confidence == config.fallback_alternating_confidence for item in out)
    assert not any(item.assembly_ai for item in out)
    for prev, item in zip(out, out[1:]):
        assert item.start_ms == prev.end_ms + config.fallback_gap_ms
    assert " ".join(item.text for item in out) == text


def test_synthesize_fallback_short_text_uses_minimum_duration() -> None:
    out = synthesize_fallback_segments("Ouch", ReconcileConfig())

    assert out[0].end_ms == 1000


def test_synthesize_fallback_empty_text() -> None:
    assert synthesize_fallback_segments("   ", ReconcileConfig()) == []
