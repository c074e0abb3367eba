from diagnosis_backend.asr.speaker_labels import canonicalize_speaker


def test_canonicalize_speaker_maps_letters_and_digits() -> None:
    assert canonicalize_speaker("a") == "A"
    assert canonicalize_speaker("0") == "A"
    assert canonicalize_speaker(" B ") == "B"
    assert canonicalize_speaker("1") == "B"
    assert canonicalize_speaker("c") == "C"
    assert canonicalize_speaker("2") == "C"
    assert canonicalize_speaker("speaker_a") == "A"


def test_canonicalize_speaker_uppercases_unknown_labels() -> None:
    assert canonicalize_speaker("d") == "D"
    assert canonicalize_speaker("spk_7") == "SPK_7"
    assert canonicalize_speaker(None) == ""


def test_canonicalize_speaker_is_idempotent() -> None:
    for raw in ["a", "B", "0", "1", "2", "c", "d", "spk_7", "Speaker 3", "", "x y z", "Guest", "  e  "]:
        once = canonicalize_speaker(raw)
        assert canonicalize_speaker(once) == once
