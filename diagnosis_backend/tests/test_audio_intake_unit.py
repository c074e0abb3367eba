from pathlib import Path

import pytest

from diagnosis_backend.internal_core.audio_intake import (
    AudioValidationError,
    staged_audio_file,
    validate_audio_upload,
)

LIMITS = {"min_bytes": 1000, "max_bytes": 10_000}


@pytest.mark.parametrize(
    ("payload", "filename", "code"),
    [
        (b"", "visit.webm", "EMPTY_FILE"),
        (b"x" * 10, "visit.webm", "FILE_TOO_SMALL"),
        (b"x" * 20_000, "visit.webm", "FILE_TOO_LARGE"),
        (b"x" * 2000, "notes.txt", "UNSUPPORTED_FORMAT"),
    ],
)
def test_validate_audio_upload_rejects(payload: bytes, filename: str, code: str) -> None:
    with pytest.raises(AudioValidationError) as exc_info:
        validate_audio_upload(payload, filename, "audio/webm", **LIMITS)

    assert exc_info.value.code == code


def test_validate_audio_upload_accepts_known_extension() -> None:
    assert validate_audio_upload(b"x" * 2000, "Visit.MP3", None, **LIMITS) == ".mp3"


def test_validate_audio_upload_infers_suffix_without_extension() -> None:
    assert validate_audio_upload(b"x" * 2000, "recording", "audio/mpeg", **LIMITS) == ".mp3"
    assert validate_audio_upload(b"x" * 2000, "recording", None, **LIMITS) == ".webm"


def test_staged_audio_file_removed_on_error(tmp_path: Path) -> None:
    seen: list[Path] = []
    with pytest.raises(RuntimeError):
        with staged_audio_file(b"abc", ".wav", tmp_path, filename="visit one.wav") as path:
            seen.append(path)
            assert path.read_bytes() == b"abc"
            raise RuntimeError("boom")

    assert seen and not seen[0].exists()
    assert seen[0].name.startswith("visit_one_")
    assert list(tmp_path.iterdir()) == []


def test_staged_audio_file_removed_when_write_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def partial_write(self: Path, data: bytes) -> int:
        with self.open("wb") as handle:
            handle.write(data[:2])
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "write_bytes", partial_write)

    with pytest.raises(OSError):
        with staged_audio_file(b"abcdef", ".wav", tmp_path, filename="visit.wav"):
            pass

    assert list(tmp_path.iterdir()) == []
