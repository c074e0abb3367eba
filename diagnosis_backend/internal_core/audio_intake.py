from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

SUPPORTED_AUDIO_EXTENSIONS = {
    ".flac",
    ".m4a",
    ".mp3",
    ".mp4",
    ".mpeg",
    ".mpga",
    ".oga",
    ".ogg",
    ".wav",
    ".webm",
}
DEFAULT_AUDIO_SUFFIX = ".webm"


class AudioValidationError(ValueError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _guess_audio_suffix_from_mime(mime_type: Optional[str]) -> str:
    mt = str(mime_type or "").strip().lower()
    if "wav" in mt:
        return ".wav"
    if "mpeg" in mt or "mp3" in mt:
        return ".mp3"
    if "mp4" in mt or "m4a" in mt or "aac" in mt:
        return ".m4a"
    if "flac" in mt:
        return ".flac"
    if "ogg" in mt:
        return ".ogg"
    return DEFAULT_AUDIO_SUFFIX


def sanitize_audio_filename_stem(filename: str) -> str:
    raw_stem = Path(str(filename or "audio")).stem.strip()
    if not raw_stem:
        raw_stem = "audio"
    safe = "".join(ch if (ch.isalnum() or ch in {"_", "-"}) else "_" for ch in raw_stem)
    safe = safe.strip("_")
    return (safe or "audio")[:64]


def resolve_audio_suffix(filename: str, content_type: Optional[str]) -> str:
    suffix = Path(str(filename or "")).suffix.lower()
    if suffix:
        return suffix
    return _guess_audio_suffix_from_mime(content_type)


def validate_audio_upload(
    payload: bytes,
    filename: str,
    content_type: Optional[str],
    *,
    min_bytes: int,
    max_bytes: int,
) -> str:
    """Check an uploaded blob and return the file suffix to stage it under.

    Raises AudioValidationError before any source is contacted.
    """
    size = len(payload or b"")
    if size == 0:
        raise AudioValidationError("EMPTY_FILE", "Uploaded audio file is empty.")
    if size < int(min_bytes):
        raise AudioValidationError(
            "FILE_TOO_SMALL",
            f"Uploaded audio is too small ({size} bytes, minimum {int(min_bytes)}).",
        )
    if size > int(max_bytes):
        raise AudioValidationError(
            "FILE_TOO_LARGE",
            f"Uploaded audio exceeds the {int(max_bytes) // (1024 * 1024)}MB limit.",
        )

    suffix = resolve_audio_suffix(filename, content_type)
    if suffix not in SUPPORTED_AUDIO_EXTENSIONS:
        allowed = ", ".join(sorted(SUPPORTED_AUDIO_EXTENSIONS))
        raise AudioValidationError(
            "UNSUPPORTED_FORMAT",
            f"Unsupported audio format '{suffix}'. Accepted: {allowed}.",
        )
    return suffix


@contextmanager
def staged_audio_file(
    payload: bytes,
    suffix: str,
    tmp_dir: Path,
    *,
    filename: str = "audio",
) -> Iterator[Path]:
    """Write the payload to a temp file that is removed when the block exits."""
    tmp_dir.mkdir(parents=True, exist_ok=True)
    tmp_path = tmp_dir / f"{sanitize_audio_filename_stem(filename)}_{uuid4().hex[:10]}{suffix}"
    try:
        tmp_path.write_bytes(payload)
        logger.debug("staged audio path=%s bytes=%d", tmp_path, len(payload))
        yield tmp_path
    finally:
        tmp_path.unlink(missing_ok=True)
