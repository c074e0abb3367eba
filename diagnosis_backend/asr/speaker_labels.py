from __future__ import annotations

"""
Map diarizer-specific speaker identifiers onto the canonical A/B/C alphabet.

Design intent:
- One total, stateless mapping used at every point a raw label enters the pipeline.
- Idempotent so already-canonical labels pass through unchanged.
"""

_CANONICAL_RULES: tuple[tuple[str, str, str], ...] = (
    ("a", "0", "A"),
    ("b", "1", "B"),
    ("c", "2", "C"),
)


def canonicalize_speaker(raw: str | None) -> str:
    label = str(raw or "").strip()
    lowered = label.lower()
    for letter, digit, canonical in _CANONICAL_RULES:
        if letter in lowered or lowered == digit:
            return canonical
    return label.upper()
