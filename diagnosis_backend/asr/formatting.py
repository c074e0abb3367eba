from __future__ import annotations

"""
Sentence splitting and speaker-labeled conversation rendering.

Design intent:
- Split transcript text without ever losing a word: short fragments fold into a neighbour.
- Keep the conversation text handed to the diagnosis step deterministic.
"""

import re
from typing import Sequence

from diagnosis_backend.asr.models import AlignedSegment

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split()).strip()


def ensure_terminal_punctuation(text: str) -> str:
    trimmed = text.strip()
    if not trimmed:
        return ""
    if trimmed[-1] in ".!?":
        return trimmed
    return f"{trimmed}."


def split_sentences(text: str, *, min_chars: int = 1) -> list[str]:
    normalized = normalize_whitespace(text)
    if not normalized:
        return []

    parts = [part.strip() for part in _SENTENCE_SPLIT_RE.split(normalized) if part.strip()]
    sentences: list[str] = []
    carry = ""
    for part in parts:
        if carry:
            part = f"{carry} {part}"
            carry = ""
        if len(part) < min_chars:
            if sentences:
                sentences[-1] = f"{sentences[-1]} {part}"
            else:
                carry = part
            continue
        sentences.append(part)
    if carry:
        sentences.append(carry)
    return sentences


def format_conversation(segments: Sequence[AlignedSegment]) -> str:
    lines: list[str] = []
    previous_speaker: str | None = None
    for segment in segments:
        text = ensure_terminal_punctuation(normalize_whitespace(segment.text))
        if not text:
            continue
        if segment.speaker == previous_speaker:
            lines[-1] = f"{lines[-1]} {text}"
            continue
        lines.append(f"{segment.speaker}: {text}")
        previous_speaker = segment.speaker
    return "\n".join(lines)
