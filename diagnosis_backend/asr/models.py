from __future__ import annotations

"""
Typed transcript contracts shared by the reconciliation pipeline.

Design intent:
- Enforce timestamp-valid, confidence-bounded segments at every boundary.
- Keep provenance flags explicit so callers can audit which strategy produced a span.
- Expose camelCase wire names to the upstream caller while code stays snake_case.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

MappingMethod = Literal[
    "single-segment",
    "one-to-one",
    "sentence-grouping",
    "content-proportional",
    "monologue",
    "diarizer-only",
    "fallback-single",
    "fallback-alternating",
]


class Utterance(BaseModel):
    """One diarizer-reported speech span, as received (after boundary typing)."""

    model_config = ConfigDict(frozen=True)

    speaker: str
    text: str
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_window(self) -> "Utterance":
        if self.end_ms < self.start_ms:
            raise ValueError("Utterance.end_ms must be >= Utterance.start_ms")
        return self

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


class OptimizedSegment(Utterance):
    merged: bool = False
    fallback: bool = False
    single_speaker_detected: bool = False


class QualityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    average_confidence: float = Field(ge=0.0, le=1.0)
    has_high_confidence_segments: bool
    speaker_count: int = Field(ge=0)
    high_confidence_count: int = Field(ge=0)
    low_confidence_count: int = Field(ge=0)


class AlignedSegment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    speaker: str
    text: str
    start_ms: int = Field(ge=0, alias="startMs")
    end_ms: int = Field(ge=0, alias="endMs")
    confidence: float = Field(ge=0.0, le=1.0)
    whisper_based: bool = Field(alias="whisperBased")
    assembly_ai: bool = Field(alias="assemblyAI")
    mapping_method: MappingMethod = Field(alias="mappingMethod")
    fallback: bool = False

    @model_validator(mode="after")
    def _validate_window(self) -> "AlignedSegment":
        if self.end_ms < self.start_ms:
            raise ValueError("AlignedSegment.end_ms must be >= AlignedSegment.start_ms")
        return self
