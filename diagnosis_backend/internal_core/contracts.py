from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from diagnosis_backend.asr.models import AlignedSegment

PipelineState = Literal[
    "idle",
    "sources_running",
    "both_succeeded",
    "a_only_succeeded",
    "b_only_succeeded",
    "both_failed",
    "responded",
]


class PipelineResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    success: bool
    text: str = ""
    speakers: List[AlignedSegment] = Field(default_factory=list)
    message: str = ""
    error: Optional[str] = None
    error_codes: List[str] = Field(default_factory=list)
    conversation_text: str = ""
    debug: Dict[str, Any] = Field(default_factory=dict)
