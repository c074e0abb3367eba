from __future__ import annotations

"""
Aggregate quality metrics over diarizer segments.

Design intent:
- Single authority for "is this diarization trustworthy" questions.
- Pure snapshot; recomputed by callers whenever the segment list changes.
"""

from typing import Sequence

import numpy as np

from diagnosis_backend.asr.models import QualityMetrics, Utterance
from diagnosis_backend.internal_core.config import ReconcileConfig


def compute_quality_metrics(segments: Sequence[Utterance], config: ReconcileConfig) -> QualityMetrics:
    if not segments:
        return QualityMetrics(
            average_confidence=0.0,
            has_high_confidence_segments=False,
            speaker_count=0,
            high_confidence_count=0,
            low_confidence_count=0,
        )

    confidences = np.asarray([float(item.confidence) for item in segments], dtype=np.float64)
    high_count = int(np.count_nonzero(confidences >= config.high_confidence_threshold))
    low_count = int(np.count_nonzero(confidences < config.low_confidence_cutoff))
    average = float(np.clip(confidences.mean(), 0.0, 1.0))

    return QualityMetrics(
        average_confidence=round(average, 6),
        has_high_confidence_segments=high_count > 0,
        speaker_count=len({item.speaker for item in segments}),
        high_confidence_count=high_count,
        low_confidence_count=low_count,
    )
