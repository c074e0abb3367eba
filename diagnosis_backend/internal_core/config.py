from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _project_root() -> Path:
    # diagnosis_backend/internal_core/config.py -> diagnosis_backend -> project
    return Path(__file__).resolve().parents[2]


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_first(names: list[str], default: str) -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _env_set(name: str) -> bool:
    value = os.getenv(name)
    return value is not None and value != ""


def _getenv_int_preset(name: str, default: int, preset_value: Optional[int]) -> int:
    if _env_set(name):
        return _getenv_int(name, default)
    if preset_value is not None:
        return int(preset_value)
    return default


def _getenv_float_preset(name: str, default: float, preset_value: Optional[float]) -> float:
    if _env_set(name):
        return _getenv_float(name, default)
    if preset_value is not None:
        return float(preset_value)
    return default


def _preset_overrides(name: str) -> dict[str, object]:
    # Tunings seen across earlier revisions of the heuristic; calibrate against labeled transcripts.
    if name == "conservative":
        return {
            "RECONCILE_DOMINANCE_RATIO": 0.95,
            "RECONCILE_RAPID_ALTERNATION_RATIO": 0.85,
            "RECONCILE_CONFIDENCE_DISPARITY": 0.25,
            "RECONCILE_SHORT_SEGMENT_RATIO": 0.6,
        }
    if name == "aggressive":
        return {
            "RECONCILE_DOMINANCE_RATIO": 0.80,
            "RECONCILE_RAPID_ALTERNATION_RATIO": 0.70,
            "RECONCILE_CONFIDENCE_DISPARITY": 0.15,
            "RECONCILE_SHORT_SEGMENT_RATIO": 0.4,
        }
    return {}


@dataclass(frozen=True)
class ReconcileConfig:
    """Every tunable threshold of the reconciliation heuristics.

    Times are milliseconds, confidences and ratios are fractions in [0, 1].
    """

    # Optimizer: noise and confidence filtering.
    min_segment_chars: int = 3
    low_confidence_cutoff: float = 0.5
    high_confidence_threshold: float = 0.8
    # Optimizer: merge rule. Same speaker within a pause, or a speaker flip too fast to be a real turn.
    merge_gap_ms: int = 1000
    merge_min_confidence: float = 0.6
    same_person_gap_ms: int = 300
    same_person_min_confidence: float = 0.8
    # Detector only runs when the diarizer is trusted overall.
    trust_threshold: float = 0.7
    # Single-speaker detector.
    dominance_ratio: float = 0.85
    rapid_alternation_gap_ms: int = 1500
    rapid_alternation_ratio: float = 0.75
    confidence_disparity: float = 0.2
    short_segment_chars: int = 10
    short_segment_ratio: float = 0.5
    # Monologue heuristic.
    monologue_min_patient_score: int = 2
    monologue_min_segments: int = 3
    patient_speaker_label: str = "A"
    # Aligner.
    min_sentence_chars: int = 3
    # Fallback synthesizer.
    fallback_ms_per_char: int = 65
    fallback_gap_ms: int = 500
    fallback_min_duration_ms: int = 1000
    fallback_single_confidence: float = 0.3
    fallback_alternating_confidence: float = 0.5


def load_reconcile_config() -> ReconcileConfig:
    preset = _preset_overrides(_getenv_str("RECONCILE_PRESET", "balanced").strip().lower())
    d = ReconcileConfig()

    def f(name: str, default: float) -> float:
        return _getenv_float_preset(name, default, preset.get(name))

    def i(name: str, default: int) -> int:
        return _getenv_int_preset(name, default, preset.get(name))

    return ReconcileConfig(
        min_segment_chars=i("RECONCILE_MIN_SEGMENT_CHARS", d.min_segment_chars),
        low_confidence_cutoff=f("RECONCILE_LOW_CONFIDENCE_CUTOFF", d.low_confidence_cutoff),
        high_confidence_threshold=f("RECONCILE_HIGH_CONFIDENCE_THRESHOLD", d.high_confidence_threshold),
        merge_gap_ms=i("RECONCILE_MERGE_GAP_MS", d.merge_gap_ms),
        merge_min_confidence=f("RECONCILE_MERGE_MIN_CONFIDENCE", d.merge_min_confidence),
        same_person_gap_ms=i("RECONCILE_SAME_PERSON_GAP_MS", d.same_person_gap_ms),
        same_person_min_confidence=f("RECONCILE_SAME_PERSON_MIN_CONFIDENCE", d.same_person_min_confidence),
        trust_threshold=f("RECONCILE_TRUST_THRESHOLD", d.trust_threshold),
        dominance_ratio=f("RECONCILE_DOMINANCE_RATIO", d.dominance_ratio),
        rapid_alternation_gap_ms=i("RECONCILE_RAPID_ALTERNATION_GAP_MS", d.rapid_alternation_gap_ms),
        rapid_alternation_ratio=f("RECONCILE_RAPID_ALTERNATION_RATIO", d.rapid_alternation_ratio),
        confidence_disparity=f("RECONCILE_CONFIDENCE_DISPARITY", d.confidence_disparity),
        short_segment_chars=i("RECONCILE_SHORT_SEGMENT_CHARS", d.short_segment_chars),
        short_segment_ratio=f("RECONCILE_SHORT_SEGMENT_RATIO", d.short_segment_ratio),
        monologue_min_patient_score=i("RECONCILE_MONOLOGUE_MIN_PATIENT_SCORE", d.monologue_min_patient_score),
        monologue_min_segments=i("RECONCILE_MONOLOGUE_MIN_SEGMENTS", d.monologue_min_segments),
        patient_speaker_label=_getenv_str("RECONCILE_PATIENT_SPEAKER_LABEL", d.patient_speaker_label),
        min_sentence_chars=i("RECONCILE_MIN_SENTENCE_CHARS", d.min_sentence_chars),
        fallback_ms_per_char=i("RECONCILE_FALLBACK_MS_PER_CHAR", d.fallback_ms_per_char),
        fallback_gap_ms=i("RECONCILE_FALLBACK_GAP_MS", d.fallback_gap_ms),
        fallback_min_duration_ms=i("RECONCILE_FALLBACK_MIN_DURATION_MS", d.fallback_min_duration_ms),
        fallback_single_confidence=f("RECONCILE_FALLBACK_SINGLE_CONFIDENCE", d.fallback_single_confidence),
        fallback_alternating_confidence=f(
            "RECONCILE_FALLBACK_ALTERNATING_CONFIDENCE", d.fallback_alternating_confidence
        ),
    )


@dataclass(frozen=True)
class ServiceConfig:
    TRANSLATOR_API_KEY: str
    TRANSLATOR_BASE_URL: str
    TRANSLATOR_MODEL: str
    DIARIZER_API_KEY: str
    DIARIZER_BASE_URL: str
    SOURCE_TIMEOUT_SECONDS: float
    SOURCE_MAX_ATTEMPTS: int
    SOURCE_EARLY_RETRY_DELAY_SECONDS: float
    SOURCE_EARLY_RETRY_COUNT: int
    SOURCE_BACKOFF_BASE_SECONDS: float
    DIARIZER_POLL_INTERVAL_SECONDS: float
    DIARIZER_POLL_TIMEOUT_SECONDS: float
    INTAKE_MIN_AUDIO_BYTES: int
    INTAKE_MAX_AUDIO_BYTES: int
    SERVICE_TMP_DIR: str
    SERVICE_LOG_LEVEL: str

    def tmp_dir_path(self, repo_root: Path | None = None) -> Path:
        return ((repo_root or _project_root()) / self.SERVICE_TMP_DIR).resolve()


def load_service_config() -> ServiceConfig:
    return ServiceConfig(
        TRANSLATOR_API_KEY=_getenv_first(["TRANSLATOR_API_KEY", "OPENAI_API_KEY"], ""),
        TRANSLATOR_BASE_URL=_getenv_str("TRANSLATOR_BASE_URL", "https://api.openai.com/v1"),
        TRANSLATOR_MODEL=_getenv_str("TRANSLATOR_MODEL", "whisper-1"),
        DIARIZER_API_KEY=_getenv_first(["DIARIZER_API_KEY", "ASSEMBLYAI_API_KEY"], ""),
        DIARIZER_BASE_URL=_getenv_str("DIARIZER_BASE_URL", "https://api.assemblyai.com/v2"),
        SOURCE_TIMEOUT_SECONDS=_getenv_float("SOURCE_TIMEOUT_SECONDS", 120.0),
        SOURCE_MAX_ATTEMPTS=_getenv_int("SOURCE_MAX_ATTEMPTS", 3),
        SOURCE_EARLY_RETRY_DELAY_SECONDS=_getenv_float("SOURCE_EARLY_RETRY_DELAY_SECONDS", 10.0),
        SOURCE_EARLY_RETRY_COUNT=_getenv_int("SOURCE_EARLY_RETRY_COUNT", 2),
        SOURCE_BACKOFF_BASE_SECONDS=_getenv_float("SOURCE_BACKOFF_BASE_SECONDS", 2.0),
        DIARIZER_POLL_INTERVAL_SECONDS=_getenv_float("DIARIZER_POLL_INTERVAL_SECONDS", 3.0),
        DIARIZER_POLL_TIMEOUT_SECONDS=_getenv_float("DIARIZER_POLL_TIMEOUT_SECONDS", 300.0),
        INTAKE_MIN_AUDIO_BYTES=_getenv_int("INTAKE_MIN_AUDIO_BYTES", 1000),
        INTAKE_MAX_AUDIO_BYTES=_getenv_int("INTAKE_MAX_AUDIO_BYTES", 25 * 1024 * 1024),
        SERVICE_TMP_DIR=_getenv_str("SERVICE_TMP_DIR", "./tmp"),
        SERVICE_LOG_LEVEL=_getenv_str("SERVICE_LOG_LEVEL", "INFO"),
    )
