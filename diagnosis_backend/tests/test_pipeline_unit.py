import asyncio
import dataclasses
from pathlib import Path
from types import SimpleNamespace

import pytest

from diagnosis_backend.internal_core.audio_intake import AudioValidationError
from diagnosis_backend.internal_core.config import ReconcileConfig, load_service_config
from diagnosis_backend.internal_core.pipeline import ReconciliationPipeline, reconcile
from diagnosis_backend.internal_core.sources import (
    MockDiarizerSource,
    MockTranslatorSource,
    SourceErr,
    SourceOk,
    SourceRejectionError,
    SourceUnavailable,
)
from diagnosis_backend.tests.helpers import utt

HEADACHE_TEXT = "I have a headache. It started yesterday."


def _service_config(tmp_path: Path):
    return dataclasses.replace(
        load_service_config(),
        SERVICE_TMP_DIR=str(tmp_path),
        INTAKE_MIN_AUDIO_BYTES=10,
    )


def _pipeline(translator, diarizer, tmp_path: Path) -> ReconciliationPipeline:
    return ReconciliationPipeline(
        translator,
        diarizer,
        ReconcileConfig(),
        service_config=_service_config(tmp_path),
    )


def test_pipeline_both_sources_one_to_one(tmp_path: Path) -> None:
    translator = MockTranslatorSource(HEADACHE_TEXT)
    diarizer = MockDiarizerSource(
        [
            utt("B", 2000, 4000, confidence=0.65, text="it start yesterday"),
            utt("A", 0, 2000, confidence=0.7, text="i have headache"),
        ]
    )

    response = asyncio.run(_pipeline(translator, diarizer, tmp_path).process_upload(b"x" * 64, "visit.webm", "audio/webm"))

    assert response.success is True
    assert response.text == HEADACHE_TEXT
    assert [(item.speaker, item.text, item.mapping_method) for item in response.speakers] == [
        ("A", "I have a headache.", "one-to-one"),
        ("B", "It started yesterday.", "one-to-one"),
    ]
    assert response.message == "Transcription and speaker detection completed"
    assert response.conversation_text == "A: I have a headache.\nB: It started yesterday."
    assert response.debug["state"] == "both_succeeded"
    assert translator.calls[0]["bytes"] == 64
    assert diarizer.calls[0]["filename"] == "visit.webm"
    assert list(tmp_path.iterdir()) == []


def test_pipeline_monologue_overrides_alignment(tmp_path: Path) -> None:
    text = "Doctor, I am having stomach pain since last night. It gets worse after I eat and I feel dizzy."
    diarizer = MockDiarizerSource(
        [
            utt("A", 0, 2000, confidence=0.75, text="doctor I am having"),
            utt("B", 2100, 4000, confidence=0.75, text="stomach pain since"),
            utt("A", 4100, 6000, confidence=0.75, text="worse after I eat"),
            utt("B", 6100, 8000, confidence=0.75, text="and I feel dizzy"),
        ]
    )

    response = asyncio.run(
        _pipeline(MockTranslatorSource(text), diarizer, tmp_path).process_upload(b"x" * 64, "visit.webm")
    )

    assert len(response.speakers) == 1
    only = response.speakers[0]
    assert (only.start_ms, only.end_ms) == (0, 8000)
    assert only.text == text
    assert only.mapping_method == "monologue"
    assert response.debug["monologue"]["is_monologue"] is True


def test_pipeline_diarizer_failure_uses_fallback(tmp_path: Path) -> None:
    diarizer = MockDiarizerSource(error=SourceUnavailable("UPSTREAM_ERROR", "diarizer down", "diarizer"))

    response = asyncio.run(
        _pipeline(MockTranslatorSource(HEADACHE_TEXT), diarizer, tmp_path).process_upload(b"x" * 64, "visit.wav")
    )

    assert response.success is True
    assert response.speakers
    assert all(item.fallback for item in response.speakers)
    assert [item.speaker for item in response.speakers] == ["A", "B"]
    assert "speaker detection unavailable" in response.message
    assert response.debug["state"] == "a_only_succeeded"


def test_pipeline_translator_failure_uses_diarizer_text(tmp_path: Path) -> None:
    translator = MockTranslatorSource(error=SourceRejectionError("AUTH_FAILED", "bad key", "translator"))
    diarizer = MockDiarizerSource(
        [
            utt("spk_b", 3000, 4000, confidence=0.6, text="Since when?"),
            utt("spk_a", 0, 2000, confidence=0.6, text="My back hurts."),
        ]
    )

    response = asyncio.run(_pipeline(translator, diarizer, tmp_path).process_upload(b"x" * 64, "visit.wav"))

    assert response.success is True
    assert response.text == "My back hurts. Since when?"
    assert [(item.speaker, item.mapping_method) for item in response.speakers] == [
        ("A", "diarizer-only"),
        ("B", "diarizer-only"),
    ]
    assert not any(item.whisper_based for item in response.speakers)
    assert "translation unavailable" in response.message


def test_pipeline_both_failed_aggregates_reasons(tmp_path: Path) -> None:
    translator = MockTranslatorSource(error=SourceUnavailable("RATE_LIMITED", "Rate limited by upstream", "translator"))
    diarizer = MockDiarizerSource(error=SourceRejectionError("JOB_FAILED", "Diarization job failed", "diarizer"))

    response = asyncio.run(_pipeline(translator, diarizer, tmp_path).process_upload(b"x" * 64, "visit.wav"))

    assert response.success is False
    assert response.error == "Translation failed: Rate limited by upstream; Speaker detection failed: Diarization job failed"
    assert response.error_codes == ["RATE_LIMITED", "JOB_FAILED"]
    assert response.speakers == []
    assert list(tmp_path.iterdir()) == []


def test_pipeline_validation_error_skips_sources(tmp_path: Path) -> None:
    translator = MockTranslatorSource(HEADACHE_TEXT)
    diarizer = MockDiarizerSource([utt("A", 0, 1000)])

    with pytest.raises(AudioValidationError) as exc_info:
        asyncio.run(_pipeline(translator, diarizer, tmp_path).process_upload(b"", "visit.webm"))

    assert exc_info.value.code == "EMPTY_FILE"
    assert translator.calls == []
    assert diarizer.calls == []


def test_pipeline_unexpected_source_exception_is_settled(tmp_path: Path) -> None:
    class ExplodingDiarizer(MockDiarizerSource):
        async def diarize(self, audio, *, filename, content_type=None):
            raise RuntimeError("socket closed")

    response = asyncio.run(
        _pipeline(MockTranslatorSource(HEADACHE_TEXT), ExplodingDiarizer(), tmp_path).process_upload(
            b"x" * 64, "visit.wav"
        )
    )

    assert response.success is True
    assert response.debug["state"] == "a_only_succeeded"
    assert list(tmp_path.iterdir()) == []


def test_reconcile_unusable_diarization_falls_back() -> None:
    response = reconcile(
        SourceOk(HEADACHE_TEXT),
        SourceOk([utt("A", 0, 1000, text="uh")]),
        ReconcileConfig(),
    )

    assert response.success is True
    assert all(item.fallback for item in response.speakers)
    assert response.debug["state"] == "a_only_succeeded"


def test_reconcile_both_failed_keeps_debug() -> None:
    response = reconcile(
        SourceErr(SourceRejectionError("NOT_CONFIGURED", "Translator API key is not configured.", "translator")),
        SourceErr(SourceRejectionError("NOT_CONFIGURED", "Diarizer API key is not configured.", "diarizer")),
        ReconcileConfig(),
    )

    assert response.success is False
    assert "Translator API key" in response.error
    assert response.debug["state"] == "both_failed"


def test_reconcile_monologue_spans_noise_dropped_by_optimizer() -> None:
    text = "Doctor, I am having stomach pain since last night. It gets worse after I eat and I feel dizzy."
    utterances = [
        utt("A", 0, 2000, confidence=0.75, text="doctor I am having"),
        utt("B", 2100, 4000, confidence=0.75, text="stomach pain since"),
        utt("A", 4100, 6000, confidence=0.75, text="worse after I eat"),
        utt("B", 6100, 8000, confidence=0.75, text="and I feel dizzy"),
        utt("A", 8100, 9500, text="uh"),
    ]

    response = reconcile(SourceOk(text), SourceOk(utterances), ReconcileConfig())

    assert response.debug["optimizer"]["noise_dropped"] == 1
    only = response.speakers[0]
    assert only.mapping_method == "monologue"
    assert (only.start_ms, only.end_ms) == (0, 9500)


def test_reconcile_rejects_unsettled_results() -> None:
    with pytest.raises(TypeError):
        reconcile(
            SourceErr(SourceRejectionError("REJECTED", "no", "translator")),
            SimpleNamespace(debug={}),
            ReconcileConfig(),
        )
