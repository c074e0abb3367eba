from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from diagnosis_backend.asr.alignment import align_text_to_segments_with_debug
from diagnosis_backend.asr.fallback import synthesize_fallback_segments
from diagnosis_backend.asr.formatting import format_conversation
from diagnosis_backend.asr.models import AlignedSegment, OptimizedSegment, Utterance
from diagnosis_backend.asr.monologue import build_monologue_segment, detect_monologue
from diagnosis_backend.asr.optimizer import optimize_segments
from diagnosis_backend.asr.speaker_labels import canonicalize_speaker

from .audio_intake import sanitize_audio_filename_stem, staged_audio_file, validate_audio_upload
from .config import ReconcileConfig, ServiceConfig, load_reconcile_config, load_service_config
from .contracts import PipelineResponse, PipelineState
from .sources import (
    AssemblyAIDiarizerSource,
    BothSourcesFailed,
    DiarizerSource,
    OpenAITranslatorSource,
    SourceErr,
    SourceError,
    SourceOk,
    SourceResult,
    TranslatorSource,
)

logger = logging.getLogger(__name__)

MESSAGE_COMPLETE = "Transcription and speaker detection completed"


def _settle(result: Any, source_name: str) -> SourceResult:
    if isinstance(result, (SourceOk, SourceErr)):
        return result
    if isinstance(result, SourceError):
        return SourceErr(result, {"source": source_name, "status": "failed"})
    if isinstance(result, BaseException):
        logger.error("source raised unexpectedly source=%s", source_name, exc_info=result)
        return SourceErr(
            SourceError("UNEXPECTED_ERROR", f"{type(result).__name__}: {result}", source_name),
            {"source": source_name, "status": "failed"},
        )
    raise TypeError(f"{source_name} returned {type(result).__name__}, expected a source result")


def _diarizer_only_segments(segments: list[OptimizedSegment]) -> list[AlignedSegment]:
    return [
        AlignedSegment(
            speaker=item.speaker,
            text=item.text,
            start_ms=item.start_ms,
            end_ms=item.end_ms,
            confidence=item.confidence,
            whisper_based=False,
            assembly_ai=True,
            mapping_method="diarizer-only",
        )
        for item in segments
    ]


def _respond(
    state: PipelineState,
    *,
    text: str,
    speakers: list[AlignedSegment],
    message: str,
    debug: dict[str, Any],
) -> PipelineResponse:
    logger.info("pipeline state=%s segments=%d", state, len(speakers))
    return PipelineResponse(
        success=True,
        text=text,
        speakers=speakers,
        message=message,
        conversation_text=format_conversation(speakers),
        debug={**debug, "state": state},
    )


def _fuse(text: str, utterances: list[Utterance], config: ReconcileConfig, debug: dict[str, Any]) -> PipelineResponse:
    optimized = optimize_segments(utterances, config)
    debug["optimizer"] = optimized.debug
    debug["quality_before"] = optimized.quality_before.model_dump()
    debug["quality_after"] = optimized.quality_after.model_dump()

    if not optimized.segments:
        # Diarizer answered but nothing survived cleaning; treat as unusable.
        speakers = synthesize_fallback_segments(text, config)
        return _respond(
            "a_only_succeeded",
            text=text,
            speakers=speakers,
            message=(
                "Transcription completed; speaker detection produced no usable segments, "
                "speakers were estimated from sentence alternation"
            ),
            debug=debug,
        )

    verdict = detect_monologue(text, len(utterances), config)
    debug["monologue"] = verdict.as_debug()
    if verdict.is_monologue:
        speakers = [build_monologue_segment(text, optimized.segments, config, window=utterances)]
    else:
        speakers, align_debug = align_text_to_segments_with_debug(text, optimized.segments, config)
        debug["alignment"] = align_debug

    return _respond("both_succeeded", text=text, speakers=speakers, message=MESSAGE_COMPLETE, debug=debug)


def reconcile(
    translator_result: SourceResult[str],
    diarizer_result: SourceResult[list[Utterance]],
    config: ReconcileConfig,
) -> PipelineResponse:
    """Branch on which sources settled successfully and build the response."""
    debug: dict[str, Any] = {
        "translator": dict(translator_result.debug),
        "diarizer": dict(diarizer_result.debug),
    }

    if isinstance(translator_result, SourceOk) and isinstance(diarizer_result, SourceOk):
        return _fuse(translator_result.value, list(diarizer_result.value), config, debug)

    if isinstance(translator_result, SourceOk) and isinstance(diarizer_result, SourceErr):
        text = translator_result.value
        return _respond(
            "a_only_succeeded",
            text=text,
            speakers=synthesize_fallback_segments(text, config),
            message=(
                f"Transcription completed; speaker detection unavailable ({diarizer_result.error.message}), "
                "speakers were estimated from sentence alternation"
            ),
            debug=debug,
        )

    if isinstance(translator_result, SourceErr) and isinstance(diarizer_result, SourceOk):
        optimized = optimize_segments(diarizer_result.value, config)
        debug["optimizer"] = optimized.debug
        segments = optimized.segments or [
            OptimizedSegment(**item.model_dump(exclude={"speaker"}), speaker=canonicalize_speaker(item.speaker))
            for item in sorted(diarizer_result.value, key=lambda seg: (seg.start_ms, seg.end_ms))
        ]
        speakers = _diarizer_only_segments(segments)
        return _respond(
            "b_only_succeeded",
            text=" ".join(item.text.strip() for item in speakers if item.text.strip()),
            speakers=speakers,
            message=(
                f"Speaker detection completed; translation unavailable ({translator_result.error.message}), "
                "transcript uses the diarizer's own text"
            ),
            debug=debug,
        )

    if not (isinstance(translator_result, SourceErr) and isinstance(diarizer_result, SourceErr)):
        raise TypeError("reconcile expects settled SourceOk/SourceErr results")
    failure = BothSourcesFailed(translator_result.error, diarizer_result.error)
    logger.info("pipeline state=both_failed codes=%s", failure.codes)
    return PipelineResponse(
        success=False,
        message="",
        error=failure.message,
        error_codes=failure.codes,
        debug={**debug, "state": "both_failed"},
    )


class ReconciliationPipeline:
    def __init__(
        self,
        translator: TranslatorSource,
        diarizer: DiarizerSource,
        config: Optional[ReconcileConfig] = None,
        *,
        service_config: Optional[ServiceConfig] = None,
    ) -> None:
        self.translator = translator
        self.diarizer = diarizer
        self.config = config or load_reconcile_config()
        self.service_config = service_config or load_service_config()

    async def _translate(self, audio_path: Path, filename: str, content_type: Optional[str]) -> SourceResult[str]:
        audio = await asyncio.to_thread(audio_path.read_bytes)
        return await self.translator.translate(audio, filename=filename, content_type=content_type)

    async def _diarize(
        self, audio_path: Path, filename: str, content_type: Optional[str]
    ) -> SourceResult[list[Utterance]]:
        audio = await asyncio.to_thread(audio_path.read_bytes)
        return await self.diarizer.diarize(audio, filename=filename, content_type=content_type)

    async def run(
        self,
        audio_path: Path,
        *,
        filename: str,
        content_type: Optional[str] = None,
    ) -> PipelineResponse:
        logger.info("pipeline state=sources_running filename=%s", filename)
        translated, diarized = await asyncio.gather(
            self._translate(audio_path, filename, content_type),
            self._diarize(audio_path, filename, content_type),
            return_exceptions=True,
        )
        response = reconcile(
            _settle(translated, self.translator.name()),
            _settle(diarized, self.diarizer.name()),
            self.config,
        )
        logger.info("pipeline state=responded success=%s", response.success)
        return response

    async def process_upload(
        self,
        payload: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> PipelineResponse:
        """Validate, stage, and reconcile one uploaded recording.

        Raises AudioValidationError before any source is called.
        """
        cfg = self.service_config
        suffix = validate_audio_upload(
            payload,
            filename,
            content_type,
            min_bytes=cfg.INTAKE_MIN_AUDIO_BYTES,
            max_bytes=cfg.INTAKE_MAX_AUDIO_BYTES,
        )
        source_filename = f"{sanitize_audio_filename_stem(filename)}{suffix}"
        with staged_audio_file(payload, suffix, cfg.tmp_dir_path(), filename=filename) as audio_path:
            return await self.run(audio_path, filename=source_filename, content_type=content_type)


def build_default_pipeline(
    service_config: Optional[ServiceConfig] = None,
    reconcile_config: Optional[ReconcileConfig] = None,
) -> ReconciliationPipeline:
    cfg = service_config or load_service_config()
    return ReconciliationPipeline(
        OpenAITranslatorSource.from_service_config(cfg),
        AssemblyAIDiarizerSource.from_service_config(cfg),
        reconcile_config or load_reconcile_config(),
        service_config=cfg,
    )
