from __future__ import annotations

"""
API surface for the transcript reconciliation pipeline.

Design intent:
- Keep API orchestration thin and typed.
- Delegate reconciliation to the pipeline; map its outcomes to status codes only.
- Accept raw audio bodies the same way the upload endpoint always has.
"""

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from diagnosis_backend.internal_core.audio_intake import AudioValidationError
from diagnosis_backend.internal_core.config import load_service_config
from diagnosis_backend.internal_core.contracts import PipelineResponse
from diagnosis_backend.internal_core.pipeline import ReconciliationPipeline, build_default_pipeline

app = FastAPI(title="diagnosis backend service")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _configure_logging() -> None:
    level_name = str(load_service_config().SERVICE_LOG_LEVEL or "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    logging.getLogger("diagnosis_backend").setLevel(level if isinstance(level, int) else logging.INFO)


_configure_logging()


def _get_pipeline() -> ReconciliationPipeline:
    existing = getattr(app.state, "reconciliation_pipeline", None)
    if isinstance(existing, ReconciliationPipeline):
        return existing
    created = build_default_pipeline()
    setattr(app.state, "reconciliation_pipeline", created)
    return created


def _failure_status(response: PipelineResponse) -> int:
    if "RATE_LIMITED" in response.error_codes:
        return 429
    return 500


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/diagnosis/transcribe", response_model=PipelineResponse)
async def transcribe_audio(
    request: Request,
    filename: str = Query(min_length=1, max_length=255),
):
    filename = Path(str(filename or "")).name
    if not filename:
        raise HTTPException(status_code=400, detail="Missing filename.")

    try:
        pipeline = _get_pipeline()
    except ValueError as exc:
        logger.error("pipeline configuration invalid: %s", exc)
        raise HTTPException(status_code=500, detail=f"Configuration error: {exc}") from exc

    payload = await request.body()
    content_type = request.headers.get("content-type")
    try:
        response = await pipeline.process_upload(payload, filename, content_type)
    except AudioValidationError as exc:
        raise HTTPException(status_code=400, detail=f"{exc.code}: {exc.message}") from exc

    if not response.success:
        return JSONResponse(
            status_code=_failure_status(response),
            content=response.model_dump(mode="json", by_alias=True),
        )
    return response
