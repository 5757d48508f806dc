"""FastAPI application exposing nameplate extraction.

Run with ``uvicorn nameplate.app.api:app``.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from nameplate import __version__
from nameplate.app.dependencies import ExtractionServiceDep
from nameplate.domain.errors import (ExtractionError, PipelineError,
                                     RecordNotFoundError)
from nameplate.domain.models import ExtractionMethod, StorageNamespace
from nameplate.infrastructure.observability import (configure_logging,
                                                    get_logger,
                                                    get_metrics_summary)

logger = get_logger(__name__)

configure_logging()
app = FastAPI(title="Nameplate Extraction API", version=__version__)


class ExtractRequest(BaseModel):
    image_id: str = Field(min_length=1)
    owner_id: str | None = None
    method: str = "llm"
    model: str | None = None
    force: bool = False
    test_mode: bool = False


class ExtractResponse(BaseModel):
    prediction_id: int
    result: dict[str, Any]
    cached: bool


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.get("/metrics")
async def metrics() -> dict[str, Any]:
    """In-process counters and histograms."""
    return get_metrics_summary()


@app.post("/extract", response_model=ExtractResponse)
async def extract(payload: ExtractRequest, service: ExtractionServiceDep) -> ExtractResponse:
    """Extract (or return the stored) fields for an uploaded image."""
    try:
        method = ExtractionMethod.from_string(payload.method)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid method: {payload.method}") from exc
    if method not in (ExtractionMethod.LLM, ExtractionMethod.HYBRID):
        raise HTTPException(status_code=400, detail=f"Unsupported method: {method.value}")

    try:
        outcome = await service.extract(
            payload.image_id,
            payload.owner_id,
            method,
            payload.model,
            force=payload.force,
            namespace=StorageNamespace.for_test_mode(payload.test_mode),
        )
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (ExtractionError, PipelineError) as exc:
        logger.error("Extraction failed for %s: %s", payload.image_id, exc)
        raise HTTPException(status_code=502, detail=f"Extraction failed: {exc}") from exc
    return ExtractResponse(**outcome.to_dict())


@app.get("/predictions/{image_id}")
async def get_prediction(
    image_id: str, service: ExtractionServiceDep, owner_id: str | None = None
) -> dict[str, Any]:
    prediction = service.get_prediction(image_id, owner_id)
    if prediction is None:
        raise HTTPException(status_code=404, detail=f"No prediction for image '{image_id}'")
    return {
        "prediction_id": prediction.id,
        "image_id": prediction.image_id,
        "model_version": prediction.model_version,
        "created_at": prediction.created_at,
        "result": prediction.to_result_dict(),
    }
