"""Composition root and shared FastAPI dependencies.

One :class:`RequestThrottle` is created per process and injected into the
vision extractor; everything that extracts shares it.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from nameplate.app.config import Settings, load_settings
from nameplate.infrastructure.ai import (
    OcrExtractor,
    RequestThrottle,
    RuleBasedExtractor,
    VisionExtractor,
)
from nameplate.infrastructure.storage import (
    BlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
)
from nameplate.services import ExtractionPipeline, ExtractionService
from nameplate.services.base import sqlite_connection_factory

__all__ = [
    "build_blob_store",
    "build_pipeline",
    "build_service",
    "build_throttle",
    "get_extraction_service",
    "get_settings",
    "ExtractionServiceDep",
]


def build_throttle(settings: Settings) -> RequestThrottle:
    return RequestThrottle(
        max_requests_per_minute=settings.throttle.max_requests_per_minute,
        max_tokens_per_minute=settings.throttle.max_tokens_per_minute,
        estimated_tokens_per_request=settings.throttle.estimated_tokens_per_request,
    )


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.storage.backend == "supabase":
        return SupabaseBlobStore(
            settings.storage.supabase_url,
            settings.supabase_service_key,
            timeout=settings.storage.timeout,
        )
    return LocalBlobStore(settings.storage.root)


def build_pipeline(
    settings: Settings,
    blob_store: BlobStore | None = None,
    throttle: RequestThrottle | None = None,
) -> ExtractionPipeline:
    """Wire extractors and storage into a pipeline."""
    vision = VisionExtractor(
        throttle or build_throttle(settings),
        api_key=settings.openai_api_key,
        model=settings.vision.model,
        base_url=settings.vision.base_url,
        timeout=settings.vision.timeout,
        temperature=settings.vision.temperature,
        max_retries=settings.vision.max_retries,
        backoff_base_seconds=settings.vision.backoff_base_seconds,
    )
    ocr = OcrExtractor(
        api_key=settings.ocr_api_key,
        endpoint=settings.ocr.endpoint,
        language=settings.ocr.language,
        engine=settings.ocr.engine,
        max_image_bytes=settings.ocr.max_image_bytes,
        timeout=settings.ocr.timeout,
    )
    return ExtractionPipeline(
        blob_store or build_blob_store(settings),
        vision,
        ocr,
        RuleBasedExtractor(),
        signed_url_ttl=settings.storage.signed_url_ttl,
    )


def build_service(settings: Settings) -> ExtractionService:
    blob_store = build_blob_store(settings)
    return ExtractionService(
        sqlite_connection_factory(settings.paths.db_path),
        build_pipeline(settings, blob_store),
        blob_store,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def _cached_service() -> ExtractionService:
    return build_service(get_settings())


def get_extraction_service() -> ExtractionService:
    return _cached_service()


ExtractionServiceDep = Annotated[ExtractionService, Depends(get_extraction_service)]
