from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path

import pytest

from nameplate.domain.models import ExtractionMethod, ExtractionResult, LlmRawData
from nameplate.infrastructure.db import get_connection
from nameplate.infrastructure.observability import get_registry
from nameplate.infrastructure.storage import LocalBlobStore
from nameplate.services import ExtractionService


class FakePipeline:
    """Stands in for ExtractionPipeline; records every call."""

    def __init__(self, result: ExtractionResult | None = None,
                 error: Exception | None = None) -> None:
        self.result = result or ExtractionResult(
            method=ExtractionMethod.LLM,
            brand="WHIRLPOOL",
            product_family="LAVE-LINGE",
            model_number="WTW5000DW",
            serial_number="CA1234567890",
            confidence_scores={"brand": 0.95, "model_number": 0.9},
            processing_time_ms=42,
            raw_data=LlmRawData(llm_response={"brand": "WHIRLPOOL"}),
        )
        self.error = error
        self.calls: list[tuple] = []
        self.closed = False

    async def process_image(self, image, method=ExtractionMethod.LLM,
                            model_name=None, *, namespace=None):
        self.calls.append((image, method, model_name, namespace))
        if self.error:
            raise self.error
        return self.result.with_changes(method=method, raw_data=None)

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_metrics():
    get_registry().reset()
    yield


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "nameplate.db"


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def fake_pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def service(db_path: Path, blob_store: LocalBlobStore,
            fake_pipeline: FakePipeline) -> ExtractionService:
    def connection_factory() -> AbstractContextManager:
        return get_connection(db_path)

    return ExtractionService(connection_factory, fake_pipeline, blob_store)
