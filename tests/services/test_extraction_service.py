"""Tests for the extraction service (uploads, caching, persistence)."""

from __future__ import annotations

import asyncio

import pytest

from nameplate.domain.errors import ExtractionError, RecordNotFoundError
from nameplate.domain.models import (ExtractionMethod, GroundTruthRecord,
                                     StorageNamespace)
from nameplate.services import UploadRejectedError, validate_upload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _upload(service, owner_id="owner-1", namespace=StorageNamespace.PRODUCTION):
    return asyncio.run(service.register_upload(
        owner_id=owner_id,
        filename="plate.PNG",
        data=PNG_BYTES,
        mime_type="image/png",
        namespace=namespace,
    ))


class TestValidateUpload:
    def test_accepts_supported_types(self):
        for mime_type in ("image/jpeg", "image/png", "image/webp"):
            validate_upload(mime_type, 1024)

    def test_rejects_unsupported_type(self):
        with pytest.raises(UploadRejectedError, match="Unsupported file type"):
            validate_upload("image/gif", 1024)

    def test_rejects_oversized(self):
        with pytest.raises(UploadRejectedError, match="too large"):
            validate_upload("image/jpeg", 1024 * 1024 + 1)

    def test_rejects_empty(self):
        with pytest.raises(UploadRejectedError):
            validate_upload("image/jpeg", 0)


class TestRegisterUpload:
    def test_stores_blob_and_record(self, service, blob_store):
        record = _upload(service)

        assert record.owner_id == "owner-1"
        assert record.storage_path == f"owner-1/{record.id}.png"
        assert record.file_size == len(PNG_BYTES)
        stored = asyncio.run(
            blob_store.get(StorageNamespace.PRODUCTION, record.storage_path))
        assert stored == PNG_BYTES
        assert service.get_image(record.id).original_filename == "plate.PNG"

    def test_test_mode_uses_ephemeral_bucket(self, service, blob_store):
        record = _upload(service, namespace=StorageNamespace.EPHEMERAL)
        stored = asyncio.run(
            blob_store.get(StorageNamespace.EPHEMERAL, record.storage_path))
        assert stored == PNG_BYTES

    def test_rejected_upload_stores_nothing(self, service):
        with pytest.raises(UploadRejectedError):
            asyncio.run(service.register_upload(
                owner_id="owner-1", filename="a.gif", data=b"GIF89a",
                mime_type="image/gif"))
        assert service.list_images() == []


class TestExtract:
    def test_unknown_image(self, service):
        with pytest.raises(RecordNotFoundError):
            asyncio.run(service.extract("missing"))

    def test_owner_mismatch_is_not_found(self, service):
        record = _upload(service)
        with pytest.raises(RecordNotFoundError):
            asyncio.run(service.extract(record.id, "someone-else"))

    def test_runs_pipeline_and_saves_prediction(self, service, fake_pipeline):
        record = _upload(service)

        outcome = asyncio.run(service.extract(
            record.id, "owner-1", ExtractionMethod.HYBRID, "gpt-4o"))

        assert outcome.cached is False
        assert outcome.prediction.brand == "WHIRLPOOL"
        assert outcome.prediction.processing_method == "hybrid"
        assert outcome.prediction.model_version == "v1.0"
        assert outcome.prediction.brand_confidence == 0.95
        assert outcome.prediction.serial_number_confidence is None
        image, method, model_name, namespace = fake_pipeline.calls[0]
        assert image.id == record.id
        assert method == ExtractionMethod.HYBRID
        assert model_name == "gpt-4o"
        assert namespace == StorageNamespace.PRODUCTION

    def test_second_call_returns_stored_prediction(self, service, fake_pipeline):
        record = _upload(service)
        first = asyncio.run(service.extract(record.id))
        second = asyncio.run(service.extract(record.id))

        assert second.cached is True
        assert second.prediction.id == first.prediction.id
        assert len(fake_pipeline.calls) == 1

    def test_force_reruns(self, service, fake_pipeline):
        record = _upload(service)
        first = asyncio.run(service.extract(record.id))
        forced = asyncio.run(service.extract(record.id, force=True))

        assert forced.cached is False
        assert forced.prediction.id != first.prediction.id
        assert len(fake_pipeline.calls) == 2
        assert service.get_prediction(record.id).id == forced.prediction.id

    def test_pipeline_failure_saves_nothing(self, service, fake_pipeline):
        record = _upload(service)
        fake_pipeline.error = ExtractionError("vision down")
        with pytest.raises(ExtractionError):
            asyncio.run(service.extract(record.id))
        assert service.get_prediction(record.id) is None

    def test_outcome_to_dict(self, service):
        record = _upload(service)
        data = asyncio.run(service.extract(record.id)).to_dict()
        assert data["cached"] is False
        assert data["result"]["method"] == "llm"
        assert data["result"]["confidence_scores"] == {
            "brand": 0.95, "model_number": 0.9}


class TestGroundTruth:
    def test_save_and_update(self, service):
        record = _upload(service)
        truth = GroundTruthRecord(image_id=record.id, owner_id="owner-1",
                                  brand="WHIRLPOOL", is_verified=True)
        first_id = service.save_ground_truth(truth)
        truth.serial_number = "CA1234567890"
        second_id = service.save_ground_truth(truth)

        stored = service.get_ground_truth(record.id, "owner-1")
        assert first_id == second_id
        assert stored.serial_number == "CA1234567890"
        assert stored.is_verified is True

    def test_unknown_image_rejected(self, service):
        with pytest.raises(RecordNotFoundError):
            service.save_ground_truth(
                GroundTruthRecord(image_id="nope", owner_id="owner-1"))
