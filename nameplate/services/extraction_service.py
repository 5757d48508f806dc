"""Extraction service: stored images in, persisted predictions out.

Wraps :class:`ExtractionPipeline` with the record store. A prediction is
computed once per image and served from the store afterwards unless the
caller forces a fresh run.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath

from nameplate.domain.errors import RecordNotFoundError
from nameplate.domain.models import (
    ALLOWED_MIME_TYPES,
    MAX_UPLOAD_BYTES,
    ExtractionMethod,
    ExtractionResult,
    GroundTruthRecord,
    ImageRecord,
    PredictionRecord,
    StorageNamespace,
)
from nameplate.infrastructure.db.repositories import (
    DEFAULT_MODEL_VERSION,
    GroundTruthRepository,
    ImageRepository,
    PredictionRepository,
)
from nameplate.infrastructure.storage import BlobStore

from .base import BaseService, ConnectionFactory
from .pipeline import ExtractionPipeline


class UploadRejectedError(ValueError):
    """Raised when an upload fails validation."""


@dataclass
class ExtractionOutcome:
    """Result of :meth:`ExtractionService.extract`."""

    prediction: PredictionRecord
    cached: bool

    def to_dict(self) -> dict:
        return {
            "prediction_id": self.prediction.id,
            "result": self.prediction.to_result_dict(),
            "cached": self.cached,
        }


def validate_upload(mime_type: str, size_bytes: int) -> None:
    """Check an upload against the accepted types and size limit.

    Raises:
        UploadRejectedError: If the type is not an accepted image type or
            the payload is empty or too large.
    """
    if mime_type.lower() not in ALLOWED_MIME_TYPES:
        raise UploadRejectedError(
            f"Unsupported file type: {mime_type}. "
            "Allowed types: JPEG, PNG, WEBP")
    if size_bytes <= 0:
        raise UploadRejectedError("Uploaded file is empty")
    if size_bytes > MAX_UPLOAD_BYTES:
        raise UploadRejectedError(
            f"File too large: {size_bytes / 1024:.1f} KB "
            f"(max {MAX_UPLOAD_BYTES // 1024} KB)")


class ExtractionService(BaseService):
    """Coordinates uploads, extraction runs and prediction storage."""

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        pipeline: ExtractionPipeline,
        blob_store: BlobStore,
        *,
        model_version: str = DEFAULT_MODEL_VERSION,
    ) -> None:
        super().__init__(connection_factory)
        self.pipeline = pipeline
        self.blob_store = blob_store
        self.model_version = model_version

    async def close(self) -> None:
        await self.pipeline.close()
        await self.blob_store.close()

    async def register_upload(
        self,
        *,
        owner_id: str,
        filename: str,
        data: bytes,
        mime_type: str,
        namespace: StorageNamespace = StorageNamespace.PRODUCTION,
    ) -> ImageRecord:
        """Validate, store and record an uploaded image.

        The object is stored under ``{owner_id}/{image_id}{suffix}``.
        """
        validate_upload(mime_type, len(data))
        image_id = str(uuid.uuid4())
        suffix = PurePosixPath(filename).suffix.lower()
        storage_path = f"{owner_id}/{image_id}{suffix}"

        await self.blob_store.put(namespace, storage_path, data, mime_type)
        record = self._with_connection(
            lambda conn: ImageRepository(conn).insert(
                image_id=image_id,
                owner_id=owner_id,
                original_filename=filename,
                storage_path=storage_path,
                mime_type=mime_type,
                file_size=len(data),
            )
        )
        self._logger.info("Registered upload %s (%d bytes)", image_id, len(data))
        return record

    def get_image(self, image_id: str, owner_id: str | None = None) -> ImageRecord:
        image = self._with_connection(
            lambda conn: ImageRepository(conn).get(image_id, owner_id))
        if image is None:
            raise RecordNotFoundError(f"Image not found: {image_id}")
        return image

    def list_images(self, owner_id: str | None = None,
                    limit: int | None = None) -> list[ImageRecord]:
        return self._with_connection(
            lambda conn: ImageRepository(conn).list(owner_id, limit))

    def get_prediction(self, image_id: str,
                       owner_id: str | None = None) -> PredictionRecord | None:
        return self._with_connection(
            lambda conn: PredictionRepository(conn).get_latest(image_id, owner_id))

    def save_prediction(self, image: ImageRecord,
                        result: ExtractionResult) -> PredictionRecord:
        def _save(conn) -> PredictionRecord | None:
            repo = PredictionRepository(conn)
            repo.insert(image.id, image.owner_id, result, self.model_version)
            return repo.get_latest(image.id, image.owner_id)

        saved = self._with_connection(_save)
        if saved is None:
            raise RecordNotFoundError(
                f"Prediction for {image.id} missing after insert")
        return saved

    async def extract(
        self,
        image_id: str,
        owner_id: str | None = None,
        method: ExtractionMethod = ExtractionMethod.LLM,
        model_name: str | None = None,
        force: bool = False,
        namespace: StorageNamespace = StorageNamespace.PRODUCTION,
    ) -> ExtractionOutcome:
        """Return the prediction for an image, computing it if needed.

        Raises:
            RecordNotFoundError: If the image does not exist for the owner.
            PipelineError, ExtractionError: When a fresh run fails.
        """
        image = self.get_image(image_id, owner_id)

        if not force:
            existing = self.get_prediction(image.id, image.owner_id)
            if existing is not None:
                self._logger.info("Returning stored prediction for %s", image.id)
                return ExtractionOutcome(prediction=existing, cached=True)

        result = await self.pipeline.process_image(
            image.to_reference(), method, model_name, namespace=namespace)
        return ExtractionOutcome(
            prediction=self.save_prediction(image, result), cached=False)

    def save_ground_truth(self, record: GroundTruthRecord) -> int:
        self.get_image(record.image_id, record.owner_id)
        return self._with_connection(
            lambda conn: GroundTruthRepository(conn).upsert(record))

    def get_ground_truth(self, image_id: str,
                         owner_id: str) -> GroundTruthRecord | None:
        return self._with_connection(
            lambda conn: GroundTruthRepository(conn).get(image_id, owner_id))
