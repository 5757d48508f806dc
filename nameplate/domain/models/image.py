"""Image, prediction and ground-truth domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .extraction import FIELD_NAMES, ExtractionResult


class StorageNamespace(str, Enum):
    """Blob store bucket an image lives in."""

    PRODUCTION = "nameplate-images"
    EPHEMERAL = "test-images"

    @property
    def bucket(self) -> str:
        return self.value

    @classmethod
    def for_test_mode(cls, test_mode: bool) -> "StorageNamespace":
        return cls.EPHEMERAL if test_mode else cls.PRODUCTION


ALLOWED_MIME_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
)

MAX_UPLOAD_BYTES = 1024 * 1024


@dataclass(frozen=True)
class ImageReference:
    """What the pipeline needs to know about a stored image."""

    id: str
    storage_path: str
    mime_type: str
    owner_id: str


@dataclass
class ImageRecord:
    """A stored image row."""

    id: str
    owner_id: str
    original_filename: str
    storage_path: str
    mime_type: str
    file_size: int
    uploaded_at: str

    def to_reference(self) -> ImageReference:
        return ImageReference(
            id=self.id,
            storage_path=self.storage_path,
            mime_type=self.mime_type,
            owner_id=self.owner_id,
        )


@dataclass
class PredictionRecord:
    """A persisted extraction result."""

    id: int
    image_id: str
    owner_id: str
    brand: str | None
    product_family: str | None
    model_number: str | None
    serial_number: str | None
    brand_confidence: float | None
    product_family_confidence: float | None
    model_number_confidence: float | None
    serial_number_confidence: float | None
    processing_method: str
    processing_time_ms: int
    model_version: str
    raw_ocr_text: str | None
    raw_llm_response: dict | None
    created_at: str

    def confidence_scores(self) -> dict[str, float]:
        scores: dict[str, float] = {}
        for name in FIELD_NAMES:
            value = getattr(self, f"{name}_confidence")
            if value is not None:
                scores[name] = value
        return scores

    def to_result_dict(self) -> dict:
        """Return the stored prediction in the shape of ExtractionResult.to_dict()."""
        data: dict = {name: getattr(self, name) for name in FIELD_NAMES}
        data["confidence_scores"] = self.confidence_scores()
        data["method"] = self.processing_method
        data["processing_time_ms"] = self.processing_time_ms
        return data


@dataclass
class GroundTruthRecord:
    """Human-verified field values for an image."""

    image_id: str
    owner_id: str
    brand: str | None = None
    product_family: str | None = None
    model_number: str | None = None
    serial_number: str | None = None
    verified_by: str | None = None
    notes: str | None = None
    is_verified: bool = False
    id: int | None = None

    def get(self, name: str) -> str | None:
        if name not in FIELD_NAMES:
            raise KeyError(name)
        return getattr(self, name)


def prediction_values(result: ExtractionResult) -> dict[str, object]:
    """Flatten a result into prediction column values."""
    values: dict[str, object] = {}
    for name in FIELD_NAMES:
        values[name] = result.get(name)
        values[f"{name}_confidence"] = result.confidence_scores.get(name)
    return values
