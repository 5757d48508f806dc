"""Domain models for nameplate extraction."""

from .extraction import (
    FIELD_NAMES,
    CombinedFields,
    ExtractionMethod,
    ExtractionResult,
    HybridRawData,
    LlmRawData,
    OcrRawData,
    RawData,
    RuleRawData,
)
from .image import (
    ALLOWED_MIME_TYPES,
    MAX_UPLOAD_BYTES,
    GroundTruthRecord,
    ImageRecord,
    ImageReference,
    PredictionRecord,
    StorageNamespace,
    prediction_values,
)

__all__ = [
    "ALLOWED_MIME_TYPES",
    "FIELD_NAMES",
    "MAX_UPLOAD_BYTES",
    "CombinedFields",
    "ExtractionMethod",
    "ExtractionResult",
    "GroundTruthRecord",
    "HybridRawData",
    "ImageRecord",
    "ImageReference",
    "LlmRawData",
    "OcrRawData",
    "PredictionRecord",
    "RawData",
    "RuleRawData",
    "StorageNamespace",
    "prediction_values",
]
