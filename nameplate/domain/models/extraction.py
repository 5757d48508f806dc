"""Extraction result domain model.

Every extractor and the combiner produce an :class:`ExtractionResult`. The
diagnostic payload attached to a result depends on the method that produced
it, so ``raw_data`` holds one of the ``*RawData`` variants below rather than
a free-form dictionary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

FIELD_NAMES: tuple[str, ...] = (
    "brand",
    "product_family",
    "model_number",
    "serial_number",
)


class ExtractionMethod(str, Enum):
    """Provenance tag of an extraction result."""

    LLM = "llm"
    OCR = "ocr"
    RULE_BASED = "rule_based"
    HYBRID = "hybrid"

    @classmethod
    def from_string(cls, value: str | None) -> "ExtractionMethod":
        """Convert a string to an ExtractionMethod.

        Raises:
            ValueError: If the value does not name a known method.
        """
        if not value:
            raise ValueError("Extraction method is required")
        normalized = value.lower().strip().replace("-", "_")
        if normalized == "vision":
            return cls.LLM
        return cls(normalized)


@dataclass(frozen=True)
class LlmRawData:
    """Validated vision-model response, kept for audit."""

    llm_response: dict[str, Any]
    method: ExtractionMethod = field(default=ExtractionMethod.LLM, init=False)


@dataclass(frozen=True)
class OcrRawData:
    """Raw recognized text returned by the OCR service."""

    ocr_text: str
    method: ExtractionMethod = field(default=ExtractionMethod.OCR, init=False)


@dataclass(frozen=True)
class RuleRawData:
    """Fields matched by the rule battery."""

    rule_matches: dict[str, Any]
    method: ExtractionMethod = field(
        default=ExtractionMethod.RULE_BASED, init=False)


@dataclass(frozen=True)
class HybridRawData:
    """Diagnostics gathered from every extractor of a hybrid run."""

    llm_response: dict[str, Any] | None = None
    ocr_text: str | None = None
    rule_matches: dict[str, Any] | None = None
    method: ExtractionMethod = field(
        default=ExtractionMethod.HYBRID, init=False)


RawData = Union[LlmRawData, OcrRawData, RuleRawData, HybridRawData]


def _check_scores(scores: dict[str, float]) -> None:
    for name, score in scores.items():
        if name not in FIELD_NAMES:
            raise ValueError(f"Unknown field in confidence scores: {name}")
        if not 0.0 <= score <= 1.0:
            raise ValueError(f"Confidence for {name} out of range: {score}")


@dataclass(frozen=True)
class CombinedFields:
    """Field values and confidences without provenance or timing."""

    brand: str | None = None
    product_family: str | None = None
    model_number: str | None = None
    serial_number: str | None = None
    confidence_scores: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_scores(self.confidence_scores)

    def get(self, name: str) -> str | None:
        if name not in FIELD_NAMES:
            raise KeyError(name)
        return getattr(self, name)


@dataclass(frozen=True)
class ExtractionResult:
    """Structured nameplate fields with per-field confidence.

    A field may appear in ``confidence_scores`` without a value: the
    extractor looked and found nothing. A field missing from
    ``confidence_scores`` means the extractor did not assess it.
    """

    method: ExtractionMethod
    brand: str | None = None
    product_family: str | None = None
    model_number: str | None = None
    serial_number: str | None = None
    confidence_scores: dict[str, float] = field(default_factory=dict)
    processing_time_ms: int = 0
    raw_data: RawData | None = None

    def __post_init__(self) -> None:
        _check_scores(self.confidence_scores)
        if self.processing_time_ms < 0:
            raise ValueError("processing_time_ms must be non-negative")
        if self.raw_data is not None and self.raw_data.method != self.method:
            raise ValueError(
                f"raw_data for {self.raw_data.method.value} attached to "
                f"{self.method.value} result"
            )

    @classmethod
    def from_fields(
        cls,
        fields: CombinedFields,
        *,
        method: ExtractionMethod,
        processing_time_ms: int = 0,
        raw_data: RawData | None = None,
    ) -> "ExtractionResult":
        """Build a result from combined fields plus provenance and timing."""
        return cls(
            method=method,
            brand=fields.brand,
            product_family=fields.product_family,
            model_number=fields.model_number,
            serial_number=fields.serial_number,
            confidence_scores=dict(fields.confidence_scores),
            processing_time_ms=processing_time_ms,
            raw_data=raw_data,
        )

    def get(self, name: str) -> str | None:
        """Return the value of a tracked field by name."""
        if name not in FIELD_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def fields(self) -> CombinedFields:
        return CombinedFields(
            brand=self.brand,
            product_family=self.product_family,
            model_number=self.model_number,
            serial_number=self.serial_number,
            confidence_scores=dict(self.confidence_scores),
        )

    def with_changes(self, **changes: Any) -> "ExtractionResult":
        """Return a copy with the given attributes replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data: dict[str, Any] = {name: self.get(name) for name in FIELD_NAMES}
        data["confidence_scores"] = dict(self.confidence_scores)
        data["method"] = self.method.value
        data["processing_time_ms"] = self.processing_time_ms
        data["raw_data"] = _raw_data_to_dict(self.raw_data)
        return data


def _raw_data_to_dict(raw_data: RawData | None) -> dict[str, Any] | None:
    if raw_data is None:
        return None
    if isinstance(raw_data, LlmRawData):
        return {"llm_response": raw_data.llm_response}
    if isinstance(raw_data, OcrRawData):
        return {"ocr_text": raw_data.ocr_text}
    if isinstance(raw_data, RuleRawData):
        return {"rule_matches": raw_data.rule_matches}
    return {
        "llm_response": raw_data.llm_response,
        "ocr_text": raw_data.ocr_text,
        "rule_matches": raw_data.rule_matches,
    }
