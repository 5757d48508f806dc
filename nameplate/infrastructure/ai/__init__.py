"""Extractors that turn nameplate images (or their text) into field candidates."""

from .ocr_extractor import KNOWN_BRANDS, OcrExtractor, extract_fields_from_text
from .rate_limiter import RequestThrottle
from .rule_extractor import (
    BRAND_RULES,
    FAMILY_RULES,
    MODEL_RULES,
    SERIAL_RULES,
    CodeRule,
    NameRule,
    RuleBasedExtractor,
    apply_rules,
)
from .vision_extractor import (
    EXTRACTION_PROMPT,
    NameplateExtraction,
    VisionExtractor,
)

__all__ = [
    "RequestThrottle",
    # Vision model
    "EXTRACTION_PROMPT",
    "NameplateExtraction",
    "VisionExtractor",
    # OCR
    "KNOWN_BRANDS",
    "OcrExtractor",
    "extract_fields_from_text",
    # Rules
    "BRAND_RULES",
    "FAMILY_RULES",
    "MODEL_RULES",
    "SERIAL_RULES",
    "CodeRule",
    "NameRule",
    "RuleBasedExtractor",
    "apply_rules",
]
