"""Rule-based extraction of nameplate fields from text.

A fixed battery of regex rules per field, applied to arbitrary input text
(normally the OCR output). Each model and serial rule carries an intrinsic
confidence; brand and family rules map a pattern to a canonical name.

Extraction is a pure function of the input text: no network, no state.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass

from nameplate.domain.models import CombinedFields, ExtractionMethod, ExtractionResult, RuleRawData
from nameplate.infrastructure.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NameRule:
    """Maps a pattern to the canonical name it identifies."""

    pattern: re.Pattern
    name: str


@dataclass(frozen=True)
class CodeRule:
    """A pattern for a model or serial number with its intrinsic confidence."""

    pattern: re.Pattern
    confidence: float
    context: str | None = None

    def matches(self, text: str) -> list[str]:
        return [m.group(0) for m in self.pattern.finditer(text)]


# =============================================================================
# Brands (common OCR misspellings included)
# =============================================================================

BRAND_RULES: tuple[NameRule, ...] = (
    NameRule(re.compile(r"\b(whirlpool|whrlpool)\b", re.IGNORECASE), "Whirlpool"),
    NameRule(re.compile(r"\b(samsung|samsng)\b", re.IGNORECASE), "Samsung"),
    NameRule(re.compile(r"\b(lg|life'?s?\s*good)\b", re.IGNORECASE), "LG"),
    NameRule(
        re.compile(r"\b(general\s*electric|ge\s*appliances?|ge)\b", re.IGNORECASE),
        "GE",
    ),
    NameRule(re.compile(r"\b(maytag|mytag)\b", re.IGNORECASE), "Maytag"),
    NameRule(re.compile(r"\b(kenmore|knmore)\b", re.IGNORECASE), "Kenmore"),
    NameRule(re.compile(r"\b(frigidaire|frigdaire)\b", re.IGNORECASE), "Frigidaire"),
    NameRule(re.compile(r"\b(bosch|bsch)\b", re.IGNORECASE), "Bosch"),
    NameRule(re.compile(r"\b(electrolux|elctrolux)\b", re.IGNORECASE), "Electrolux"),
    NameRule(re.compile(r"\b(haier|hair)\b", re.IGNORECASE), "Haier"),
)

# =============================================================================
# Model numbers
# =============================================================================

MODEL_RULES: tuple[CodeRule, ...] = (
    # Whirlpool: WTW5000DW, WFW9620HC
    CodeRule(re.compile(r"\b(WTW|WFW|WED|WGD)[0-9]{4}[A-Z]?\w*\b"), 0.9,
             "Whirlpool model"),
    # Samsung: WF45R6100AW, DV42H5000EW
    CodeRule(re.compile(r"\b(WF|DV|WA)[0-9]{4}[A-Z]?\w*\b"), 0.9,
             "Samsung model"),
    # LG: WM3900HWA, DLE3400W
    CodeRule(re.compile(r"\b(WT|WM|DLE|DLG)[0-9]{4}[A-Z]?\w*\b"), 0.9,
             "LG model"),
    CodeRule(re.compile(r"\b[A-Z]{2,4}[0-9]{3,6}[A-Z]?\w*\b"), 0.7,
             "Generic letters-digits code"),
    CodeRule(re.compile(r"\b[0-9]{3,6}[A-Z]{2,4}\w*\b"), 0.6,
             "Generic digits-letters code"),
)

# =============================================================================
# Serial numbers
# =============================================================================

SERIAL_RULES: tuple[CodeRule, ...] = (
    CodeRule(re.compile(r"\b[A-Z0-9]{10,20}\b"), 0.8, "Long alphanumeric run"),
    CodeRule(re.compile(r"\b[A-Z]{2}[0-9]{8,12}[A-Z0-9]*\b"), 0.9,
             "Two-letter prefixed serial"),
    CodeRule(re.compile(r"\b[0-9]{8,12}[A-Z]{2,4}\b"), 0.7,
             "Digits with letter suffix"),
)

# =============================================================================
# Product families
# =============================================================================

FAMILY_RULES: tuple[NameRule, ...] = (
    NameRule(re.compile(r"\b(washtower|wash\s*tower)\b", re.IGNORECASE), "WashTower"),
    NameRule(re.compile(r"\b(flexwash|flex\s*wash)\b", re.IGNORECASE), "FlexWash"),
    NameRule(re.compile(r"\b(turbowash|turbo\s*wash)\b", re.IGNORECASE), "TurboWash"),
    NameRule(re.compile(r"\b(smartcare|smart\s*care)\b", re.IGNORECASE), "SmartCare"),
    NameRule(re.compile(r"\b(ecoboost|eco\s*boost)\b", re.IGNORECASE), "EcoBoost"),
    NameRule(re.compile(r"\b(steam\s*fresh|steamfresh)\b", re.IGNORECASE), "SteamFresh"),
    NameRule(re.compile(r"\b(quiet\s*wash|quietwash)\b", re.IGNORECASE), "QuietWash"),
)

BRAND_CONFIDENCE = 0.85
FAMILY_CONFIDENCE = 0.8


def _first_name(rules: tuple[NameRule, ...], text: str) -> str | None:
    for rule in rules:
        if rule.pattern.search(text):
            return rule.name
    return None


def _best_code(
    rules: tuple[CodeRule, ...], text: str, prefer_longest: bool
) -> tuple[str | None, float]:
    """Scan rules in order, keeping the match of the most confident rule.

    A later rule replaces the current pick only when its confidence is
    strictly higher.
    """
    best_value: str | None = None
    best_confidence = 0.0
    for rule in rules:
        matches = rule.matches(text)
        if matches and rule.confidence > best_confidence:
            best_value = max(matches, key=len) if prefer_longest else matches[0]
            best_confidence = rule.confidence
    return best_value, best_confidence


def apply_rules(text: str) -> CombinedFields:
    """Apply the full rule battery to text."""
    brand = _first_name(BRAND_RULES, text)
    model_number, model_confidence = _best_code(
        MODEL_RULES, text, prefer_longest=False)
    serial_number, serial_confidence = _best_code(
        SERIAL_RULES, text, prefer_longest=True)
    product_family = _first_name(FAMILY_RULES, text)

    scores: dict[str, float] = {}
    if brand:
        scores["brand"] = BRAND_CONFIDENCE
    if product_family:
        scores["product_family"] = FAMILY_CONFIDENCE
    if model_number:
        scores["model_number"] = model_confidence
    if serial_number:
        scores["serial_number"] = serial_confidence

    return CombinedFields(
        brand=brand,
        product_family=product_family,
        model_number=model_number,
        serial_number=serial_number,
        confidence_scores=scores,
    )


class RuleBasedExtractor:
    """Deterministic extractor over free text."""

    def extract(self, text: str) -> ExtractionResult:
        start = time.perf_counter()
        fields = apply_rules(text)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug("Rule extraction matched %d fields",
                     len(fields.confidence_scores))
        return ExtractionResult.from_fields(
            fields,
            method=ExtractionMethod.RULE_BASED,
            processing_time_ms=elapsed_ms,
            raw_data=RuleRawData(
                rule_matches={
                    "brand": fields.brand,
                    "product_family": fields.product_family,
                    "model_number": fields.model_number,
                    "serial_number": fields.serial_number,
                    "confidence_scores": dict(fields.confidence_scores),
                }
            ),
        )


__all__ = [
    "BRAND_RULES",
    "FAMILY_RULES",
    "MODEL_RULES",
    "SERIAL_RULES",
    "CodeRule",
    "NameRule",
    "RuleBasedExtractor",
    "apply_rules",
]
