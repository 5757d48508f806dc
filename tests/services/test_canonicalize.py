"""Tests for canonical field forms."""

from __future__ import annotations

import pytest

from nameplate.domain.models import ExtractionMethod, ExtractionResult
from nameplate.services.canonicalize import (canonicalize_brand,
                                             canonicalize_model_number,
                                             canonicalize_product_family,
                                             canonicalize_result,
                                             canonicalize_serial_number)

SAMPLES = [
    None,
    "",
    "   ",
    "ABC-123 (EU)/XYZ-456",
    "  Électrolux ",
    "lave-linge",
    "wtw 5000.dw",
    "CA-1234 5678.90",
    "(EU)",
    "Ångström Ñ ç ǰ",
    "a/b/c",
]


class TestCanonicalize:
    def test_model_number_cleanup(self):
        assert canonicalize_model_number("ABC-123 (EU)/XYZ-456") == "ABC123"

    def test_model_number_keeps_case(self):
        assert canonicalize_model_number("wtw 5000.dw") == "wtw5000dw"

    def test_brand_strips_accents_and_uppercases(self):
        assert canonicalize_brand("Électrolux") == "ELECTROLUX"
        assert canonicalize_brand("  bosch ") == "BOSCH"

    def test_product_family_uppercased(self):
        assert canonicalize_product_family(" lave-linge ") == "LAVE-LINGE"

    def test_serial_number_separators_removed(self):
        assert canonicalize_serial_number("CA-1234 5678.90") == "CA1234567890"
        assert canonicalize_serial_number("ab12") == "ab12"

    def test_blank_becomes_absent(self):
        assert canonicalize_brand("   ") is None
        assert canonicalize_model_number("(EU)") is None
        assert canonicalize_serial_number("- .") is None
        assert canonicalize_product_family(None) is None

    @pytest.mark.parametrize(
        "fn",
        [
            canonicalize_brand,
            canonicalize_product_family,
            canonicalize_model_number,
            canonicalize_serial_number,
        ],
    )
    def test_idempotent(self, fn):
        for sample in SAMPLES:
            once = fn(sample)
            assert fn(once) == once

    def test_canonicalize_result(self):
        result = ExtractionResult(
            method=ExtractionMethod.LLM,
            brand="Électrolux",
            product_family="lave-vaisselle",
            model_number="ESF-5206 (FR)",
            serial_number="9110 0123",
            confidence_scores={"brand": 0.9},
            processing_time_ms=12,
        )
        canonical = canonicalize_result(result)
        assert canonical.brand == "ELECTROLUX"
        assert canonical.product_family == "LAVE-VAISSELLE"
        assert canonical.model_number == "ESF5206"
        assert canonical.serial_number == "91100123"
        assert canonical.confidence_scores == {"brand": 0.9}
        assert canonical.processing_time_ms == 12
        assert result.brand == "Électrolux"
