"""Tests for batch processing and accuracy evaluation."""

from __future__ import annotations

import asyncio

import pytest

from nameplate.domain.errors import ExtractionError
from nameplate.domain.models import ExtractionMethod, ExtractionResult, GroundTruthRecord
from nameplate.services.batch import (FieldMatches, compare_fields, run_batch,
                                      summarize_accuracy)


class TestRunBatch:
    def test_failures_are_recorded_and_batch_continues(self):
        async def process(item: int) -> int:
            if item == 3:
                raise ExtractionError("bad image")
            return item * 10

        report = asyncio.run(run_batch(process, [1, 2, 3, 4, 5], concurrency=2))

        assert report.total == 5
        assert report.processed == 4
        assert report.failed == 1
        assert [entry.item for entry in report.items] == [1, 2, 3, 4, 5]
        assert report.items[2].error == "bad image"
        assert report.results() == [10, 20, 40, 50]

    def test_batches_run_one_after_another(self):
        running = 0
        peak = 0

        async def process(item: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1
            return item

        asyncio.run(run_batch(process, range(7), concurrency=3))
        assert peak == 3

    def test_unbounded_runs_everything_at_once(self):
        running = 0
        peak = 0

        async def process(item: int) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0)
            running -= 1
            return item

        report = asyncio.run(run_batch(process, range(6)))
        assert peak == 6
        assert report.processed == 6

    def test_empty_batch(self):
        async def process(item):
            return item

        report = asyncio.run(run_batch(process, []))
        assert report.total == 0
        assert report.results() == []

    def test_unexpected_errors_propagate(self):
        async def process(item):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            asyncio.run(run_batch(process, [1]))

    def test_invalid_concurrency(self):
        async def process(item):
            return item

        with pytest.raises(ValueError):
            asyncio.run(run_batch(process, [1], concurrency=0))


class TestAccuracy:
    def test_compare_fields_is_case_insensitive(self):
        result = ExtractionResult(
            method=ExtractionMethod.HYBRID,
            brand="WHIRLPOOL",
            product_family="LAVE-LINGE",
            model_number="wtw5000",
            serial_number="CA123",
        )
        truth = GroundTruthRecord(
            image_id="img",
            owner_id="owner",
            brand="Whirlpool",
            product_family="lave-linge",
            model_number="WTW5000",
            serial_number="CA124",
        )
        matches = compare_fields(result, truth)
        assert matches.brand_match
        assert matches.model_number_match
        assert not matches.serial_number_match
        assert not matches.overall_match
        assert matches.to_dict()["overall_match"] is False

    def test_absent_on_both_sides_matches(self):
        result = ExtractionResult(method=ExtractionMethod.LLM, brand="LG")
        truth = GroundTruthRecord(image_id="img", owner_id="owner", brand="lg")
        assert compare_fields(result, truth).overall_match

    def test_summary_excludes_failed_items(self):
        perfect = FieldMatches(True, True, True, True)
        partial = FieldMatches(True, False, True, False)
        summary = summarize_accuracy([perfect, None, partial])
        assert summary == {
            "brand": 100.0,
            "product_family": 50.0,
            "model_number": 100.0,
            "serial_number": 50.0,
            "overall": 50.0,
        }

    def test_summary_of_nothing(self):
        assert summarize_accuracy([None, None]) is None
