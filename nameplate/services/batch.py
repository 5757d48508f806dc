"""Batch processing and accuracy evaluation against ground truth."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, Sequence, TypeVar

from nameplate.domain.errors import NameplateError
from nameplate.domain.models import FIELD_NAMES, ExtractionResult, GroundTruthRecord
from nameplate.infrastructure.observability import get_logger, record_batch_item

logger = get_logger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


@dataclass
class BatchItem(Generic[ItemT, ResultT]):
    """Outcome of one batch entry: a result or the error that stopped it."""

    item: ItemT
    result: ResultT | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport(Generic[ItemT, ResultT]):
    """Per-item outcomes in submission order."""

    items: list[BatchItem[ItemT, ResultT]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def processed(self) -> int:
        return sum(1 for entry in self.items if entry.ok)

    @property
    def failed(self) -> int:
        return self.total - self.processed

    def results(self) -> list[ResultT]:
        return [entry.result for entry in self.items
                if entry.ok and entry.result is not None]


async def run_batch(
    process: Callable[[ItemT], Awaitable[ResultT]],
    items: Iterable[ItemT],
    concurrency: int | None = None,
) -> BatchReport[ItemT, ResultT]:
    """Run ``process`` over every item, recording failures instead of raising.

    With ``concurrency=None`` every item is started at once. Otherwise items
    are split into consecutive batches of that size; a batch must finish
    before the next one starts.

    Only :class:`NameplateError` failures are recorded per item; anything
    else is a programming error and propagates.
    """
    if concurrency is not None and concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    pending = list(items)
    report: BatchReport[ItemT, ResultT] = BatchReport()

    async def _one(item: ItemT) -> BatchItem[ItemT, ResultT]:
        try:
            result = await process(item)
        except NameplateError as e:
            logger.error("Batch item failed: %s", str(e))
            record_batch_item("failed")
            return BatchItem(item=item, error=str(e))
        record_batch_item("processed")
        return BatchItem(item=item, result=result)

    step = concurrency or max(len(pending), 1)
    for offset in range(0, len(pending), step):
        chunk = pending[offset:offset + step]
        report.items.extend(await asyncio.gather(*(_one(item) for item in chunk)))
        logger.debug("Batch progress: %d/%d", len(report.items), len(pending))

    logger.info("Batch finished: %d processed, %d failed",
                report.processed, report.failed)
    return report


@dataclass(frozen=True)
class FieldMatches:
    """Per-field comparison of a prediction with its ground truth."""

    brand_match: bool
    product_family_match: bool
    model_number_match: bool
    serial_number_match: bool

    @property
    def overall_match(self) -> bool:
        return all(getattr(self, f"{name}_match") for name in FIELD_NAMES)

    def to_dict(self) -> dict[str, bool]:
        data = {f"{name}_match": getattr(self, f"{name}_match")
                for name in FIELD_NAMES}
        data["overall_match"] = self.overall_match
        return data


def _normalize(value: str | None) -> str | None:
    return value.lower() if value is not None else None


def compare_fields(
    result: ExtractionResult | Any, ground_truth: GroundTruthRecord
) -> FieldMatches:
    """Compare field values case-insensitively.

    ``result`` is anything with the four field attributes (an
    :class:`ExtractionResult` or a stored prediction). A field absent on
    both sides counts as a match.
    """
    return FieldMatches(**{
        f"{name}_match": _normalize(getattr(result, name))
        == _normalize(ground_truth.get(name))
        for name in FIELD_NAMES
    })


def summarize_accuracy(matches: Sequence[FieldMatches | None]) -> dict[str, float] | None:
    """Percentage of matching items per field and overall.

    ``None`` entries (items that failed or have no ground truth) are
    excluded. Returns None when nothing is left to score.
    """
    scored = [m for m in matches if m is not None]
    if not scored:
        return None
    total = len(scored)
    summary = {
        name: sum(1 for m in scored if getattr(m, f"{name}_match")) / total * 100
        for name in FIELD_NAMES
    }
    summary["overall"] = sum(1 for m in scored if m.overall_match) / total * 100
    return summary
