"""Field-by-field reconciliation of several extraction results."""

from __future__ import annotations

from typing import Sequence

from nameplate.domain.models import FIELD_NAMES, CombinedFields, ExtractionResult


def combine(results: Sequence[ExtractionResult]) -> CombinedFields:
    """Merge candidate results, keeping the most confident value per field.

    For every field, results that carry a value compete on their confidence
    for that field; a missing score counts as 0. Only a strictly higher
    confidence replaces the current pick, so ties go to the earliest result
    and callers should pass results in trust order. A value is adopted even
    at confidence 0 when nothing better exists. The adopted score is copied
    only if the source scored the field.

    Method, timing and diagnostics are left to the caller.
    """
    values: dict[str, str | None] = {name: None for name in FIELD_NAMES}
    scores: dict[str, float] = {}

    for name in FIELD_NAMES:
        best: ExtractionResult | None = None
        best_confidence = 0.0
        for result in results:
            if not result.get(name):
                continue
            confidence = result.confidence_scores.get(name) or 0.0
            if best is None or confidence > best_confidence:
                best = result
                best_confidence = confidence

        if best is not None:
            values[name] = best.get(name)
            if name in best.confidence_scores:
                scores[name] = best.confidence_scores[name]

    return CombinedFields(confidence_scores=scores, **values)
