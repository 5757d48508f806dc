"""Canonical forms for extracted field values.

Brand and product family are uppercased (brand also loses its diacritics);
model and serial numbers keep their case but lose separator noise. Every
function is idempotent. A value left empty by canonicalization is reported
as absent.
"""

from __future__ import annotations

import re
import unicodedata

from nameplate.domain.models import ExtractionResult

_PARENTHETICAL = re.compile(r"\([^)]*\)")
_SEPARATORS = re.compile(r"[-\s.]+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _present(value: str) -> str | None:
    return value or None


def canonicalize_brand(value: str | None) -> str | None:
    """'Électrolux' -> 'ELECTROLUX'."""
    if value is None:
        return None
    # Uppercasing can introduce combining marks (e.g. 'ǰ'), strip after too.
    return _present(strip_diacritics(strip_diacritics(value).upper()).strip())


def canonicalize_product_family(value: str | None) -> str | None:
    if value is None:
        return None
    return _present(value.strip().upper())


def canonicalize_model_number(value: str | None) -> str | None:
    """'ABC-123 (EU)/XYZ-456' -> 'ABC123'."""
    if value is None:
        return None
    cleaned = _PARENTHETICAL.sub("", value)
    cleaned = _SEPARATORS.sub("", cleaned)
    return _present(cleaned.split("/", 1)[0])


def canonicalize_serial_number(value: str | None) -> str | None:
    if value is None:
        return None
    return _present(_SEPARATORS.sub("", value))


def canonicalize_result(result: ExtractionResult) -> ExtractionResult:
    """Return a copy of the result with every field in canonical form."""
    return result.with_changes(
        brand=canonicalize_brand(result.brand),
        product_family=canonicalize_product_family(result.product_family),
        model_number=canonicalize_model_number(result.model_number),
        serial_number=canonicalize_serial_number(result.serial_number),
    )


__all__ = [
    "canonicalize_brand",
    "canonicalize_model_number",
    "canonicalize_product_family",
    "canonicalize_result",
    "canonicalize_serial_number",
    "strip_diacritics",
]
