from __future__ import annotations

import json
from typing import Any

from nameplate.domain.models import (ExtractionResult, HybridRawData,
                                     LlmRawData, OcrRawData, PredictionRecord,
                                     prediction_values)

from ..connection import iso_utcnow
from .base import BaseRepository

DEFAULT_MODEL_VERSION = "v1.0"

_COLUMNS = (
    "id, image_id, owner_id, brand, product_family, model_number, "
    "serial_number, brand_confidence, product_family_confidence, "
    "model_number_confidence, serial_number_confidence, processing_method, "
    "processing_time_ms, model_version, raw_ocr_text, raw_llm_response, "
    "created_at"
)


def _raw_columns(result: ExtractionResult) -> tuple[str | None, str | None]:
    raw = result.raw_data
    ocr_text: str | None = None
    llm_response: dict[str, Any] | None = None
    if isinstance(raw, OcrRawData):
        ocr_text = raw.ocr_text
    elif isinstance(raw, LlmRawData):
        llm_response = raw.llm_response
    elif isinstance(raw, HybridRawData):
        ocr_text = raw.ocr_text
        llm_response = raw.llm_response
    return ocr_text, json.dumps(llm_response) if llm_response is not None else None


def _to_record(row: dict[str, Any]) -> PredictionRecord:
    raw_llm = row.pop("raw_llm_response")
    return PredictionRecord(
        raw_llm_response=json.loads(raw_llm) if raw_llm else None, **row)


class PredictionRepository(BaseRepository):
    """Persisted extraction results, newest first per image."""

    def insert(
        self,
        image_id: str,
        owner_id: str,
        result: ExtractionResult,
        model_version: str = DEFAULT_MODEL_VERSION,
    ) -> int:
        values = prediction_values(result)
        raw_ocr_text, raw_llm_response = _raw_columns(result)
        prediction_id = self._execute_insert(
            """
            INSERT INTO predictions (
                image_id, owner_id, brand, product_family, model_number,
                serial_number, brand_confidence, product_family_confidence,
                model_number_confidence, serial_number_confidence,
                processing_method, processing_time_ms, model_version,
                raw_ocr_text, raw_llm_response, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                image_id,
                owner_id,
                values["brand"],
                values["product_family"],
                values["model_number"],
                values["serial_number"],
                values["brand_confidence"],
                values["product_family_confidence"],
                values["model_number_confidence"],
                values["serial_number_confidence"],
                result.method.value,
                result.processing_time_ms,
                model_version,
                raw_ocr_text,
                raw_llm_response,
                iso_utcnow(),
            ),
        )
        self.conn.commit()
        return prediction_id

    def get_latest(self, image_id: str, owner_id: str | None = None) -> PredictionRecord | None:
        """Return the most recent prediction for an image."""
        query = f"SELECT {_COLUMNS} FROM predictions WHERE image_id = ?"
        params: tuple = (image_id,)
        if owner_id is not None:
            query += " AND owner_id = ?"
            params = (image_id, owner_id)
        query += " ORDER BY created_at DESC, id DESC LIMIT 1"
        row = self._fetch_one_as_dict(query, params)
        return _to_record(row) if row else None
