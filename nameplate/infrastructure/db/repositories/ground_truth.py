from __future__ import annotations

from nameplate.domain.models import GroundTruthRecord

from ..connection import iso_utcnow
from .base import BaseRepository


class GroundTruthRepository(BaseRepository):
    """Human-verified labels, one row per image and owner."""

    def upsert(self, record: GroundTruthRecord) -> int:
        self.conn.execute(
            """
            INSERT INTO ground_truth (
                image_id, owner_id, brand, product_family, model_number,
                serial_number, verified_by, notes, is_verified, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(image_id, owner_id) DO UPDATE SET
                brand = excluded.brand,
                product_family = excluded.product_family,
                model_number = excluded.model_number,
                serial_number = excluded.serial_number,
                verified_by = excluded.verified_by,
                notes = excluded.notes,
                is_verified = excluded.is_verified,
                updated_at = excluded.updated_at
            """,
            (
                record.image_id,
                record.owner_id,
                record.brand,
                record.product_family,
                record.model_number,
                record.serial_number,
                record.verified_by,
                record.notes,
                1 if record.is_verified else 0,
                iso_utcnow(),
            ),
        )
        self.conn.commit()
        row = self._fetch_one_as_dict(
            "SELECT id FROM ground_truth WHERE image_id = ? AND owner_id = ?",
            (record.image_id, record.owner_id),
        )
        return int(row["id"]) if row else 0

    def get(self, image_id: str, owner_id: str) -> GroundTruthRecord | None:
        row = self._fetch_one_as_dict(
            """
            SELECT id, image_id, owner_id, brand, product_family, model_number,
                   serial_number, verified_by, notes, is_verified
            FROM ground_truth WHERE image_id = ? AND owner_id = ?
            """,
            (image_id, owner_id),
        )
        if not row:
            return None
        row["is_verified"] = bool(row["is_verified"])
        return GroundTruthRecord(**row)
