from __future__ import annotations

from nameplate.domain.models import ImageRecord

from ..connection import iso_utcnow
from .base import BaseRepository

_COLUMNS = (
    "id, owner_id, original_filename, storage_path, mime_type, file_size, "
    "uploaded_at"
)


class ImageRepository(BaseRepository):
    """Stored image metadata."""

    def insert(
        self,
        *,
        image_id: str,
        owner_id: str,
        original_filename: str,
        storage_path: str,
        mime_type: str,
        file_size: int,
    ) -> ImageRecord:
        uploaded_at = iso_utcnow()
        self.conn.execute(
            f"INSERT INTO images ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                image_id,
                owner_id,
                original_filename,
                storage_path,
                mime_type,
                file_size,
                uploaded_at,
            ),
        )
        self.conn.commit()
        return ImageRecord(
            id=image_id,
            owner_id=owner_id,
            original_filename=original_filename,
            storage_path=storage_path,
            mime_type=mime_type,
            file_size=file_size,
            uploaded_at=uploaded_at,
        )

    def get(self, image_id: str, owner_id: str | None = None) -> ImageRecord | None:
        """Return an image by id, optionally restricted to one owner."""
        if owner_id is None:
            row = self._fetch_one_as_dict(
                f"SELECT {_COLUMNS} FROM images WHERE id = ?", (image_id,))
        else:
            row = self._fetch_one_as_dict(
                f"SELECT {_COLUMNS} FROM images WHERE id = ? AND owner_id = ?",
                (image_id, owner_id),
            )
        return ImageRecord(**row) if row else None

    def list(self, owner_id: str | None = None, limit: int | None = None) -> list[ImageRecord]:
        query = f"SELECT {_COLUMNS} FROM images"
        params: list = []
        if owner_id is not None:
            query += " WHERE owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY uploaded_at, id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [ImageRecord(**row) for row in self._fetch_all_as_dicts(query, tuple(params))]
