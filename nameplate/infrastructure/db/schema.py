"""Tables for images, predictions and ground truth."""

from __future__ import annotations

import sqlite3

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS images (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    storage_path TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    uploaded_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_images_owner ON images (owner_id, uploaded_at);

CREATE TABLE IF NOT EXISTS predictions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    image_id TEXT NOT NULL REFERENCES images (id) ON DELETE CASCADE,
    owner_id TEXT NOT NULL,
    brand TEXT,
    product_family TEXT,
    model_number TEXT,
    serial_number TEXT,
    brand_confidence REAL,
    product_family_confidence REAL,
    model_number_confidence REAL,
    serial_number_confidence REAL,
    processing_method TEXT NOT NULL,
    processing_time_ms INTEGER NOT NULL,
    model_version TEXT NOT NULL,
    raw_ocr_text TEXT,
    raw_llm_response TEXT,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_predictions_image ON predictions (image_id, owner_id);

CREATE TABLE IF NOT EXISTS ground_truth (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    image_id TEXT NOT NULL REFERENCES images (id) ON DELETE CASCADE,
    owner_id TEXT NOT NULL,
    brand TEXT,
    product_family TEXT,
    model_number TEXT,
    serial_number TEXT,
    verified_by TEXT,
    notes TEXT,
    is_verified INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    UNIQUE (image_id, owner_id)
);
"""


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the record store tables if they do not exist."""

    conn.executescript(SCHEMA_SQL)
