from .connection import (DEFAULT_DB_PATH, DatabaseError, apply_pragmas,
                         get_connection, iso_utcnow)
from .schema import ensure_schema

__all__ = [
    "DEFAULT_DB_PATH",
    "DatabaseError",
    "apply_pragmas",
    "ensure_schema",
    "get_connection",
    "iso_utcnow",
]
