"""Base service class with shared connection handling.

Services receive a connection factory so tests can point them at a
temporary database.
"""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Callable, TypeVar

from nameplate.infrastructure.db import ensure_schema, get_connection
from nameplate.infrastructure.observability import get_logger

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]
T = TypeVar("T")


def sqlite_connection_factory(db_path: str | Path) -> ConnectionFactory:
    """Return a connection factory bound to a SQLite database path."""

    def connection_factory() -> AbstractContextManager[sqlite3.Connection]:
        return get_connection(db_path)

    return connection_factory


class BaseService:
    """Base class for services that read or write the record store."""

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory
        self._logger = get_logger(self.__class__.__module__)

    def _with_connection(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn`` on a fresh connection with the schema in place."""
        with self._connection_factory() as conn:
            ensure_schema(conn)
            return fn(conn)
