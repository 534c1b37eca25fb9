"""Shared plumbing for the PostgreSQL-backed repositories."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

import psycopg
import psycopg.errors
from psycopg.rows import dict_row

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the backing store cannot complete an operation."""


class ConflictError(Exception):
    """Raised when a write collides with an existing unique key."""


class DatabaseRepository:
    """Base class holding a DSN and a connection factory."""

    def __init__(self, dsn: str, connect: Callable[..., psycopg.Connection] = psycopg.connect) -> None:
        self.dsn = dsn
        self._connect = connect

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[psycopg.Cursor]:
        """Yield a dict-row cursor and commit when the block completes.

        A unique-key violation becomes ``ConflictError``; any other
        ``psycopg.Error`` is logged with the operation name and re-raised as
        ``StorageError`` so callers never see driver-specific exceptions.
        """
        if not self.dsn:
            logger.warning("%s skipped: DSN not configured", operation)
            raise StorageError(f"{operation}: database DSN is not configured")
        try:
            with self._connect(self.dsn) as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    yield cur
                conn.commit()
        except psycopg.errors.UniqueViolation as exc:
            logger.info("%s rejected: %s", operation, exc)
            raise ConflictError(f"{operation} conflicts with an existing row") from exc
        except psycopg.Error as exc:
            logger.error("%s failed: %s", operation, exc)
            raise StorageError(f"{operation} failed") from exc
