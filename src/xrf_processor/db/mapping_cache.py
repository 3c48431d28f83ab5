from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from psycopg2.extras import execute_values

from xrf_processor.models.normalization import CacheEntry, NormalizationEntry, NormalizationSource

"""Persistent name-mapping cache.

One table per kind (component, substrate), keyed by the lowercased original
name. Writes are upserts: an existing key takes the new normalized name,
confidence and source and its ``usage_count`` is incremented.

Table layout:
    original_name   TEXT PRIMARY KEY
    normalized_name TEXT NOT NULL
    confidence      DOUBLE PRECISION NOT NULL
    source          TEXT NOT NULL
    usage_count     INTEGER NOT NULL DEFAULT 1
    last_used       TIMESTAMPTZ NOT NULL DEFAULT now()
"""

__all__ = [
    "CacheError",
    "InMemoryMappingCache",
    "PostgresMappingCache",
]

logger = logging.getLogger(__name__)

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class CacheError(Exception):
    pass


def _source(value: Any) -> NormalizationSource:
    try:
        return NormalizationSource(str(value))
    except ValueError:
        return NormalizationSource.AI


class PostgresMappingCache:
    """Mapping cache stored in a PostgreSQL table.

    Args:
        conn: psycopg2 connection; each call opens its own cursor and commits
        table: Table name (plain identifier, validated)
        page_size: ``execute_values`` page size for upserts
    """

    def __init__(self, conn: Any, table: str, page_size: int = 500) -> None:
        if not _TABLE_NAME_RE.match(table):
            raise CacheError(f"invalid cache table name: {table!r}")
        self.conn = conn
        self.table = table
        self.page_size = page_size

    def ensure_table(self) -> None:
        ddl = (
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "original_name TEXT PRIMARY KEY, "
            "normalized_name TEXT NOT NULL, "
            "confidence DOUBLE PRECISION NOT NULL, "
            "source TEXT NOT NULL, "
            "usage_count INTEGER NOT NULL DEFAULT 1, "
            "last_used TIMESTAMPTZ NOT NULL DEFAULT now())"
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(ddl)
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise CacheError(f"failed to create {self.table}: {e}") from e

    def get_cached_mappings(self, names: Sequence[str]) -> dict[str, CacheEntry]:
        keys = sorted({n.strip().lower() for n in names if n and n.strip()})
        if not keys:
            return {}
        sql = (
            f"SELECT original_name, normalized_name, confidence, source, usage_count "
            f"FROM {self.table} WHERE original_name = ANY(%s)"
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, (keys,))
                rows = cur.fetchall()
        except Exception as e:
            self.conn.rollback()
            raise CacheError(f"cache lookup failed on {self.table}: {e}") from e
        return {
            original: CacheEntry(
                normalized_name=normalized,
                confidence=float(confidence),
                source=_source(source),
                usage_count=int(usage_count),
            )
            for original, normalized, confidence, source, usage_count in rows
        }

    def update_cache(self, entries: Sequence[NormalizationEntry]) -> None:
        # last write wins for duplicate keys inside one batch; ON CONFLICT cannot touch a row twice
        latest: dict[str, NormalizationEntry] = {}
        for e in entries:
            key = e.original_name.strip().lower()
            if key:
                latest[key] = e
        if not latest:
            return
        now = datetime.now(UTC)
        rows = [
            (key, e.normalized_name, e.confidence, e.source.value, 1, now)
            for key, e in latest.items()
        ]
        sql = (
            f"INSERT INTO {self.table} "
            "(original_name, normalized_name, confidence, source, usage_count, last_used) VALUES %s "
            "ON CONFLICT (original_name) DO UPDATE SET "
            "normalized_name = EXCLUDED.normalized_name, "
            "confidence = EXCLUDED.confidence, "
            "source = EXCLUDED.source, "
            f"usage_count = {self.table}.usage_count + 1, "
            "last_used = EXCLUDED.last_used"
        )
        try:
            with self.conn.cursor() as cur:
                execute_values(cur, sql, rows, page_size=self.page_size)
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise CacheError(f"cache upsert failed on {self.table}: {e}") from e
        logger.debug("upserted %d mappings into %s", len(rows), self.table)


@dataclass
class _Row:
    normalized_name: str
    confidence: float
    source: NormalizationSource
    usage_count: int
    last_used: datetime


class InMemoryMappingCache:
    """Process-local cache with the same upsert semantics; used by ``--no-cache`` and tests."""

    def __init__(self) -> None:
        self._rows: dict[str, _Row] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def get_cached_mappings(self, names: Sequence[str]) -> dict[str, CacheEntry]:
        found: dict[str, CacheEntry] = {}
        for n in names:
            key = (n or "").strip().lower()
            row = self._rows.get(key)
            if row is not None:
                found[key] = CacheEntry(row.normalized_name, row.confidence, row.source, row.usage_count)
        return found

    def update_cache(self, entries: Sequence[NormalizationEntry]) -> None:
        now = datetime.now(UTC)
        for e in entries:
            key = e.original_name.strip().lower()
            if not key:
                continue
            row = self._rows.get(key)
            if row is None:
                self._rows[key] = _Row(e.normalized_name, e.confidence, e.source, 1, now)
            else:
                row.normalized_name = e.normalized_name
                row.confidence = e.confidence
                row.source = e.source
                row.usage_count += 1
                row.last_used = now
