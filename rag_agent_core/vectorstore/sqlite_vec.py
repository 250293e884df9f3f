"""
SQLite-vec vector store implementation.

Uses the sqlite-vec extension for vector similarity search.
Ideal for local development and small to medium datasets.

Requires: pip install sqlite-vec
"""

import json
import logging
import sqlite3
import struct
from typing import Optional

from rag_agent_core.errors import ExternalCapabilityError
from rag_agent_core.vectorstore.base import (
    DocumentChunk,
    ScoredChunk,
    VectorStore,
)
from rag_agent_core.vectorstore.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)


def _serialize_vector(vector: list[float]) -> bytes:
    """Serialize a vector to bytes for sqlite-vec."""
    return struct.pack(f"{len(vector)}f", *vector)


def _filter_clause(filter: Optional[dict], alias: str = "") -> tuple[str, list]:
    """Build a json_extract equality clause for a metadata filter."""
    if not filter:
        return "", []
    column = f"{alias}.metadata" if alias else "metadata"
    conditions = []
    values = []
    for key, value in filter.items():
        conditions.append(f"json_extract({column}, '$.{key}') = ?")
        if isinstance(value, bool):
            value = int(value)
        elif isinstance(value, (dict, list)):
            value = json.dumps(value)
        values.append(value)
    return " AND ".join(conditions), values


class SqliteVecStore(VectorStore):
    """
    Vector store using the sqlite-vec extension.

    Two tables are created lazily, once the embedding size is known:
    - {table_name}_vec: vec0 virtual table holding embeddings
    - {table_name}_meta: chunk content and JSON metadata

    Scores are 1 / (1 + distance), so higher is more similar.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        path: str = ":memory:",
        table_name: str = "chunks",
    ):
        self._embeddings = embedding_client
        self._path = path
        self._table_name = table_name
        self._conn: Optional[sqlite3.Connection] = None
        self._ready = False

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                import sqlite_vec
            except ImportError:
                raise ImportError(
                    "sqlite-vec package not installed. Install with: pip install sqlite-vec"
                )
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.enable_load_extension(True)
            sqlite_vec.load(self._conn)
            self._conn.enable_load_extension(False)
        return self._conn

    def _tables_exist(self) -> bool:
        if self._ready:
            return True
        cursor = self._get_connection().execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (f"{self._table_name}_meta",),
        )
        self._ready = cursor.fetchone() is not None
        return self._ready

    def _ensure_tables(self, dimensions: int) -> None:
        if self._tables_exist():
            return
        conn = self._get_connection()
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._table_name}_meta (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{{}}'
            )
        """)
        conn.execute(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS {self._table_name}_vec
            USING vec0(
                id TEXT PRIMARY KEY,
                embedding float[{dimensions}]
            )
        """)
        conn.commit()
        self._ready = True

    async def upsert(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        vectors = await self._embeddings.embed_batch([c.content for c in chunks])
        self._ensure_tables(len(vectors[0]))

        conn = self._get_connection()
        ids = [c.id for c in chunks]
        placeholders = ",".join("?" * len(ids))
        try:
            # vec0 tables do not support INSERT OR REPLACE
            conn.execute(
                f"DELETE FROM {self._table_name}_vec WHERE id IN ({placeholders})", ids
            )
            conn.executemany(
                f"INSERT OR REPLACE INTO {self._table_name}_meta (id, content, metadata) "
                f"VALUES (?, ?, ?)",
                [(c.id, c.content, json.dumps(c.metadata)) for c in chunks],
            )
            conn.executemany(
                f"INSERT INTO {self._table_name}_vec (id, embedding) VALUES (?, ?)",
                [(c.id, _serialize_vector(v)) for c, v in zip(chunks, vectors)],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise ExternalCapabilityError(f"Failed to upsert chunks: {e}") from e

    async def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict] = None,
    ) -> list[ScoredChunk]:
        if not self._tables_exist():
            return []

        query_bytes = _serialize_vector(await self._embeddings.embed(query))
        conn = self._get_connection()

        knn = f"""
            WITH knn AS (
                SELECT id, distance
                FROM {self._table_name}_vec
                WHERE embedding MATCH ? AND k = ?
            )
            SELECT knn.distance, m.content, m.metadata
            FROM knn
            JOIN {self._table_name}_meta m ON knn.id = m.id
        """

        filter_sql, filter_values = _filter_clause(filter, alias="m")
        if filter_sql:
            # KNN runs before the join, so over-fetch and filter afterwards
            total = await self.count()
            rows = conn.execute(
                f"{knn} WHERE {filter_sql} ORDER BY knn.distance LIMIT ?",
                [query_bytes, max(total, 1)] + filter_values + [k],
            ).fetchall()
        else:
            rows = conn.execute(
                f"{knn} ORDER BY knn.distance",
                (query_bytes, k),
            ).fetchall()

        return [
            ScoredChunk(
                content=content,
                metadata=json.loads(metadata_json),
                score=1.0 / (1.0 + distance),
            )
            for distance, content, metadata_json in rows
        ]

    async def get_by_filter(
        self,
        filter: dict,
        limit: Optional[int] = None,
    ) -> list[DocumentChunk]:
        if not self._tables_exist():
            return []

        filter_sql, values = _filter_clause(filter)
        sql = f"SELECT id, content, metadata FROM {self._table_name}_meta"
        if filter_sql:
            sql += f" WHERE {filter_sql}"
        sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            values.append(limit)

        rows = self._get_connection().execute(sql, values).fetchall()
        return [
            DocumentChunk(id=id, content=content, metadata=json.loads(metadata_json))
            for id, content, metadata_json in rows
        ]

    async def delete_by_ids(self, ids: list[str]) -> int:
        if not ids or not self._tables_exist():
            return 0
        conn = self._get_connection()
        placeholders = ",".join("?" * len(ids))
        cursor = conn.execute(
            f"DELETE FROM {self._table_name}_meta WHERE id IN ({placeholders})", ids
        )
        deleted = cursor.rowcount
        conn.execute(
            f"DELETE FROM {self._table_name}_vec WHERE id IN ({placeholders})", ids
        )
        conn.commit()
        return deleted

    async def count(self) -> int:
        if not self._tables_exist():
            return 0
        row = self._get_connection().execute(
            f"SELECT COUNT(*) FROM {self._table_name}_meta"
        ).fetchone()
        return row[0]

    async def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug(f"Ignoring error while closing sqlite connection: {e}")
            self._conn = None
            self._ready = False
