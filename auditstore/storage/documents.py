"""Document store access used by the reconciliation pipeline."""
from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

import orjson

META_COLLECTION = "meta"


@dataclass(slots=True)
class Document:
    """A stored document: its id within a collection and its payload."""

    id: str
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(Protocol):
    """Ordered key-value collections keyed by string ids."""

    async def query_page(
        self, collection: str, *, limit: int, start_after: Optional[str] = None
    ) -> List[Document]:
        """Return up to ``limit`` documents ordered by id, after ``start_after``."""
        ...

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def delete_collection(self, collection: str) -> int:
        ...


class DocumentNotFoundError(LookupError):
    """Raised when updating a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"No document {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


def _dumps(data: Dict[str, Any]) -> str:
    return orjson.dumps(data, option=orjson.OPT_NAIVE_UTC).decode()


class SQLiteDocumentStore:
    """`DocumentStore` backed by a single SQLite table."""

    def __init__(self, path: Path) -> None:
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        connection = self._connect()
        try:
            connection.execute(
                "CREATE TABLE IF NOT EXISTS documents ("
                "collection TEXT NOT NULL, "
                "id TEXT NOT NULL, "
                "data TEXT NOT NULL, "
                "PRIMARY KEY (collection, id))"
            )
            connection.commit()
        finally:
            connection.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._path)

    def _query_page(self, collection: str, limit: int, start_after: Optional[str]) -> List[Document]:
        connection = self._connect()
        try:
            rows = connection.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id > ? ORDER BY id LIMIT ?",
                (collection, start_after or "", limit),
            ).fetchall()
        finally:
            connection.close()
        return [Document(id=row[0], data=orjson.loads(row[1])) for row in rows]

    def _get(self, connection: sqlite3.Connection, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = connection.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        return orjson.loads(row[0]) if row else None

    def _update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        connection = self._connect()
        try:
            current = self._get(connection, collection, doc_id)
            if current is None:
                raise DocumentNotFoundError(collection, doc_id)
            current.update(fields)
            connection.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                (_dumps(current), collection, doc_id),
            )
            connection.commit()
        finally:
            connection.close()

    def _put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        connection = self._connect()
        try:
            connection.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?) "
                "ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data",
                (collection, doc_id, _dumps(data)),
            )
            connection.commit()
        finally:
            connection.close()

    def _put_many(self, collection: str, documents: List[Document]) -> int:
        connection = self._connect()
        try:
            connection.executemany(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?) "
                "ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data",
                [(collection, doc.id, _dumps(doc.data)) for doc in documents],
            )
            connection.commit()
        finally:
            connection.close()
        return len(documents)

    def _delete(self, collection: str, doc_id: Optional[str]) -> int:
        connection = self._connect()
        try:
            if doc_id is None:
                cursor = connection.execute("DELETE FROM documents WHERE collection = ?", (collection,))
            else:
                cursor = connection.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                )
            connection.commit()
            return cursor.rowcount
        finally:
            connection.close()

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Synchronously read a single document payload."""
        connection = self._connect()
        try:
            return self._get(connection, collection, doc_id)
        finally:
            connection.close()

    async def query_page(
        self, collection: str, *, limit: int, start_after: Optional[str] = None
    ) -> List[Document]:
        return await asyncio.to_thread(self._query_page, collection, limit, start_after)

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._update, collection, doc_id, fields)

    async def put(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._put, collection, doc_id, data)

    async def delete(self, collection: str, doc_id: str) -> None:
        await asyncio.to_thread(self._delete, collection, doc_id)

    async def delete_collection(self, collection: str) -> int:
        return await asyncio.to_thread(self._delete, collection, None)

    async def put_many(self, collection: str, documents: Iterable[Document]) -> int:
        return await asyncio.to_thread(self._put_many, collection, list(documents))
