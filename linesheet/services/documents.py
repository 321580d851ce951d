"""Document store backends for project documents.

Both backends speak the same async contract and raise on failure; turning
failures into results is the repository's job.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from firebase_admin import firestore

from commonlib.storage import JsonDocumentStore

Document = dict[str, Any]


class DocumentStore(Protocol):
    async def list_documents(self, order_by: str, descending: bool = True) -> list[tuple[str, Document]]: ...

    async def get_document(self, key: str) -> Document | None: ...

    async def set_document(self, key: str, data: Document) -> None: ...

    async def delete_document(self, key: str) -> None: ...


class FirestoreDocumentStore:
    """Documents in one Firestore collection, via the async client."""

    def __init__(self, client, collection: str = "projects") -> None:
        self._client = client
        self.collection = collection

    def _collection(self):
        return self._client.collection(self.collection)

    async def list_documents(self, order_by: str, descending: bool = True) -> list[tuple[str, Document]]:
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = self._collection().order_by(order_by, direction=direction)
        return [(snap.id, snap.to_dict() or {}) async for snap in query.stream()]

    async def get_document(self, key: str) -> Document | None:
        snap = await self._collection().document(key).get()
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    async def set_document(self, key: str, data: Document) -> None:
        await self._collection().document(key).set(data)

    async def delete_document(self, key: str) -> None:
        await self._collection().document(key).delete()


class LocalDocumentStore:
    """Async facade over a JSON file store; file I/O runs in worker threads."""

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store

    @property
    def path(self):
        return self._store.path

    async def list_documents(self, order_by: str, descending: bool = True) -> list[tuple[str, Document]]:
        data = await asyncio.to_thread(self._store.all)
        items = [(key, value) for key, value in data.items() if isinstance(value, dict)]
        dated = [item for item in items if item[1].get(order_by) is not None]
        undated = [item for item in items if item[1].get(order_by) is None]
        dated.sort(key=lambda item: item[1][order_by], reverse=descending)
        # Documents without the order field come last.
        return dated + undated

    async def get_document(self, key: str) -> Document | None:
        value = await asyncio.to_thread(self._store.get, key)
        return value if isinstance(value, dict) else None

    async def set_document(self, key: str, data: Document) -> None:
        await asyncio.to_thread(self._store.put, key, dict(data))

    async def delete_document(self, key: str) -> None:
        await asyncio.to_thread(self._store.remove, key)
