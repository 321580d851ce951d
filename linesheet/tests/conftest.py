import asyncio

import pytest

from linesheet.catalog import CatalogStore
from linesheet.services.images import ImageEncodingError
from linesheet.services.project_repository import ProjectRepository

OVERSIZED = "data:image/jpeg;base64," + "A" * 1_400_000


class MemoryDocumentStore:
    """Document store double with failure injection and a call log."""

    def __init__(self):
        self.docs = {}
        self.fail = set()
        self.events = []

    def _check(self, operation):
        if operation in self.fail:
            raise ConnectionError(f"{operation} unavailable")

    async def list_documents(self, order_by, descending=True):
        self._check("list")
        rows = sorted(self.docs.items(), key=lambda item: item[1][order_by], reverse=descending)
        return [(key, dict(value)) for key, value in rows]

    async def get_document(self, key):
        self._check("get")
        value = self.docs.get(key)
        return dict(value) if value is not None else None

    async def set_document(self, key, data):
        self.events.append(("start", key))
        # Yield so concurrent callers get a chance to interleave.
        await asyncio.sleep(0)
        self.events.append(("end", key))
        self._check("set")
        self.docs[key] = data

    async def delete_document(self, key):
        self._check("delete")
        self.docs.pop(key, None)


class FakeEncoder:
    """Encodes a source name to a predictable data URI."""

    def __init__(self):
        self.results = {}
        self.broken = set()
        self.seen = []

    async def encode(self, source):
        self.seen.append(source)
        if source in self.broken:
            raise ImageEncodingError(f"cannot read {source}")
        return self.results.get(source, f"data:image/jpeg;base64,{source}")


@pytest.fixture
def documents():
    return MemoryDocumentStore()


@pytest.fixture
def repository(documents):
    return ProjectRepository(documents)


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def catalog(repository, encoder):
    return CatalogStore(repository, encoder)


@pytest.fixture
def oversized():
    return OVERSIZED
