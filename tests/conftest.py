"""
Pytest configuration and in-memory fakes of the motor client, database, collection and cursor
"""
import itertools
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import BulkWriteError, OperationFailure, ServerSelectionTimeoutError

from mongocopy.config.manager import TransferJob, TransferMode
from mongocopy.core.database import ConnectionManager, StoreSettings
from mongocopy.monitoring.progress import ProgressReporter

SOURCE_URI = "mongodb://source.example:27017"
TARGET_URI = "mongodb://target.example:27017"

_ids = itertools.count(1)


class FakeCursor:
    """Async iterator over a snapshot of documents; can fail after N documents"""

    def __init__(self, documents: List[Dict[str, Any]], fail_after: Optional[int] = None):
        self._documents = list(documents)
        self._fail_after = fail_after
        self._position = 0
        self.requested_batch_size = None

    def batch_size(self, n: int):
        self.requested_batch_size = n
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._fail_after is not None and self._position >= self._fail_after:
            raise OperationFailure("cursor killed")
        if self._position >= len(self._documents):
            raise StopAsyncIteration
        document = self._documents[self._position]
        self._position += 1
        return document


class InsertManyResult:
    def __init__(self, inserted_ids):
        self.inserted_ids = inserted_ids


class FakeCollection:
    def __init__(self, name: str, documents: Optional[List[Dict[str, Any]]] = None):
        self.name = name
        self.documents: List[Dict[str, Any]] = list(documents or [])
        self.insert_calls: List[List[Dict[str, Any]]] = []
        self.find_calls = 0
        self.fail_cursor_after: Optional[int] = None
        self.fail_count = False
        self.insert_error: Optional[Exception] = None
        self.cursors: List[FakeCursor] = []

    async def count_documents(self, query):
        if self.fail_count:
            raise OperationFailure("count failed")
        return len(self.documents)

    def find(self, query):
        self.find_calls += 1
        cursor = FakeCursor(self.documents, fail_after=self.fail_cursor_after)
        self.cursors.append(cursor)
        return cursor

    async def insert_many(self, documents, ordered=True):
        assert ordered is False
        self.insert_calls.append(list(documents))
        if self.insert_error is not None:
            raise self.insert_error
        inserted = []
        for document in documents:
            document = dict(document)
            document.setdefault("_id", next(_ids))
            self.documents.append(document)
            inserted.append(document["_id"])
        return InsertManyResult(inserted)


class FakeDatabase:
    def __init__(self, name: str):
        self.name = name
        self.collections: Dict[str, FakeCollection] = {}
        self.list_error: Optional[Exception] = None

    def add(self, name: str, documents: Optional[List[Dict[str, Any]]] = None) -> FakeCollection:
        self.collections[name] = FakeCollection(name, documents)
        return self.collections[name]

    async def list_collection_names(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.collections)

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.add(name)
        return self.collections[name]

    @property
    def total_inserts(self) -> int:
        return sum(len(c.insert_calls) for c in self.collections.values())


class FakeMotorClient:
    """Stands in for AsyncIOMotorClient; one client per URI"""

    def __init__(self, uri: str, default_db: str = "app"):
        self.uri = uri
        self.default_db = default_db
        self.databases: Dict[str, FakeDatabase] = {}
        self.admin = MagicMock()
        self.admin.command = AsyncMock(return_value={"ok": 1})
        self.close_calls = 0
        self.options: Dict[str, Any] = {}

    def __call__(self, uri, **kwargs):
        self.options = kwargs
        return self

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    def get_default_database(self) -> FakeDatabase:
        return self[self.default_db]

    def close(self):
        self.close_calls += 1

    def make_unreachable(self):
        self.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))


class RecordingReporter(ProgressReporter):
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, dict(payload)))

    def of(self, event):
        return [payload for e, payload in self.events if e == event]


class CountingConnectionManager(ConnectionManager):
    def __init__(self, client_factory):
        super().__init__(client_factory)
        self.close_all_calls = 0

    def close_all(self, *clients):
        self.close_all_calls += 1
        super().close_all(*clients)


def make_bulk_write_error(inserted: int, failed: int) -> BulkWriteError:
    return BulkWriteError({
        "nInserted": inserted,
        "writeErrors": [{"index": i, "code": 11000, "errmsg": "E11000 duplicate key"} for i in range(failed)]
    })


@pytest.fixture
def source_client():
    return FakeMotorClient(SOURCE_URI)


@pytest.fixture
def target_client():
    return FakeMotorClient(TARGET_URI)


@pytest.fixture
def source_db(source_client):
    return source_client["app"]


@pytest.fixture
def target_db(target_client):
    return target_client["app"]


@pytest.fixture
def client_factory(source_client, target_client):
    clients = {SOURCE_URI: source_client, TARGET_URI: target_client}

    def factory(uri, **kwargs):
        return clients[uri](uri, **kwargs)

    return factory


@pytest.fixture
def connection_manager(client_factory):
    return CountingConnectionManager(client_factory)


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def make_job(tmp_path):
    def _make_job(collections=(), batch_size=1000, mode=TransferMode.LIVE, dry_run=False, output_dir=None):
        return TransferJob(
            source=StoreSettings(connection_string=SOURCE_URI, database_name="app"),
            target=StoreSettings(connection_string=TARGET_URI, database_name="app"),
            collections=tuple(collections),
            batch_size=batch_size,
            mode=mode,
            dry_run=dry_run,
            output_dir=str(output_dir or tmp_path / "backup")
        )

    return _make_job
