"""
Sink Strategies
The three interchangeable write targets of a transfer: live insert, JSON export and JSON import
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from bson import json_util
from pymongo.errors import BulkWriteError, PyMongoError

from ..config.manager import TransferJob, TransferMode
from ..core.database import StoreClient
from ..core.errors import FileIOError, InsertError

logger = logging.getLogger(__name__)

Batch = List[Dict[str, Any]]

# Relaxed Extended JSON keeps plain numbers readable while ObjectId and dates survive a round trip
JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS

class BaseSink(ABC):
    """
    Abstract base class for write targets

    A sink sees one collection at a time:
    begin_collection, then write once per batch, then end_collection.
    """

    # False when the sink produces its own documents instead of consuming the source cursor
    streams_source = True

    async def begin_collection(self, name: str):
        pass

    @abstractmethod
    async def write(self, batch: Batch, name: str) -> int:
        """Write one batch, return the number of documents written"""
        pass

    async def end_collection(self, name: str):
        pass

    def describe(self, name: str) -> str:
        """Human-readable destination, used in dry-run messages"""
        return name

class LiveInsertSink(BaseSink):
    """Insert into the same-named collection of the target store"""

    def __init__(self, target: StoreClient):
        self.target = target

    async def write(self, batch: Batch, name: str) -> int:
        try:
            return await self.target.insert_many(name, batch)
        except BulkWriteError as e:
            details = e.details or {}
            inserted = details.get("nInserted", 0)
            failed = len(details.get("writeErrors", []))
            raise InsertError(
                f"Partial insert into {name}: {inserted} inserted, {failed} failed",
                collection=name, inserted=inserted, failed=failed
            ) from e
        except PyMongoError as e:
            raise InsertError(f"Insert into {name} failed: {e}", collection=name, failed=len(batch)) from e

    def describe(self, name: str) -> str:
        return f"{self.target.database.name}.{name}"

class JsonExportSink(BaseSink):
    """
    Stream each collection into {output_dir}/{name}.json as one JSON array

    The array is opened when the collection starts, every batch appends
    comma-delimited entries, and the array is closed at the end, so the file
    stays valid JSON however many batches the collection spans.
    """

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self._entries_written: Dict[str, int] = {}

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.json"

    def _append(self, name: str, text: str):
        path = self.path_for(name)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise FileIOError(f"Cannot write {path}: {e}", collection=name, path=str(path)) from e

    async def begin_collection(self, name: str):
        path = self.path_for(name)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text("[", encoding="utf-8")
        except OSError as e:
            raise FileIOError(f"Cannot create {path}: {e}", collection=name, path=str(path)) from e
        self._entries_written[name] = 0

    async def write(self, batch: Batch, name: str) -> int:
        if not batch:
            return 0
        written = self._entries_written.get(name, 0)
        entries = ",\n".join(json_util.dumps(doc, json_options=JSON_OPTIONS) for doc in batch)
        prefix = ",\n" if written else "\n"
        self._append(name, prefix + entries)
        self._entries_written[name] = written + len(batch)
        return len(batch)

    async def end_collection(self, name: str):
        written = self._entries_written.pop(name, 0)
        self._append(name, "\n]\n" if written else "]\n")
        logger.info(f"Exported {written:,} documents to {self.path_for(name)}")

    def describe(self, name: str) -> str:
        return str(self.path_for(name))

class JsonImportSink(BaseSink):
    """
    Load {output_dir}/{name}.json once per collection and insert it into the target

    A missing file is not an error: load() returns None and the collection is
    reported as skipped.
    """

    streams_source = False

    def __init__(self, target: StoreClient, output_dir: str):
        self.output_dir = Path(output_dir)
        self.inserter = LiveInsertSink(target)

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.json"

    async def load(self, name: str) -> Optional[Batch]:
        path = self.path_for(name)
        if not path.exists():
            logger.warning(f"File not found: {path}")
            return None

        try:
            documents = json_util.loads(path.read_text(encoding="utf-8"), json_options=JSON_OPTIONS)
        except OSError as e:
            raise FileIOError(f"Cannot read {path}: {e}", collection=name, path=str(path)) from e
        except (ValueError, TypeError) as e:
            raise FileIOError(f"Invalid JSON in {path}: {e}", collection=name, path=str(path)) from e

        if not isinstance(documents, list):
            raise FileIOError(f"Expected a JSON array in {path}", collection=name, path=str(path))

        logger.debug(f"Loaded {len(documents):,} documents from {path}")
        return documents

    async def write(self, batch: Batch, name: str) -> int:
        return await self.inserter.write(batch, name)

    def describe(self, name: str) -> str:
        return f"{self.path_for(name)} -> {self.inserter.describe(name)}"

def create_sink(job: TransferJob, target: Optional[StoreClient]) -> BaseSink:
    """Factory function to create the sink for the job's mode"""
    if job.mode == TransferMode.EXPORT_JSON:
        return JsonExportSink(job.output_dir)
    if target is None:
        raise ValueError(f"{job.mode.value} mode requires a target store")
    if job.mode == TransferMode.IMPORT_JSON:
        return JsonImportSink(target, job.output_dir)
    if job.mode == TransferMode.LIVE:
        return LiveInsertSink(target)
    raise ValueError(f"Unsupported transfer mode: {job.mode}")
