"""
Batch Cursor Reader
Streams a collection as fixed-size batches from a single full-scan cursor
"""
import logging
from typing import Any, AsyncIterator, Dict, Iterator, List, Sequence

from pymongo.errors import PyMongoError

from ..core.database import StoreClient
from ..core.errors import BatchReadError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Batch = List[Document]

class BatchCursorReader:
    """Reads one collection at a time; every stream() call opens a new cursor"""

    def __init__(self, client: StoreClient, batch_size: int):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        self.client = client
        self.batch_size = batch_size

    async def count(self, name: str) -> int:
        """Point-in-time document count taken before streaming"""
        try:
            return await self.client.count_documents(name)
        except PyMongoError as e:
            raise BatchReadError(f"Failed to count documents in {name}: {e}", collection=name) from e

    async def stream(self, name: str) -> AsyncIterator[Batch]:
        """
        Yield batches of at most batch_size documents

        The last batch may be short and an empty collection yields nothing.
        The iterator is single-pass.
        """
        try:
            cursor = self.client.find(name, self.batch_size)
        except PyMongoError as e:
            raise BatchReadError(f"Failed to open cursor on {name}: {e}", collection=name) from e

        batch: Batch = []
        batch_number = 0
        try:
            async for document in cursor:
                batch.append(document)
                if len(batch) >= self.batch_size:
                    batch_number += 1
                    logger.debug(f"Read batch {batch_number} of {name}: {len(batch)} documents")
                    yield batch
                    batch = []
        except PyMongoError as e:
            raise BatchReadError(f"Cursor failed while reading {name}: {e}", collection=name) from e

        if batch:
            batch_number += 1
            logger.debug(f"Read final batch {batch_number} of {name}: {len(batch)} documents")
            yield batch

def chunked(documents: Sequence[Document], batch_size: int) -> Iterator[Batch]:
    """Split an in-memory document list into batches shaped like stream()"""
    for start in range(0, len(documents), batch_size):
        yield list(documents[start:start + batch_size])
