"""
Core Database Client Framework
Connection handling for the source and destination stores of a transfer job
"""
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from .errors import StoreConnectionError

if TYPE_CHECKING:
    from ..config.manager import TransferJob

logger = logging.getLogger(__name__)

@dataclass
class StoreSettings:
    """Connection settings for one store"""
    connection_string: str
    database_name: Optional[str] = None
    max_pool_size: int = 100
    min_pool_size: int = 0
    max_idle_time_ms: int = 300000
    socket_timeout_ms: int = 30000
    connect_timeout_ms: int = 20000
    server_selection_timeout_ms: int = 30000

@dataclass
class OperationMetrics:
    """Operation performance metrics"""
    operation_name: str
    start_time: float
    end_time: float = 0
    documents_processed: int = 0
    success: bool = False
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def rate(self) -> float:
        return self.documents_processed / self.duration if self.duration > 0 else 0

class StoreClient:
    """
    Handle to one MongoDB database

    Wraps a motor client and exposes only what a transfer needs:
    - list collection names
    - open a collection by name
    - count documents
    - full-scan cursor
    - unordered insert many
    """

    def __init__(self, settings: StoreSettings, role: str,
                 client_factory: Callable[..., Any] = AsyncIOMotorClient):
        self.settings = settings
        self.role = role
        self.client_factory = client_factory
        self.client = None
        self.database = None
        self.is_connected = False
        self.last_operation: Optional[OperationMetrics] = None

    async def connect(self) -> "StoreClient":
        """Create the client and verify the server answers a ping"""
        logger.info(f"Connecting to {self.role} store...")
        try:
            self.client = self.client_factory(
                self.settings.connection_string,
                maxPoolSize=self.settings.max_pool_size,
                minPoolSize=self.settings.min_pool_size,
                maxIdleTimeMS=self.settings.max_idle_time_ms,
                socketTimeoutMS=self.settings.socket_timeout_ms,
                connectTimeoutMS=self.settings.connect_timeout_ms,
                serverSelectionTimeoutMS=self.settings.server_selection_timeout_ms
            )

            if self.settings.database_name:
                self.database = self.client[self.settings.database_name]
            else:
                # Database named in the connection string
                self.database = self.client.get_default_database()

            await self.client.admin.command('ping')
        except PyMongoError as e:
            logger.error(f"❌ Failed to connect to {self.role} store: {e}")
            # The driver client already holds a pool and monitor threads
            if self.client is not None:
                self.client.close()
                self.client = None
                self.database = None
            raise StoreConnectionError(f"Cannot reach {self.role} store: {e}", role=self.role) from e

        self.is_connected = True
        logger.info(f"✅ Connected to {self.role} store ({self.database.name})")
        return self

    def close(self):
        """Close the underlying client"""
        if self.client is not None and self.is_connected:
            self.client.close()
            self.is_connected = False
            logger.info(f"Disconnected from {self.role} store")

    async def list_collection_names(self) -> List[str]:
        return await self.database.list_collection_names()

    def collection(self, name: str):
        return self.database[name]

    async def count_documents(self, name: str) -> int:
        return await self.collection(name).count_documents({})

    def find(self, name: str, batch_size: int):
        """Open a fresh full-scan cursor; no filter, natural order"""
        return self.collection(name).find({}).batch_size(batch_size)

    async def insert_many(self, name: str, documents: List[Dict[str, Any]]) -> int:
        """Insert unordered so one bad document does not block the rest"""
        metrics = self.start_operation("insert_many")
        try:
            result = await self.collection(name).insert_many(documents, ordered=False)
        except PyMongoError as e:
            self.end_operation(metrics, 0, error=e)
            raise
        inserted_count = len(result.inserted_ids)
        self.end_operation(metrics, inserted_count)
        return inserted_count

    def start_operation(self, operation_name: str) -> OperationMetrics:
        return OperationMetrics(operation_name=operation_name, start_time=time.time())

    def end_operation(self, metrics: OperationMetrics, documents_processed: int,
                      error: Optional[Exception] = None):
        metrics.end_time = time.time()
        metrics.documents_processed = documents_processed
        metrics.success = error is None
        metrics.error_message = str(error) if error is not None else None
        # Only the latest operation is kept
        self.last_operation = metrics
        # Debug only, keeps the progress bar clean
        if metrics.success:
            logger.debug(f"✅ {metrics.operation_name}: {documents_processed:,} docs in {metrics.duration:.2f}s ({metrics.rate:.0f} docs/s)")
        else:
            logger.debug(f"❌ {metrics.operation_name} failed after {metrics.duration:.2f}s: {metrics.error_message}")

class ConnectionManager:
    """Opens the stores a job needs and releases them on every exit path"""

    def __init__(self, client_factory: Callable[..., Any] = AsyncIOMotorClient):
        self.client_factory = client_factory

    async def open(self, job: "TransferJob") -> Tuple[StoreClient, Optional[StoreClient]]:
        """
        Connect the source and, unless exporting to files, the target

        Returns:
            (source, target); target is None in export mode
        """
        source = await StoreClient(job.source, "source", self.client_factory).connect()

        if not job.needs_target:
            return source, None

        try:
            target = await StoreClient(job.target, "target", self.client_factory).connect()
        except StoreConnectionError:
            self.close_all(source)
            raise

        return source, target

    def close_all(self, *clients: Optional[StoreClient]):
        """Best-effort close; never raises"""
        for client in clients:
            if client is None:
                continue
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing {client.role} store: {e}")
