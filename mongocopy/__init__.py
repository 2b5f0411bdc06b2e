"""
mongocopy
Batched collection transfer between MongoDB databases and JSON backups
"""

__version__ = "1.0.0"

# Core components
from .core.database import (
    ConnectionManager,
    StoreClient,
    StoreSettings
)
from .core.errors import (
    TransferError,
    ConfigurationError,
    StoreConnectionError,
    EnumerationError,
    BatchReadError,
    InsertError,
    FileIOError
)

# Configuration management
from .config.manager import (
    ConfigManager,
    TransferJob,
    TransferMode,
    TransferSettings
)

# Transfer
from .transfer.engine import (
    TransferEngine,
    TransferResult,
    TransferState,
    TransferSummary,
    create_transfer_engine
)
from .transfer.enumerator import resolve_collection_plan
from .transfer.reader import BatchCursorReader
from .transfer.sinks import (
    BaseSink,
    LiveInsertSink,
    JsonExportSink,
    JsonImportSink,
    create_sink
)

# Monitoring
from .monitoring.progress import (
    ProgressEvent,
    ProgressReporter,
    LoggingProgressReporter,
    TqdmProgressReporter
)

__all__ = [
    # Core
    "ConnectionManager",
    "StoreClient",
    "StoreSettings",

    # Errors
    "TransferError",
    "ConfigurationError",
    "StoreConnectionError",
    "EnumerationError",
    "BatchReadError",
    "InsertError",
    "FileIOError",

    # Configuration
    "ConfigManager",
    "TransferJob",
    "TransferMode",
    "TransferSettings",

    # Transfer
    "TransferEngine",
    "TransferResult",
    "TransferState",
    "TransferSummary",
    "create_transfer_engine",
    "resolve_collection_plan",
    "BatchCursorReader",
    "BaseSink",
    "LiveInsertSink",
    "JsonExportSink",
    "JsonImportSink",
    "create_sink",

    # Monitoring
    "ProgressEvent",
    "ProgressReporter",
    "LoggingProgressReporter",
    "TqdmProgressReporter"
]
