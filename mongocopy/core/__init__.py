"""
Core Store Access
"""
from .database import ConnectionManager, OperationMetrics, StoreClient, StoreSettings
from .errors import (
    BatchReadError,
    ConfigurationError,
    EnumerationError,
    FileIOError,
    InsertError,
    StoreConnectionError,
    TransferError
)
