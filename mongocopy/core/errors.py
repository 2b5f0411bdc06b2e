"""
Transfer Error Taxonomy
Every failure the engine can surface, tagged with the collection and phase it happened in
"""
from typing import Optional


class TransferError(Exception):
    """Base class for all transfer failures"""

    def __init__(self, message: str, collection: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
        self.phase = phase


class ConfigurationError(TransferError):
    """Job configuration is invalid (raised before any I/O)"""


class StoreConnectionError(TransferError):
    """A store could not be reached"""

    def __init__(self, message: str, role: Optional[str] = None):
        super().__init__(message, phase="connect")
        self.role = role


class EnumerationError(TransferError):
    """Listing the source collections failed"""

    def __init__(self, message: str):
        super().__init__(message, phase="enumerate")


class BatchReadError(TransferError):
    """Counting or advancing the source cursor failed"""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message, collection=collection, phase="read")


class InsertError(TransferError):
    """Destination write failed, fully or partially"""

    def __init__(self, message: str, collection: Optional[str] = None,
                 inserted: int = 0, failed: int = 0):
        super().__init__(message, collection=collection, phase="write")
        self.inserted = inserted
        self.failed = failed


class FileIOError(TransferError):
    """Export/import file could not be written, read or parsed"""

    def __init__(self, message: str, collection: Optional[str] = None, path: Optional[str] = None):
        super().__init__(message, collection=collection, phase="file")
        self.path = path
