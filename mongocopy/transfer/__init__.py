"""
Transfer Framework
"""
from .engine import (
    TransferEngine,
    TransferResult,
    TransferState,
    TransferSummary,
    create_transfer_engine
)
from .enumerator import resolve_collection_plan
from .reader import BatchCursorReader, chunked
from .sinks import BaseSink, JsonExportSink, JsonImportSink, LiveInsertSink, create_sink
