"""
Progress Reporting
Event sink for transfer progress; the engine emits events and never formats terminal output itself
"""
import logging
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from tqdm import tqdm

logger = logging.getLogger(__name__)

class ProgressEvent(Enum):
    """Events emitted by the transfer engine"""
    START = "start"
    PROGRESS = "progress"
    COLLECTION_DONE = "collection_done"
    ALL_DONE = "all_done"
    ERROR = "error"

class ProgressReporter(ABC):
    """Receives (event, payload) pairs from the engine"""

    @abstractmethod
    def emit(self, event: ProgressEvent, payload: Dict[str, Any]):
        pass

class LoggingProgressReporter(ProgressReporter):
    """Routes every event through the logging module"""

    def emit(self, event: ProgressEvent, payload: Dict[str, Any]):
        if event == ProgressEvent.START:
            collections = payload.get("collections", [])
            logger.info(f"🚀 Processing {len(collections)} collection(s): {', '.join(collections)}")
        elif event == ProgressEvent.PROGRESS:
            logger.info(f"Collection {payload['collection']}: {payload['processed']:,}/{payload['total']:,} documents")
        elif event == ProgressEvent.COLLECTION_DONE:
            # Dry-run intent is already logged by the engine
            log = logger.debug if payload.get("skipped") else logger.info
            log(_describe_collection_done(payload))
        elif event == ProgressEvent.ALL_DONE:
            logger.info(f"✅ Transfer completed: {payload.get('processed', 0):,} documents in {payload.get('collections', 0)} collection(s)")
        elif event == ProgressEvent.ERROR:
            logger.error(f"❌ Transfer failed during {payload.get('phase')} ({payload.get('collection') or '-'}): {payload.get('error')}")

class TqdmProgressReporter(LoggingProgressReporter):
    """One tqdm bar per collection; other events are logged"""

    def __init__(self, file=None, disable: bool = False):
        self.file = file or sys.stdout
        self.disable = disable
        self.pbar: Optional[tqdm] = None
        self._collection: Optional[str] = None

    def _open_bar(self, collection: str, total: int):
        self._close_bar()
        self._collection = collection
        self.pbar = tqdm(
            total=total,
            desc=f"🚀 {collection}",
            unit="docs",
            unit_scale=True,
            ncols=120,
            bar_format='{desc}: {percentage:3.0f}%|{bar:25}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]',
            colour='blue',
            dynamic_ncols=True,
            leave=True,
            file=self.file,
            disable=self.disable
        )

    def _close_bar(self):
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None
            self._collection = None

    def emit(self, event: ProgressEvent, payload: Dict[str, Any]):
        if event == ProgressEvent.PROGRESS:
            if self.pbar is None or self._collection != payload["collection"]:
                self._open_bar(payload["collection"], payload["total"])
            # Totals are a snapshot; the bar follows the real counter
            self.pbar.update(payload["processed"] - self.pbar.n)
            return

        if event in (ProgressEvent.COLLECTION_DONE, ProgressEvent.ALL_DONE, ProgressEvent.ERROR):
            self._close_bar()
        super().emit(event, payload)

def _describe_collection_done(payload: Dict[str, Any]) -> str:
    name = payload["collection"]
    if payload.get("skipped"):
        return f"Skipped {name} (dry run)"
    if payload.get("file_missing"):
        return f"⚠️ No import file for {name}; skipped"
    return f"✔ Finished collection {name} ({payload.get('processed', 0):,}/{payload.get('total', 0):,} docs)"
