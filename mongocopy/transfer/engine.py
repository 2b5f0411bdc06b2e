"""
Transfer Engine
Drives the per-collection loop: enumerate, stream each collection into the sink, abort on first failure, always clean up
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config.manager import TransferJob
from ..core.database import ConnectionManager, StoreClient
from ..monitoring.progress import LoggingProgressReporter, ProgressEvent, ProgressReporter
from .enumerator import missing_collections, resolve_collection_plan
from .reader import BatchCursorReader, chunked
from .sinks import BaseSink, JsonImportSink, create_sink

logger = logging.getLogger(__name__)

class TransferState(Enum):
    """Lifecycle of one job"""
    IDLE = "idle"
    CONNECTING = "connecting"
    ENUMERATING = "enumerating"
    PER_COLLECTION_LOOP = "per_collection_loop"
    DRY_RUN_SKIP = "dry_run_skip"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"

@dataclass
class TransferResult:
    """Per-collection counters"""
    name: str
    total_docs: int = 0
    processed_docs: int = 0
    batches: int = 0
    skipped: bool = False
    file_missing: bool = False
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def duration(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return end - self.start_time

    @property
    def rate(self) -> float:
        return self.processed_docs / self.duration if self.duration > 0 else 0

@dataclass
class TransferSummary:
    """What a finished job reports back to its caller"""
    state: TransferState
    plan: List[str] = field(default_factory=list)
    results: List[TransferResult] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return sum(r.processed_docs for r in self.results)

class TransferEngine:
    """
    Single-stream transfer engine:
    - one collection, one batch in flight at a time
    - the first failure aborts the remaining collections
    - connections are closed exactly once on every exit path
    """

    def __init__(self, job: TransferJob, reporter: Optional[ProgressReporter] = None,
                 connection_manager: Optional[ConnectionManager] = None):
        self.job = job
        self.reporter = reporter or LoggingProgressReporter()
        self.connection_manager = connection_manager or ConnectionManager()
        self.state = TransferState.IDLE
        self.source: Optional[StoreClient] = None
        self.target: Optional[StoreClient] = None
        self.summary = TransferSummary(state=self.state)
        self._current_collection: Optional[str] = None

    def _transition(self, state: TransferState):
        logger.debug(f"Transfer state: {self.state.value} -> {state.value}")
        self.state = state
        self.summary.state = state

    def _emit(self, event: ProgressEvent, **payload: Any):
        self.reporter.emit(event, payload)

    async def run(self) -> TransferSummary:
        """Execute the job; re-raises the first failure after cleanup"""
        if self.state != TransferState.IDLE:
            raise RuntimeError("A TransferEngine runs a single job once")

        try:
            self._transition(TransferState.CONNECTING)
            self.source, self.target = await self.connection_manager.open(self.job)

            self._transition(TransferState.ENUMERATING)
            plan = await resolve_collection_plan(self.source, self.job.collections)
            self.summary.plan = plan

            missing = missing_collections(self.job.collections, plan)
            if missing:
                logger.warning(f"Collections not found in source, skipping: {', '.join(missing)}")

            sink = create_sink(self.job, self.target)
            self._emit(ProgressEvent.START, collections=list(plan), mode=self.job.mode.value,
                       dry_run=self.job.dry_run)

            self._transition(TransferState.PER_COLLECTION_LOOP)
            for name in plan:
                self._current_collection = name
                if self.job.dry_run:
                    self._transition(TransferState.DRY_RUN_SKIP)
                    self._skip_collection(name, sink)
                else:
                    self._transition(TransferState.STREAMING)
                    await self._transfer_collection(name, sink)
                self._transition(TransferState.PER_COLLECTION_LOOP)
            self._current_collection = None

            self._transition(TransferState.COMPLETED)
            self._emit(ProgressEvent.ALL_DONE, collections=len(plan),
                       processed=self.summary.total_processed)
            return self.summary

        except Exception as e:
            phase = self.state.value
            self._transition(TransferState.ABORTED)
            logger.error(f"❌ Transfer aborted during {phase}"
                         f"{f' of collection {self._current_collection}' if self._current_collection else ''}: {e}")
            self._emit(ProgressEvent.ERROR, phase=phase, collection=self._current_collection, error=str(e))
            raise

        finally:
            self.cleanup()

    def _skip_collection(self, name: str, sink: BaseSink):
        """Dry run: no cursor opened, no sink called"""
        logger.info(f"[DRY-RUN] Would copy collection: {name} -> {sink.describe(name)}")
        result = TransferResult(name=name, skipped=True, end_time=time.time())
        self.summary.results.append(result)
        self._emit(ProgressEvent.COLLECTION_DONE, collection=name, skipped=True, processed=0, total=0)

    async def _transfer_collection(self, name: str, sink: BaseSink):
        result = TransferResult(name=name)
        self.summary.results.append(result)

        if sink.streams_source:
            await self._stream_collection(name, sink, result)
        else:
            await self._import_collection(name, sink, result)

        result.end_time = time.time()
        if not result.file_missing:
            logger.info(f"✔ Finished collection {name} ({result.processed_docs:,} docs, "
                        f"{result.batches} batches, {result.rate:.0f} docs/s)")
        self._emit(ProgressEvent.COLLECTION_DONE, collection=name, processed=result.processed_docs,
                   total=result.total_docs, batches=result.batches, file_missing=result.file_missing)

    async def _stream_collection(self, name: str, sink: BaseSink, result: TransferResult):
        reader = BatchCursorReader(self.source, self.job.batch_size)
        result.total_docs = await reader.count(name)
        logger.info(f"📊 {name}: {result.total_docs:,} documents in source")

        await sink.begin_collection(name)
        stream = reader.stream(name)
        try:
            async for batch in stream:
                await sink.write(batch, name)
                self._record_batch(result, batch)
        finally:
            await stream.aclose()
        await sink.end_collection(name)

    async def _import_collection(self, name: str, sink: JsonImportSink, result: TransferResult):
        """One load per collection; the parsed file is inserted in batch_size chunks"""
        documents = await sink.load(name)
        if documents is None:
            result.file_missing = True
            return

        result.total_docs = len(documents)
        await sink.begin_collection(name)
        for batch in chunked(documents, self.job.batch_size):
            await sink.write(batch, name)
            self._record_batch(result, batch)
        await sink.end_collection(name)
        logger.info(f"Imported {result.processed_docs:,} docs into {name}")

    def _record_batch(self, result: TransferResult, batch: List[Dict[str, Any]]):
        result.processed_docs += len(batch)
        result.batches += 1
        self._emit(ProgressEvent.PROGRESS, collection=result.name,
                   processed=result.processed_docs, total=result.total_docs)

    def cleanup(self):
        """Release both stores; safe when either was never opened"""
        self.connection_manager.close_all(self.source, self.target)
        self.source = None
        self.target = None
        logger.info("Transfer engine cleaned up")

def create_transfer_engine(job: TransferJob, reporter: Optional[ProgressReporter] = None) -> TransferEngine:
    """Create a transfer engine for the given job"""
    return TransferEngine(job, reporter=reporter)
