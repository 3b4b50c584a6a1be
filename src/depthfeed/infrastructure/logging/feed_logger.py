"""
FeedLogger: the structured logger behind get_logger().

A log call builds a LogRecord and queues it. Inside a running event loop a
drain task hands queued records to the routed backends in batches and exits
once the queue is empty. Outside a loop (CLI argument handling, sync tests)
records are written immediately through `write_sync`.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from depthfeed.common.ring_buffer import RingBuffer
from .interfaces import LogBackend, LoggerInterface, LogLevel, LogRecord, LogRouter, LogType
from .structs import DispatchConfig

_PROMOTED_KEYS = ("source", "pair", "correlation_id")


class FeedLogger(LoggerInterface):

    def __init__(self, name: str, backends: List[LogBackend], router: LogRouter,
                 dispatch: Optional[DispatchConfig] = None, propagate: bool = False,
                 default_context: Optional[Dict[str, Any]] = None):
        dispatch = dispatch or DispatchConfig()
        self.name = name
        self.backends = backends
        self.router = router
        self.batch_size = dispatch.batch_size
        self.propagate = propagate
        self.context: Dict[str, Any] = dict(default_context or {})

        self._queue: RingBuffer[LogRecord] = RingBuffer(dispatch.queue_size)
        self._drain_task: Optional[asyncio.Task] = None
        self._stdlib = logging.getLogger(name)

    # Record building

    def _build(self, level: LogLevel, log_type: LogType, message: str, kwargs: Dict[str, Any]) -> LogRecord:
        context = {**self.context, **kwargs}
        promoted = {key: context.pop(key, None) for key in _PROMOTED_KEYS}
        record = LogRecord(level=level, log_type=log_type, logger_name=self.name, message=message,
                           **{key: str(value) if value is not None else None for key, value in promoted.items()})
        if log_type == LogType.METRIC:
            record.metric_tags = context
        else:
            record.context = context
        return record

    def _submit(self, record: LogRecord) -> None:
        if self.propagate and record.level >= LogLevel.WARNING and not record.is_metric:
            suffix = f" | {record.context}" if record.context else ""
            self._stdlib.log(int(record.level), f"{record.message}{suffix}")

        if not self._queue.append(record):
            # Oldest queued record was evicted; reported once per thousand drops
            if self._queue.dropped % 1000 == 1:
                print(f"FeedLogger '{self.name}' queue full, {self._queue.dropped} records dropped so far")
        self._schedule_drain()

    # Dispatch

    def _schedule_drain(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            for record in self._queue.drain(len(self._queue)):
                self._write_sync(record)
            return

        task = self._drain_task
        # A task left over from a closed loop never completes, so it is replaced
        if task is None or task.done() or task.get_loop() is not loop:
            self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            await self._dispatch(self._queue.drain(self.batch_size))
            await asyncio.sleep(0)

    def _targets(self, record: LogRecord) -> List[LogBackend]:
        return [backend for backend in self.router.get_backends(record) if backend.accepts(record)]

    async def _dispatch(self, records: List[LogRecord]) -> None:
        for record in records:
            for backend in self._targets(record):
                try:
                    await backend.write(record)
                except Exception as e:
                    backend.record_failure(e)

    def _write_sync(self, record: LogRecord) -> None:
        for backend in self._targets(record):
            try:
                backend.write_sync(record)
            except Exception as e:
                backend.record_failure(e)

    # LoggerInterface

    def debug(self, msg: str, **context) -> None:
        self._submit(self._build(LogLevel.DEBUG, LogType.TEXT, msg, context))

    def info(self, msg: str, **context) -> None:
        self._submit(self._build(LogLevel.INFO, LogType.TEXT, msg, context))

    def warning(self, msg: str, **context) -> None:
        self._submit(self._build(LogLevel.WARNING, LogType.TEXT, msg, context))

    def error(self, msg: str, **context) -> None:
        self._submit(self._build(LogLevel.ERROR, LogType.TEXT, msg, context))

    def critical(self, msg: str, **context) -> None:
        self._submit(self._build(LogLevel.CRITICAL, LogType.TEXT, msg, context))

    def metric(self, name: str, value: float, **tags) -> None:
        record = self._build(LogLevel.INFO, LogType.METRIC, "", tags)
        record.metric_name = name
        record.metric_value = float(value)
        self._submit(record)

    def latency(self, operation: str, duration_ms: float, **tags) -> None:
        self.metric(f"{operation}_latency_ms", duration_ms, **tags)

    def counter(self, name: str, value: int = 1, **tags) -> None:
        self.metric(f"{name}_count", value, **tags)

    def audit(self, event: str, **context) -> None:
        self._submit(self._build(LogLevel.INFO, LogType.AUDIT, event, context))

    def set_context(self, **context) -> None:
        self.context.update(context)

    async def flush(self) -> None:
        """Deliver everything queued, then flush every backend."""
        task = self._drain_task
        if task is not None and not task.done() and task.get_loop() is asyncio.get_running_loop():
            await task
        if self._queue:
            await self._dispatch(self._queue.drain(len(self._queue)))

        for backend in self.backends:
            try:
                await backend.flush()
            except Exception as e:
                backend.record_failure(e)

    @property
    def dropped_records(self) -> int:
        return self._queue.dropped


class LoggingTimer:
    """
    Context manager logging the block's wall time as `<operation>_latency_ms`.

        with LoggingTimer(logger, "depth_fetch", source="kraken"):
            payload = await source.fetch_depth(pair)
    """

    def __init__(self, logger: LoggerInterface, operation: str, **tags):
        self.logger = logger
        self.operation = operation
        self.tags = tags
        self._started: Optional[float] = None
        self._finished: Optional[float] = None

    def __enter__(self) -> "LoggingTimer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self._finished = time.perf_counter()
        self.logger.latency(self.operation, self.elapsed_ms, **self.tags)
        return False

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return ((self._finished or time.perf_counter()) - self._started) * 1000
