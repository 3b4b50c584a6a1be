"""
File backend with batched aiofiles writes and size based rotation.

Rotation shifts `feed.log` to `feed.log.1`, `feed.log.1` to `feed.log.2`
and so on, keeping `backup_count` old files.
"""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import List

import aiofiles

from ..formatters import format_json, format_text
from ..interfaces import LogBackend, LogLevel, LogRecord
from ..structs import FileBackendConfig


class FileBackend(LogBackend):

    def __init__(self, config: FileBackendConfig, name: str = "file"):
        super().__init__(name, LogLevel[config.min_level.upper()], config.enabled)
        self.config = config
        self.path = Path(config.path)
        self.max_bytes = config.max_bytes

        self._pending: List[str] = []
        self._last_write = time.monotonic()
        self._lock = asyncio.Lock()
        self._size = None

        if self.enabled:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def render(self, record: LogRecord) -> str:
        if self.config.format == "json":
            return format_json(record)
        timestamp = datetime.fromtimestamp(record.timestamp).isoformat(timespec="milliseconds")
        return format_text(record, f"[{timestamp}]")

    def _due(self, record: LogRecord) -> bool:
        return (len(self._pending) >= self.config.buffer_size
                or time.monotonic() - self._last_write >= self.config.flush_interval
                or record.level >= LogLevel.ERROR)

    async def write(self, record: LogRecord) -> None:
        async with self._lock:
            self._pending.append(self.render(record))
            if self._due(record):
                await self._write_pending()

    def write_sync(self, record: LogRecord) -> None:
        data = self.render(record) + "\n"
        self._prepare()
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(data)
        self._size += len(data)

    async def flush(self) -> None:
        async with self._lock:
            await self._write_pending()

    async def _write_pending(self) -> None:
        if not self._pending:
            return
        data = "\n".join(self._pending) + "\n"
        self._pending.clear()
        self._prepare()
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(data)
        self._size += len(data)
        self._last_write = time.monotonic()

    def _prepare(self) -> None:
        """Rotate before a write when the current file has reached max_bytes."""
        if self._size is None:
            self._size = self.path.stat().st_size if self.path.exists() else 0
        if self._size > 0 and self._size >= self.max_bytes:
            self._rotate()
            self._size = 0

    def _rotate(self) -> None:
        if self.config.backup_count == 0:
            self.path.unlink(missing_ok=True)
            return
        backups = [self.path.with_name(f"{self.path.name}.{i}") for i in range(1, self.config.backup_count + 1)]
        for older, newer in zip(reversed(backups[1:]), reversed(backups[:-1])):
            if newer.exists():
                newer.replace(older)
        if self.path.exists():
            self.path.replace(backups[0])
