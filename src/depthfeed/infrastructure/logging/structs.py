"""
Logging configuration.

All settings are frozen msgspec structs so the `logging` section of
config.yaml converts straight into them. Defaults per environment live in
LoggingConfig.for_environment().
"""

from typing import Any, Dict, List, Optional

import msgspec
from msgspec import Struct

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ENVIRONMENTS = ("dev", "prod", "test")


def _check_level(owner: str, level: str) -> None:
    if level.upper() not in LEVEL_NAMES:
        raise ValueError(f"{owner}: unknown log level {level!r}, expected one of {', '.join(LEVEL_NAMES)}")


def _check_positive(owner: str, name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{owner}: {name} must be positive, got {value}")


class ConsoleBackendConfig(Struct, frozen=True):
    """Line output on stderr. Metric records are skipped unless include_metrics is set."""
    enabled: bool = True
    min_level: str = "INFO"
    color: bool = True
    include_context: bool = True
    include_metrics: bool = False
    max_message_length: int = 1000

    def validate(self) -> None:
        _check_level("console", self.min_level)
        _check_positive("console", "max_message_length", self.max_message_length)


class FileBackendConfig(Struct, frozen=True):
    """
    Append-only log file with size based rotation.

    Lines are written in batches of `buffer_size`, or sooner once
    `flush_interval` seconds have passed or an ERROR arrives.
    """
    enabled: bool = True
    min_level: str = "INFO"
    path: str = "logs/depthfeed.log"
    format: str = "text"
    max_size_mb: float = 50
    backup_count: int = 5
    buffer_size: int = 256
    flush_interval: float = 1.0

    def validate(self) -> None:
        _check_level("file", self.min_level)
        if self.format not in ("text", "json"):
            raise ValueError(f"file: format must be 'text' or 'json', got {self.format!r}")
        _check_positive("file", "max_size_mb", self.max_size_mb)
        _check_positive("file", "buffer_size", self.buffer_size)
        if self.backup_count < 0:
            raise ValueError(f"file: backup_count cannot be negative, got {self.backup_count}")

    @property
    def max_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


class DispatchConfig(Struct, frozen=True):
    """Pending record queue of a logger and how many records one drain step hands out."""
    queue_size: int = 10000
    batch_size: int = 50

    def validate(self) -> None:
        _check_positive("dispatch", "queue_size", self.queue_size)
        _check_positive("dispatch", "batch_size", self.batch_size)


class RouterConfig(Struct, frozen=True):
    """Backend names per record type. None means console and file for text, file for metrics."""
    default_backends: Optional[List[str]] = None
    metric_backends: Optional[List[str]] = None

    def get_default_backends(self) -> List[str]:
        return ["console", "file"] if self.default_backends is None else list(self.default_backends)

    def get_metric_backends(self) -> List[str]:
        return ["file"] if self.metric_backends is None else list(self.metric_backends)


class LoggingConfig(Struct, frozen=True):
    """
    Complete logging configuration.

    A backend section left out (None) disables that backend. `propagate`
    mirrors WARNING and above into stdlib `logging` under the logger name.
    """
    environment: str = "dev"
    console: Optional[ConsoleBackendConfig] = None
    file: Optional[FileBackendConfig] = None
    dispatch: Optional[DispatchConfig] = None
    router: Optional[RouterConfig] = None
    default_context: Optional[Dict[str, Any]] = None
    propagate: bool = False

    def validate(self) -> None:
        if self.environment not in ENVIRONMENTS:
            raise ValueError(f"Invalid environment {self.environment!r}, expected one of {', '.join(ENVIRONMENTS)}")
        for section in (self.console, self.file, self.dispatch):
            if section is not None:
                section.validate()

    def get_enabled_backends(self) -> List[str]:
        sections = (("console", self.console), ("file", self.file))
        return [name for name, section in sections if section is not None and section.enabled]

    def to_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        """Build from a plain mapping such as the `logging` section of config.yaml."""
        return msgspec.convert(data, type=cls)

    @classmethod
    def for_environment(cls, environment: str) -> "LoggingConfig":
        """
        Built-in defaults.

        dev: DEBUG colored console plus a text file.
        prod: WARNING console plus a JSON file with larger rotation.
        test: WARNING console only, so test runs leave no files behind.
        """
        environment = environment.lower()
        if environment == "prod":
            return cls(
                environment="prod",
                console=ConsoleBackendConfig(min_level="WARNING", color=False),
                file=FileBackendConfig(format="json", max_size_mb=200, backup_count=10),
                dispatch=DispatchConfig(queue_size=50000, batch_size=100),
                router=RouterConfig(),
            )
        if environment == "test":
            return cls(
                environment="test",
                console=ConsoleBackendConfig(min_level="WARNING", color=False),
                dispatch=DispatchConfig(queue_size=1000, batch_size=10),
                router=RouterConfig(default_backends=["console"], metric_backends=[]),
            )
        return cls(
            environment="dev",
            console=ConsoleBackendConfig(min_level="DEBUG"),
            file=FileBackendConfig(path="logs/dev.log"),
            dispatch=DispatchConfig(),
            router=RouterConfig(),
        )
