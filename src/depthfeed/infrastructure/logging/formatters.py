"""
Line formats shared by the console and file backends.

Text lines read `<timestamp> <LEVEL> <logger>: <message> | key=value, ...`,
with metrics rendered as `METRIC <logger>: <name>=<value>`. JSON lines are
one msgspec-encoded object per record.
"""

from typing import Any, List, Optional, Tuple

import msgspec

from .interfaces import LogRecord

_json_encoder = msgspec.json.Encoder(enc_hook=str)


def record_tags(record: LogRecord, include_context: bool = True) -> List[Tuple[str, Any]]:
    tags = [(key, getattr(record, key)) for key in ("source", "pair", "correlation_id")
            if getattr(record, key) is not None]
    if record.is_metric:
        tags.extend((record.metric_tags or {}).items())
    elif include_context:
        tags.extend(record.context.items())
    return tags


def format_text(record: LogRecord, timestamp: str, level_label: Optional[str] = None,
                include_context: bool = True, max_message_length: Optional[int] = None) -> str:
    if record.is_metric:
        line = f"{timestamp} METRIC {record.logger_name}: {record.metric_name}={record.metric_value}"
    else:
        message = record.message
        if max_message_length is not None and len(message) > max_message_length:
            message = message[:max_message_length] + "..."
        label = level_label if level_label is not None else record.level.name
        line = f"{timestamp} {label} {record.logger_name}: {message}"

    tags = record_tags(record, include_context)
    if tags:
        line += " | " + ", ".join(f"{key}={value}" for key, value in tags)
    return line


def format_json(record: LogRecord) -> str:
    data = {
        "timestamp": record.timestamp,
        "level": record.level.name,
        "type": record.log_type.name,
        "logger": record.logger_name,
        "message": record.message,
    }
    for key in ("source", "pair", "correlation_id"):
        value = getattr(record, key)
        if value is not None:
            data[key] = value
    if record.context:
        data["context"] = record.context
    if record.is_metric:
        data["metric"] = {"name": record.metric_name, "value": record.metric_value, "tags": record.metric_tags}
    return _json_encoder.encode(data).decode()
