from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, TextIO


_RESERVED_RECORD_FIELDS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_FIELDS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "message": record.getMessage(),
        }
        extras = _extract_extra_fields(record)
        if extras:
            payload["context"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        timestamp = _record_time(record).strftime("%Y-%m-%dT%H:%M:%S%z")
        message = f"{timestamp} {record.levelname} {record.name} service={self.service} message={record.getMessage()}"

        extras = _extract_extra_fields(record)
        if extras:
            message += " " + " ".join(f"{key}={value!r}" for key, value in sorted(extras.items()))
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(level: str | None = None, service: str = "storekit", stream: TextIO | None = None) -> None:
    """Install one stdout handler on the root logger.

    JSON output is used when LOG_JSON is truthy, and by default inside AWS Lambda.
    """
    env_level = level or os.getenv("STOREKIT_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    resolved_level = getattr(logging, env_level.upper(), logging.INFO)
    aws_runtime = bool(os.getenv("AWS_LAMBDA_FUNCTION_NAME"))
    use_json = parse_bool(os.getenv("LOG_JSON"), default=aws_runtime)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonFormatter(service=service) if use_json else TextFormatter(service=service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved_level)
    # botocore wire logging stays off below INFO.
    logging.getLogger("botocore").setLevel(max(resolved_level, logging.INFO))
    logging.captureWarnings(True)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def with_context(logger: logging.Logger | logging.LoggerAdapter, **context: Any) -> logging.LoggerAdapter:
    # Nested adapters keep only the innermost extra.
    if isinstance(logger, logging.LoggerAdapter):
        context = {**(logger.extra or {}), **context}
        logger = logger.logger
    return logging.LoggerAdapter(logger, extra=context)
