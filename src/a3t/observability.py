"""Logging setup and structured resolution log records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

PACKAGE_LOGGER = "a3t"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)

_logging_enabled = True

RESOLUTION_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["key", "step", "found", "cache_hit", "logged_at"],
    "properties": {
        "key": {"type": "string"},
        "step": {
            "type": "string",
            "enum": ["cache", "db", "fs", "default", "none", "error"],
        },
        "found": {"type": "boolean"},
        "cache_hit": {"type": "boolean"},
        "result_type": {"type": ["string", "null"]},
        "result_length": {"type": ["integer", "null"], "minimum": 0},
        "context": {"type": "object"},
        "errors": {"type": "array", "items": {"type": "string"}},
        "logged_at": {"type": "string", "format": "date-time"},
    },
}

_validator = Draft7Validator(RESOLUTION_SCHEMA)


def validate_resolution(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"resolution log validation failed: {messages}")


@dataclass
class ResolutionLogRecord:
    key: str
    step: str
    found: bool
    cache_hit: bool
    result_type: Optional[str] = None
    result_length: Optional[int] = None
    context: Optional[Dict[str, Any]] = None
    errors: Optional[list] = None
    logged_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def for_result(cls, key: str, step: str, result: Any, cache_hit: bool = False,
                   context: Optional[Dict[str, Any]] = None,
                   errors: Optional[list] = None) -> "ResolutionLogRecord":
        found = result is not None
        length = len(result) if isinstance(result, (str, bytes)) else None
        return cls(
            key=key,
            step=step,
            found=found,
            cache_hit=cache_hit,
            result_type=type(result).__name__ if found else None,
            result_length=length,
            context=context,
            errors=errors,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "key": self.key,
            "step": self.step,
            "found": self.found,
            "cache_hit": self.cache_hit,
            "result_type": self.result_type,
            "result_length": self.result_length,
            "context": self.context or {},
            "errors": self.errors or [],
            "logged_at": self.logged_at,
        }
        validate_resolution(payload)
        return payload


def init_logging(enabled: bool = True, level: str = "INFO") -> logging.Logger:
    """
    Configure the ``a3t`` package logger.

    enabled=False silences every a3t logger (production switch). The root
    logger is left alone so host applications keep their own setup.
    """
    global _logging_enabled
    _logging_enabled = enabled

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if not enabled:
        # children inherit the effective level, so this silences all of a3t
        package_logger.setLevel(logging.CRITICAL + 1)
        return package_logger

    package_logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    return package_logger


def logging_enabled() -> bool:
    return _logging_enabled


def log_resolution(record: ResolutionLogRecord) -> None:
    if not _logging_enabled or not logger.isEnabledFor(logging.DEBUG):
        return
    try:
        payload = record.to_dict()
    except ValueError as e:
        logger.warning("Dropping resolution log record for %s: %s", record.key, e)
        return
    logger.debug("Asset resolution: %s %s", record.step, payload)


def log_cache(operation: str, key: str, hit: bool) -> None:
    if not _logging_enabled:
        return
    logger.debug("Cache %s key=%s hit=%s", operation, key, hit)


def log_backend(backend: str, operation: str, key: str, success: bool,
                error: Optional[BaseException] = None) -> None:
    if not _logging_enabled:
        return
    if error is not None:
        logger.warning("Backend %s: %s key=%s success=%s error=%s",
                       backend, operation, key, success, error)
    else:
        logger.debug("Backend %s: %s key=%s success=%s", backend, operation, key, success)
