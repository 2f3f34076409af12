"""
Logging Configuration

One-line structured log records for ingestion and matching runs. Records may
carry a ``context`` mapping (via ``extra``) that is appended as sorted
``key=value`` pairs, e.g. the source row of a skipped transaction.

Levels come from LOG_LEVEL; KRYPTOGAIN_LOG_FILE adds a file handler.
"""

import logging
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional


class StructuredFormatter(logging.Formatter):
    """
    Format: [TIMESTAMP] [LEVEL] [MODULE:FUNCTION:LINE] MESSAGE key=value ...
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        location = f"{record.module}:{record.funcName}:{record.lineno}"

        line = f"[{timestamp}] [{record.levelname:8s}] [{location}] {record.getMessage()}"

        context = getattr(record, 'context', None)
        if isinstance(context, Mapping) and context:
            line += " " + " ".join(f"{key}={context[key]}" for key in sorted(context))

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"

        return line


class PerformanceLogger:
    """
    Times a block and logs its duration, plus throughput when an item
    count is known. Exceeding threshold_ms logs a SLOW warning.
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        threshold_ms: float = 1000,
        items: Optional[int] = None
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.items = items
        self.duration_ms = None
        self._started = None

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self._started) * 1000

        context = {'duration_ms': f"{self.duration_ms:.1f}"}
        if self.items is not None:
            context['items'] = self.items
            if self.duration_ms > 0:
                context['per_sec'] = f"{self.items / (self.duration_ms / 1000):.0f}"

        if exc_type is not None:
            self.logger.warning(f"{self.operation} failed", extra={'context': context})
        elif self.duration_ms > self.threshold_ms:
            self.logger.warning(f"SLOW: {self.operation}", extra={'context': context})
        else:
            self.logger.debug(self.operation, extra={'context': context})

        return False


def _attach(logger: logging.Logger, handler: logging.Handler, level: int):
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Get a logger with structured stdout output (and a file, if configured).

    Calling it again for the same name returns the configured logger
    without adding handlers.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, (level or os.getenv('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logger.setLevel(log_level)

    _attach(logger, logging.StreamHandler(sys.stdout), log_level)

    log_file = log_file or os.getenv('KRYPTOGAIN_LOG_FILE')
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(path, encoding='utf-8'), log_level)

    logger.propagate = False
    return logger


def get_perf_logger(
    logger: logging.Logger,
    operation: str,
    threshold_ms: float = 1000,
    items: Optional[int] = None
) -> PerformanceLogger:
    """
    Usage:
        with get_perf_logger(logger, "FIFO match", threshold_ms=500, items=len(records)):
            result = matcher.run(records)
    """
    return PerformanceLogger(logger, operation, threshold_ms, items)
