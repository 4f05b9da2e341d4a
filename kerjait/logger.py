"""
Structured logging for kerjait.

A named stdlib logger with a stderr handler and a daily file handler.
Keyword context is appended to each message as JSON. The logger also keeps
running ingestion counters for the current process.
"""

import json
import logging
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = logging.Formatter(
    fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
FILE_FORMAT = logging.Formatter(
    fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

INGESTION_COUNTERS = ("batches", "received", "inserted", "duplicates", "rejected")


def format_context(message: str, context: Dict[str, Any]) -> str:
    if not context:
        return message
    return f"{message} | Context: {json.dumps(context, default=str)}"


def _console_handler(level: int) -> logging.Handler:
    # stdout carries the CLI's JSON output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(CONSOLE_FORMAT)
    return handler


def _file_handler(log_dir: Path, name: str) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(FILE_FORMAT)
    return handler


class StructuredLogger:
    """Logger with JSON context and ingestion counters."""

    def __init__(
        self,
        name: str = "kerjait",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name, also the log file prefix
            level: DEBUG, INFO, WARNING, ERROR or CRITICAL
            log_dir: Directory for the daily log file (default: logs/)
            enable_file: Write DEBUG and above to the log file
            enable_console: Write `level` and above to stderr
        """
        numeric_level = getattr(logging, level.upper())
        self.logger = logging.getLogger(name)
        self.logger.setLevel(numeric_level)
        self.logger.handlers.clear()
        self.logger.propagate = False
        if enable_console:
            self.logger.addHandler(_console_handler(numeric_level))
        if enable_file:
            self.logger.addHandler(_file_handler(log_dir or Path("logs"), name))

        self.metrics = Counter(dict.fromkeys(INGESTION_COUNTERS, 0))

    def log(self, level: int, message: str, **context):
        self.logger.log(level, format_context(message, context))

    def debug(self, message: str, **context):
        self.log(logging.DEBUG, message, **context)

    def info(self, message: str, **context):
        self.log(logging.INFO, message, **context)

    def warning(self, message: str, **context):
        self.log(logging.WARNING, message, **context)

    def error(self, message: str, **context):
        self.log(logging.ERROR, message, **context)

    def critical(self, message: str, **context):
        self.log(logging.CRITICAL, message, **context)

    def record_ingestion(self, received: int, inserted: int, duplicates: int, rejected: int):
        """Add one ingested batch to the counters."""
        self.metrics.update(
            batches=1,
            received=received,
            inserted=inserted,
            duplicates=duplicates,
            rejected=rejected,
        )

    def get_metrics(self) -> Dict[str, int]:
        return {key: self.metrics[key] for key in INGESTION_COUNTERS}

    def log_metrics_summary(self):
        m = self.get_metrics()
        self.info(
            f"Ingestion session: {m['batches']} batches, {m['inserted']} inserted of "
            f"{m['received']} received ({m['duplicates']} duplicates, {m['rejected']} rejected)"
        )


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "kerjait", level: str = "INFO", **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first call.

    Arguments are only used by the first call; later calls get the same
    instance regardless of what they pass.
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)
    return _global_logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger builds a fresh one."""
    global _global_logger
    _global_logger = None
