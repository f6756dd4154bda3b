"""Structured logging helpers shared across BinBuild components."""

from __future__ import annotations

import gzip
import json
import logging
import sys
import uuid
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional

from .settings import get_settings

__all__ = [
    "CorrelationAdapter",
    "JSONFormatter",
    "generate_correlation_id",
    "mask_sensitive_data",
    "setup_logging",
]

LOGGER_NAME = "BinBuild"

_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "token", "secret", "password"}
_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Return a copy of ``payload`` with credential-like fields masked.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """

    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def generate_correlation_id() -> str:
    """Create a twelve character identifier linking the log entries of one build."""

    return uuid.uuid4().hex[:12]


class CorrelationAdapter(logging.LoggerAdapter):
    """Logger adapter that merges per-call ``extra`` fields with its own context."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "stage": getattr(record, "stage", None),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key in payload:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def _compress_old_log(path: Path) -> None:
    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Compress stale ``.jsonl`` logs and delete expired archives."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
            actions.append(f"Compressed {file.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    *,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    retention_days: int = 30,
    max_log_size_mb: int = 100,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``BinBuild`` logger with a console handler and JSON log files.

    ``level`` and ``log_dir`` default to ``BINBUILD_LOG_LEVEL`` and
    ``BINBUILD_LOG_DIR``.  File logging is only enabled when a directory is
    known.  Handlers installed by a previous call are replaced.
    """

    settings = get_settings()
    resolved_level = level or settings.log_level
    resolved_dir = log_dir or settings.log_dir

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_binbuild_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                stream = getattr(handler, "stream", None)
                if stream in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._binbuild_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if resolved_dir is not None:
        resolved_dir = Path(resolved_dir)
        resolved_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_logs(resolved_dir, retention_days)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            resolved_dir / f"binbuild-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._binbuild_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
