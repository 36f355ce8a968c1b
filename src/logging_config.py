"""Structured logging for the checkout engine.

Log records are rendered as one JSON object per line.  Modules attach
checkout context through ``extra``: ``customer_id`` and ``receipt_id``
become top-level keys, and a dict passed as ``extra={"extra": {...}}``
is merged into the object.  The console always gets a handler; a
rotating ``checkout.log`` is added when a log directory is configured.
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime, UTC
from typing import Optional, Union

from config import load_settings

CONTEXT_FIELDS = ("customer_id", "receipt_id")


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            # flatten; never let extra overwrite the core fields
            for key, value in extra.items():
                log_record.setdefault(key, value)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(log_dir: Optional[str] = None, level: Union[int, str, None] = None) -> None:
    """Install JSON handlers on the root logger.

    Args:
        log_dir: Directory for ``checkout.log``.  ``None`` reads
            ``CHECKOUT_LOG_DIR``; an empty value logs to the console only.
        level: Logging level.  ``None`` reads ``CHECKOUT_LOG_LEVEL``.
    """
    if log_dir is None or level is None:
        settings = load_settings()
        log_dir = settings.log_dir if log_dir is None else log_dir
        level = settings.log_level if level is None else level
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    formatter = JsonFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, "checkout.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
