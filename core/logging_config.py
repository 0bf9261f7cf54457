"""
core/logging_config.py
Logging for dashctl: one log context (correlation id + command) per
invocation, human-readable or JSON records on stderr, optional log file.

Environment:
  DASHCTL_LOG_FORMAT=json   JSON records instead of the text format
  DASHCTL_LOG_DIR=<dir>     also append to <dir>/dashctl.log
"""

from __future__ import annotations
import json
import logging
import os
import threading
import time
import uuid

LOG_FILE = "dashctl.log"
TEXT_FORMAT = "[%(asctime)s][%(name)s][%(levelname)s] %(message)s"

# ── Invocation context ────────────────────────────────────────────────────

_context = threading.local()


def set_correlation_id(cid: str = "", command: str = ""):
    """Start the log context of one invocation."""
    _context.cid = cid or uuid.uuid4().hex[:8]
    _context.command = command


def get_correlation_id() -> str:
    return getattr(_context, "cid", "")


def get_command() -> str:
    return getattr(_context, "command", "")


# ── Structured JSON Formatter ─────────────────────────────────────────────

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.
    Fields: ts, level, logger, msg, cid, cmd, extra, exception
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            entry["cid"] = cid
        command = get_command()
        if command:
            entry["cmd"] = command

        if hasattr(record, "extra_data"):
            entry["extra"] = record.extra_data

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


# ── Setup ─────────────────────────────────────────────────────────────────

def setup_logging(level: str = "INFO", structured: bool | None = None,
                  log_dir: str | None = None) -> logging.Logger:
    """
    Replace the root handlers for a dashctl run.
    Args:
        level: DEBUG/INFO/WARNING/ERROR, applied to every handler
        structured: JSON records; defaults to DASHCTL_LOG_FORMAT == "json"
        log_dir: where dashctl.log goes; defaults to DASHCTL_LOG_DIR
    """
    if structured is None:
        structured = os.environ.get("DASHCTL_LOG_FORMAT", "").lower() == "json"
    if log_dir is None:
        log_dir = os.environ.get("DASHCTL_LOG_DIR") or None

    numeric = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric)
    for h in root.handlers[:]:
        root.removeHandler(h)

    formatter = StructuredFormatter() if structured else \
        logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S")

    # stderr keeps stdout for command output
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, LOG_FILE),
                                            encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric)
        root.addHandler(handler)

    # httpx logs every request at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

    return root
