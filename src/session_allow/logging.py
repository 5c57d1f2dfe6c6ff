"""Logging configuration and session decision logging."""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Configuration from environment
LOG_FILE = os.environ.get("SESSION_ALLOW_LOG_FILE")
DECISIONS_FILE = os.environ.get("DECISIONS_FILE")
VERBOSE = os.environ.get("VERBOSE", "0") == "1"

# Module-level state (initialized by init_logging)
logger: logging.Logger = None
_decisions_file = None


def init_logging() -> logging.Logger:
    """Initialize logging. Returns the package logger."""
    global logger, _decisions_file

    logger = logging.getLogger("session_allow")
    logger.setLevel(logging.DEBUG if VERBOSE else logging.INFO)
    logger.propagate = False
    logger.handlers.clear()
    if LOG_FILE:
        handler = logging.FileHandler(LOG_FILE)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    logger.addHandler(handler)

    # Decision events file (JSONL format, line-buffered)
    if DECISIONS_FILE and _decisions_file is None:
        _decisions_file = open(DECISIONS_FILE, "a", buffering=1)

    return logger


def close_logging():
    """Close logging resources."""
    global _decisions_file
    if _decisions_file:
        _decisions_file.close()
        _decisions_file = None


def log_decision(**kwargs) -> None:
    """Log a session decision as JSONL (timestamp first)."""
    if not _decisions_file:
        return
    event = {"ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds")}
    event.update(kwargs)
    _decisions_file.write(json.dumps(event, separators=(",", ":")) + "\n")
