import os
import sys
import time
import queue
import json
import logging
from logging.handlers import RotatingFileHandler

from flask import g, has_request_context

# Thread-safe message queue drained by /api/logs
msg_queue: queue.Queue = queue.Queue(maxsize=1000)

# Configure logging
logger = logging.getLogger("saucesearch")
logger.setLevel(logging.INFO)

# Determine log file path
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'instance')
os.makedirs(LOG_DIR, exist_ok=True)
LOG_FILE = os.path.join(LOG_DIR, 'saucesearch.log')

if not any(getattr(h, "baseFilename", None) == LOG_FILE for h in logger.handlers):
    # File Handler
    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)

    # Stream Handler (stdout)
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter('%(message)s'))  # Keep stdout clean
    logger.addHandler(stream_handler)

# Debug logging (local-only file)
DEBUG_LOGGING = os.environ.get('DEBUG_LOGGING', 'false').lower() in ('1', 'true', 'yes', 'on')
DEBUG_LOG_FILE = os.path.join(LOG_DIR, 'debug.log')

debug_logger = logging.getLogger("saucesearch.debug")
debug_logger.setLevel(logging.INFO)
debug_logger.propagate = False
if DEBUG_LOGGING and not any(getattr(h, "baseFilename", None) == DEBUG_LOG_FILE for h in debug_logger.handlers):
    debug_handler = RotatingFileHandler(DEBUG_LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=10, encoding='utf-8')
    debug_handler.setFormatter(logging.Formatter('%(message)s'))
    debug_logger.addHandler(debug_handler)
if not DEBUG_LOGGING:
    debug_logger.disabled = True


def _request_prefix() -> str:
    """Return request id prefix if available."""
    if has_request_context() and getattr(g, "request_id", None):
        return f"[{g.request_id}] "
    return ""


def log(msg: str) -> None:
    """Log a message to console, file, and message queue."""
    full = f"{_request_prefix()}{msg}"

    logger.info(full)

    timestamp = time.strftime("[%H:%M:%S]")
    try:
        msg_queue.put_nowait(f"{timestamp} {full}")
    except queue.Full:
        # Nobody is draining /api/logs; drop the oldest entry
        try:
            msg_queue.get_nowait()
            msg_queue.put_nowait(f"{timestamp} {full}")
        except (queue.Empty, queue.Full):
            pass


def debug_log_event(event: dict) -> None:
    """Write structured debug events to a local file."""
    if debug_logger.disabled:
        return
    try:
        debug_logger.info(json.dumps(event, ensure_ascii=False, separators=(',', ':')))
    except (TypeError, ValueError) as exc:
        logger.info(f"⚠️ Debug log failure: {exc}")
