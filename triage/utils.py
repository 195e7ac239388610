"""
utils.py

Shared helpers.

Why a separate module?
- Every module logs in the same format.
- Small parsing helpers live in one place.
"""

import json
import logging
import os


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "request_id"):
            payload["request_id"] = getattr(record, "request_id")
        if hasattr(record, "stage"):
            payload["stage"] = getattr(record, "stage")
        return json.dumps(payload, ensure_ascii=False)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Build a logger.

    Why the handler check?
    - Re-creating the same logger would otherwise print duplicate lines.

    LOG_LEVEL env var:
    - Accepts DEBUG, INFO, WARNING, ERROR, CRITICAL.
    - Read only when the handler is installed, never overridden per call.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        use_json = os.getenv("LOG_FORMAT", "plain").lower() == "json"
        if use_json:
            formatter = JsonLogFormatter()
        else:
            formatter = logging.Formatter(
                fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
            )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        env_level_str = os.getenv("LOG_LEVEL", "").upper()
        resolved_level = getattr(logging, env_level_str, None) or level
        logger.setLevel(resolved_level)
    return logger


def truncate(text: str, limit: int = 80) -> str:
    """Shorten ``text`` for log lines and progress messages."""
    text = " ".join(str(text).split())
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."
