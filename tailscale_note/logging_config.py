import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class SecretScrubberFilter(logging.Filter):
    """Mask API tokens in log messages."""

    SECRET_PATTERNS = (
        (re.compile(r"(token|authToken|password|secret)=([^\s,]+)", re.IGNORECASE), r"\1=***"),
        (re.compile(r"(Bearer\s+)([^\s'\",}]+)", re.IGNORECASE), r"\1***"),
        (re.compile(r"tskey-[A-Za-z0-9-]+"), "tskey-***"),
    )

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True

        cleaned = message
        for pattern, replacement in self.SECRET_PATTERNS:
            cleaned = pattern.sub(replacement, cleaned)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(SecretScrubberFilter())
    return handler


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """Route all records to stdout, plus a per-run log file when log_dir is set.

    Calling it again replaces the previous handlers. A log_dir that cannot
    be created or written leaves console logging in place.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(sys.stdout)))

    if not log_dir:
        return

    log_file = Path(log_dir) / f"tailscale-note_{datetime.now():%Y-%m-%d__%H_%M_%S}.log"
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(log_file, mode="w", encoding="utf-8")))
    except OSError as exc:
        root.error("Console-only logging; cannot write %s: %s", log_file, exc)
        return
    root.info("Logging to file: %s", log_file)
