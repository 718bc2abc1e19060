"""Log setup for the Lumi service.

LUMI_LOG_FORMAT selects "text" (default) or "json". Both formats carry the
``lumi_*`` extras (phase, goal id, action, transport) attached by the
orchestrator so that every state mutation can be traced per turn.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

from .config import Config

EXTRA_PREFIX = "lumi_"
# Client libraries that log every upstream request at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore")


def lumi_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key.startswith(EXTRA_PREFIX)}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = "".join(traceback.format_exception(*record.exc_info))
        log_entry.update(lumi_extras(record))
        # Model replies and task labels are often Chinese; keep them readable.
        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Plain lines with the turn extras appended as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = lumi_extras(record)
        if not extras:
            return line
        pairs = " ".join(f"{key[len(EXTRA_PREFIX):]}={value}" for key, value in sorted(extras.items()))
        return f"{line} [{pairs}]"


def setup_logging(config: Config) -> None:
    root = logging.getLogger()
    root.setLevel(config.log_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(config.log_level)
    handler.setFormatter(JSONFormatter() if config.log_format == "json" else TextFormatter())
    root.addHandler(handler)

    if root.getEffectiveLevel() > logging.DEBUG:
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
