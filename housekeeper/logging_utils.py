"""JSON logging split across the standard streams.

DEBUG and INFO records go to stdout, WARNING and above to stderr, one JSON
object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from .request_context import get_request_id

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "request_id", "taskName"}

_HANDLER_MARK = "_housekeeper_handler"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # An explicit extra={"request_id": ...} wins over the context.
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id()
        return True


class MaxLevelFilter(logging.Filter):
    """Let through records strictly below `level`."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        for k, v in record.__dict__.items():
            if k in _RESERVED or k.startswith("_") or k in base:
                continue
            base[k] = v

        if record.exc_info:
            base["exception"] = self.formatException(record.exc_info)

        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(debug: bool = False) -> None:
    """Configure the root logger. Safe to call more than once."""
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        if getattr(h, _HANDLER_MARK, False):
            root.removeHandler(h)

    out = logging.StreamHandler(sys.stdout)
    out.addFilter(MaxLevelFilter(logging.WARNING))
    err = logging.StreamHandler(sys.stderr)
    err.setLevel(logging.WARNING)

    fmt = JsonFormatter()
    rid = RequestIdFilter()
    for h in (out, err):
        setattr(h, _HANDLER_MARK, True)
        h.setFormatter(fmt)
        h.addFilter(rid)
        root.addHandler(h)

    # Uvicorn installs its own handlers unless told otherwise; make it use ours.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
    logging.getLogger("uvicorn.access").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.INFO if debug else logging.WARNING)
