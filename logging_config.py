import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(module)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Structured fields passed as ``extra={"context": {...}}`` (controller,
    application, counts) are merged into the top level of the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            entry.update(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Configure the root logger once.

    ``level`` and ``fmt`` fall back to ``LOG_LEVEL`` (default INFO) and
    ``LOG_FORMAT`` (``TEXT`` or ``JSON``, default TEXT).
    """
    root = logging.getLogger()
    if root.handlers:
        return root

    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    fmt_name = (fmt or os.environ.get("LOG_FORMAT") or "TEXT").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if fmt_name == "JSON":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return root
