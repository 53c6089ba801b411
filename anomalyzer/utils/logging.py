from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields land at the top level.

    numpy scalars and other non-JSON values are rendered with ``str``.
    """

    # attributes every LogRecord carries on this interpreter
    standard_fields = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(
            {k: v for k, v in vars(record).items() if k not in self.standard_fields}
        )
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "WARNING", stream: Optional[Any] = None) -> None:
    """Route every record through one JSON handler.

    Logs go to stderr by default so CLI output on stdout stays parseable.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
