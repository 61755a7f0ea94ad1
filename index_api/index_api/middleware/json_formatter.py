"""Single-line JSON log formatter.

Enabled with ``API_STRUCTURED_LOGGING=true``; the application then swaps
the root handlers for a ``StreamHandler`` using this formatter.

Output schema per line::

    {
        "timestamp": "2025-09-01T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "index_api.access",
        "message": "POST /api/v1/index/run/abc -> 200",
        "request": { ... },           // RequestLoggingMiddleware only
        "execution_id": "...",        // indexing log lines that carry one
        "exc_info": "Traceback ..."   // exceptions only
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

# Record attributes copied verbatim into the payload when set via ``extra``.
_PASSTHROUGH_FIELDS: tuple[str, ...] = ("request", "execution_id", "manager_id", "gameweek")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _PASSTHROUGH_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)
