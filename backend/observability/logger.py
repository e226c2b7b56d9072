"""
JSONL event logger.

Rules:
- One JSON object per line, written to stdout
- No buffering, no batching
- log_event() never raises; unserializable events are replaced by a
  LOGGER_SERIALIZATION_ERROR record
"""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any, Callable, Mapping


# ------------------------------------------------------------------
# Output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _discard(line: str) -> None:
    del line


_print: Callable[[str], None] = _stdout_print


def configure(*, enabled: bool) -> None:
    """Turn JSONL output on or off for the whole process (ENABLE_JSON_LOGS)."""
    global _print  # pylint: disable=global-statement
    _print = _stdout_print if enabled else _discard


def _default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event.

    The caller supplies a fully-formed event dict (ts_ms, event_type,
    session_id, ...). Enum values are written as their value.
    """
    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"), default=_default)
    except (TypeError, ValueError) as e:
        # Logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
