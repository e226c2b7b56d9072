"""
Bounded in-memory action log.

Responsibilities:
- Keep the most recent ACTION_LOG_MAX_ENTRIES coordinator decisions
- Derive a severity level for each reducer decision
- Support filtering by level and tag for UI display

Non-responsibilities:
- No persistence or export formatting
- No stdout output (observability.logger owns that)
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from constants import ACTION_LOG_MAX_ENTRIES


class LogLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


_WARNING_DECISIONS: frozenset[str] = frozenset({
    "connection_dropped",
    "network_loss",
    "interruption_paused",
    "recovery_declined",
    "capability_fallback",
})

_ERROR_DECISIONS: frozenset[str] = frozenset({
    "enter_failed",
    "error_reported",
})


def level_for(decision: str | None) -> LogLevel:
    """Severity of a reducer decision."""
    if decision in _ERROR_DECISIONS:
        return LogLevel.ERROR
    if decision in _WARNING_DECISIONS:
        return LogLevel.WARNING
    return LogLevel.INFO


@dataclass(frozen=True)
class ActionLogEntry:
    ts_ms: int
    level: LogLevel
    tag: str
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts_ms": self.ts_ms,
            "level": self.level.value,
            "tag": self.tag,
            "message": self.message,
            "details": dict(self.details),
        }


class ActionLog:
    """FIFO log that evicts its oldest entry once full."""

    def __init__(self, max_entries: int = ACTION_LOG_MAX_ENTRIES) -> None:
        self._entries: deque[ActionLogEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: ActionLogEntry) -> None:
        self._entries.append(entry)

    def record_decision(self, event: Mapping[str, Any]) -> ActionLogEntry:
        """Append a reducer LogEvent payload as an entry."""
        decision = event.get("decision")
        entry = ActionLogEntry(
            ts_ms=int(event.get("ts_ms") or 0),
            level=level_for(decision),
            tag=str(event.get("event_type", "UNKNOWN")),
            message=str(decision),
            details=dict(event.get("details") or {}),
        )
        self.append(entry)
        return entry

    def entries(self) -> tuple[ActionLogEntry, ...]:
        return tuple(self._entries)

    def filter(
        self,
        *,
        level: LogLevel | None = None,
        tag: str | None = None,
    ) -> tuple[ActionLogEntry, ...]:
        return tuple(
            e for e in self._entries
            if (level is None or e.level is level)
            and (tag is None or e.tag == tag)
        )

    def clear(self) -> None:
        self._entries.clear()
