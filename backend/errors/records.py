"""
ErrorRecord: the immutable, self-describing unit of failure.

Rules:
- A new ErrorRecord is produced on every failure; records are never mutated.
- make_error_record() is the only constructor used outside tests.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from errors.kinds import ErrorDetail, ErrorKind
from errors.messages import describe


@dataclass(frozen=True)
class ErrorRecord:
    """One classified failure, with its static user guidance."""

    kind: ErrorKind
    retryable: bool
    user_message: str
    suggestions: tuple[str, ...]
    occurred_at_ms: int
    detail: ErrorDetail
    error_code: str
    technical_message: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe view used by logging and the UI bridge."""
        return {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "user_message": self.user_message,
            "suggestions": list(self.suggestions),
            "occurred_at_ms": self.occurred_at_ms,
            "error_code": self.error_code,
            "technical_message": self.technical_message,
            "detail": {
                k: (v.value if isinstance(v, Enum) else v)
                for k, v in asdict(self.detail).items()
            },
        }


def make_error_record(detail: ErrorDetail, *, ts_ms: int) -> ErrorRecord:
    """Build an ErrorRecord from a kind-specific detail."""
    d = describe(detail)
    return ErrorRecord(
        kind=detail.kind,
        retryable=d.retryable,
        user_message=d.user_message,
        suggestions=d.suggestions,
        occurred_at_ms=ts_ms,
        detail=detail,
        error_code=d.error_code,
        technical_message=d.technical_message,
    )
