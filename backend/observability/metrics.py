"""
Timing helpers for coordinator observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit one METRIC_TIMER event per measurement via observability.logger
- Record how the measured block ended (ok / error / cancelled)

Design notes:
- Durations use monotonic time; ts_ms uses wall-clock time
- timed() is the only entry point, so timers cannot leak
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


OUTCOME_OK = "ok"
OUTCOME_ERROR = "error"
OUTCOME_CANCELLED = "cancelled"


def _emit(
    name: str,
    duration_ms: int,
    outcome: str,
    *,
    session_id: str | None,
    run_id: int | None,
    details: dict[str, Any] | None,
) -> None:
    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "outcome": outcome,
        "session_id": session_id,
        "run_id": run_id,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    run_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the enclosed block and emit exactly one metric.

    Exceptions (including cancellation) propagate unchanged; they only
    change the recorded outcome.

    Usage:
        with timed("negotiation_latency", session_id=sid, run_id=run_id):
            await negotiate()
    """
    start_ns = time.monotonic_ns()
    outcome = OUTCOME_OK
    try:
        yield
    except asyncio.CancelledError:
        outcome = OUTCOME_CANCELLED
        raise
    except Exception:
        outcome = OUTCOME_ERROR
        raise
    finally:
        _emit(
            name,
            (time.monotonic_ns() - start_ns) // 1_000_000,
            outcome,
            session_id=session_id,
            run_id=run_id,
            details=details,
        )
