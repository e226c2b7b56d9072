# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import pytest

from errors.kinds import ErrorKind
from observability import logger, metrics
from orchestrator.enums.state import ConnectionState


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    assert json.loads(captured[0]) == payload


def test_enums_and_collections_are_serialized(captured: list[str]) -> None:
    logger.log_event({
        "event_type": "TEST",
        "state": ConnectionState.CONNECTED,
        "kinds": (ErrorKind.NETWORK, ErrorKind.CAMERA),
    })

    decoded = json.loads(captured[0])
    assert decoded["state"] == "CONNECTED"
    assert decoded["kinds"] == ["NETWORK", "CAMERA"]


def test_unserializable_event_never_raises(captured: list[str]) -> None:
    logger.log_event({"ts_ms": 7, "event_type": "TEST", "value": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 7
    assert "TEST" in decoded["original_event_repr"]


def test_configure_toggles_output(monkeypatch: pytest.MonkeyPatch) -> None:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", logger._print)  # pylint: disable=protected-access
    monkeypatch.setattr(logger, "_stdout_print", lines.append)

    logger.configure(enabled=False)
    logger.log_event({"event_type": "HIDDEN"})
    assert not lines

    logger.configure(enabled=True)
    logger.log_event({"event_type": "SHOWN"})
    assert [json.loads(line)["event_type"] for line in lines] == ["SHOWN"]


# ------------------------------------------------------------------
# Metrics
# ------------------------------------------------------------------

def test_timed_emits_one_metric(captured: list[str]) -> None:
    with metrics.timed("negotiation_latency", session_id="s1", run_id=3):
        pass

    assert len(captured) == 1
    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "METRIC_TIMER"
    assert decoded["metric"] == "negotiation_latency"
    assert decoded["outcome"] == metrics.OUTCOME_OK
    assert decoded["session_id"] == "s1"
    assert decoded["run_id"] == 3
    assert decoded["value_ms"] >= 0


def test_timed_records_error_and_reraises(captured: list[str]) -> None:
    with pytest.raises(ValueError):
        with metrics.timed("negotiation_latency"):
            raise ValueError("boom")

    assert json.loads(captured[0])["outcome"] == metrics.OUTCOME_ERROR


@pytest.mark.asyncio
async def test_timed_records_cancellation(captured: list[str]) -> None:
    async def _blocked() -> None:
        with metrics.timed("negotiation_latency"):
            await asyncio.Event().wait()

    task = asyncio.create_task(_blocked())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert json.loads(captured[0])["outcome"] == metrics.OUTCOME_CANCELLED
