# pylint: disable=missing-module-docstring,missing-function-docstring

from constants import ACTION_LOG_MAX_ENTRIES
from observability.action_log import ActionLog, LogLevel, level_for


def decision(name: str, ts_ms: int = 0, event_type: str = "START_REQUESTED") -> dict:
    return {
        "ts_ms": ts_ms,
        "event_type": event_type,
        "decision": name,
        "details": {"n": ts_ms},
    }


def test_level_for_decisions():
    assert level_for("enter_failed") is LogLevel.ERROR
    assert level_for("connection_dropped") is LogLevel.WARNING
    assert level_for("enter_connecting") is LogLevel.INFO
    assert level_for(None) is LogLevel.INFO


def test_record_decision_builds_entry():
    log = ActionLog()

    entry = log.record_decision(decision("error_reported", ts_ms=5, event_type="ERROR_REPORTED"))

    assert entry.level is LogLevel.ERROR
    assert entry.tag == "ERROR_REPORTED"
    assert entry.message == "error_reported"
    assert entry.to_dict() == {
        "ts_ms": 5,
        "level": "ERROR",
        "tag": "ERROR_REPORTED",
        "message": "error_reported",
        "details": {"n": 5},
    }


def test_log_is_bounded_and_drops_oldest():
    log = ActionLog()

    for i in range(ACTION_LOG_MAX_ENTRIES + 10):
        log.record_decision(decision("enter_connecting", ts_ms=i))

    entries = log.entries()
    assert len(log) == ACTION_LOG_MAX_ENTRIES
    assert entries[0].ts_ms == 10
    assert entries[-1].ts_ms == ACTION_LOG_MAX_ENTRIES + 9


def test_filter_by_level_and_tag():
    log = ActionLog(max_entries=10)
    log.record_decision(decision("enter_connecting"))
    log.record_decision(decision("connection_dropped", event_type="TRANSPORT_PHASE_CHANGED"))
    log.record_decision(decision("enter_failed", event_type="TRANSPORT_PHASE_CHANGED"))

    assert [e.message for e in log.filter(level=LogLevel.WARNING)] == ["connection_dropped"]
    assert len(log.filter(tag="TRANSPORT_PHASE_CHANGED")) == 2
    assert not log.filter(level=LogLevel.ERROR, tag="START_REQUESTED")

    log.clear()
    assert len(log) == 0
