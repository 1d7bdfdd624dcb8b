import logging

import pytest

from chat_core.infrastructure.telemetry import GuardedTelemetry, LoggingTelemetryService, dependency, guarded


class BrokenTelemetry:
    def start_operation(self, name, operation_type="Custom"):
        raise RuntimeError("collector down")

    def set_property(self, key, value):
        raise RuntimeError("collector down")

    def track_dependency(self, span):
        raise RuntimeError("collector down")

    def track_event(self, name, properties=None):
        raise RuntimeError("collector down")

    def track_exception(self, error, properties=None):
        raise RuntimeError("collector down")

    def track_trace(self, message, level=logging.INFO, properties=None):
        raise RuntimeError("collector down")


def test_guarded_telemetry_never_raises():
    tele = GuardedTelemetry(BrokenTelemetry())
    with tele.start_operation("Op") as scope:
        tele.set_property("k", "v")
        tele.track_event("E")
        tele.track_trace("t")
        tele.track_exception(ValueError("x"))
        with dependency(tele, "HTTP", "GET", "target"):
            pass
    assert scope.name == "Op"


def test_guarded_telemetry_lets_business_errors_through():
    tele = GuardedTelemetry(BrokenTelemetry())
    with pytest.raises(KeyError):
        with tele.start_operation("Op"):
            raise KeyError("business")


def test_guarded_wraps_once(telemetry):
    once = guarded(telemetry)
    assert guarded(once) is once
    assert once.inner is telemetry


def test_dependency_marks_failure_and_reraises(telemetry):
    with pytest.raises(ValueError):
        with dependency(telemetry, "HTTP", "GET", "https://x"):
            raise ValueError("boom")
    span = telemetry.dependencies[0]
    assert span.success is False
    assert span.duration_ms >= 0


def test_dependency_explicit_status(telemetry):
    with dependency(telemetry, "HTTP", "GET", "https://x") as call:
        call.success = False
    assert telemetry.dependencies[0].success is False


def test_logging_telemetry_tags_records_with_operation(caplog):
    tele = LoggingTelemetryService()
    with caplog.at_level(logging.INFO, logger="chat_core"):
        with tele.start_operation("SendMessage", "SignalR.Hub") as outer:
            with tele.start_operation("Intent.Unknown", "IntentProcessing") as inner:
                tele.set_property("State", "Idle")
                tele.track_event("Hello", {"a": 1})

    assert inner.parent_id == outer.operation_id
    assert inner.properties == {"State": "Idle"}
    event = [r for r in caplog.records if r.getMessage() == "Event: Hello"][0]
    assert event.extra["operation"] == "Intent.Unknown"
    assert event.extra["event"] == "Hello"
