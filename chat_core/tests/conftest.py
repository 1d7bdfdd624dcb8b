import logging
from contextlib import contextmanager

import pytest

from chat_core.infrastructure.telemetry import OperationScope


class RecordingTelemetry:
    def __init__(self):
        self.operations = []
        self.dependencies = []
        self.events = []
        self.exceptions = []
        self.traces = []
        self.properties = {}

    @contextmanager
    def start_operation(self, name, operation_type="Custom"):
        scope = OperationScope(name=name, operation_type=operation_type)
        self.operations.append(scope)
        try:
            yield scope
        except BaseException:
            scope.success = False
            raise

    def set_property(self, key, value):
        self.properties[key] = value

    def track_dependency(self, span):
        self.dependencies.append(span)

    def track_event(self, name, properties=None):
        self.events.append((name, dict(properties or {})))

    def track_exception(self, error, properties=None):
        self.exceptions.append((error, dict(properties or {})))

    def track_trace(self, message, level=logging.INFO, properties=None):
        self.traces.append((message, level, dict(properties or {})))

    def event_names(self):
        return [name for name, _ in self.events]


class RecordingChannel:
    def __init__(self, fail=False):
        self.pushed = []
        self.fail = fail

    async def push(self, user, text):
        if self.fail:
            raise ConnectionError("socket closed")
        self.pushed.append((user, text))

    @property
    def texts(self):
        return [text for _, text in self.pushed]


@pytest.fixture
def telemetry():
    return RecordingTelemetry()


@pytest.fixture
def channel():
    return RecordingChannel()
