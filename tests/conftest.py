from pathlib import Path

import pytest

from igor_automation.sinks import Sink
from igor_automation.types import BackendType


class RecordingSink(Sink):
    """Sink that records every call instead of touching the filesystem."""

    def __init__(self, requires=(BackendType.TEXT,), check_result: bool = True):
        self._requires = list(requires)
        self.check_result = check_result
        self.calls: list[tuple] = []

    def requires(self):
        return list(self._requires)

    def emit(self, backend, data, ctx):
        self.calls.append(("emit", backend, data))
        return True, "emitted"

    def check(self, backend, data, ctx):
        self.calls.append(("check", backend, data))
        return self.check_result

    def diff(self, backend, data, ctx, *, filename_a=None, mtime_a=None):
        self.calls.append(("diff", backend, data, filename_a, mtime_a))
        return f"--- {filename_a}\n+++ recording\n{data}"

    def stringify(self) -> str:
        return "recording"

    def path(self) -> Path:
        return Path("/dev/null")


@pytest.fixture
def recording_sink():
    def _build(requires=(BackendType.TEXT,), check_result: bool = True) -> RecordingSink:
        return RecordingSink(requires, check_result=check_result)

    return _build
