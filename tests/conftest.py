import os
import sys
from pathlib import Path

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402
from PyQt5.QtCore import QCoreApplication  # noqa: E402


class ManualCall:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.done = False

    def cancel(self):
        self.done = True

    @property
    def pending(self):
        return not self.done


class ManualScheduler:
    """以手動推進時間取代 QTimer 的排程器"""

    def __init__(self):
        self.now = 0
        self.calls = []

    def schedule(self, delayMs, callback):
        call = ManualCall(self.now + delayMs, callback)
        self.calls.append(call)
        return call

    def advance(self, ms):
        self.now += ms
        for call in sorted(self.calls, key=lambda c: c.due):
            if call.pending and call.due <= self.now:
                call.done = True
                call.callback()

    @property
    def pendingCount(self):
        return sum(1 for c in self.calls if c.pending)


FIXED_TIME = "2024-01-01T00:00:00.000Z"


@pytest.fixture
def qapp():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def fixedClock():
    return lambda: FIXED_TIME
