"""延遲動作排程

以單次 ``QTimer`` 執行延遲動作，可於元件銷毀前取消。計時器在觸發或
取消後交給 Qt 延後刪除，不會累積在父物件底下。
"""

from __future__ import annotations

from typing import Callable, List

from PyQt5.QtCore import QObject, QTimer


class ScheduledCall:
    """可取消的單次延遲呼叫"""

    def __init__(self, timer: QTimer, callback: Callable[[], None]) -> None:
        self._timer = timer
        self._released = False
        self._callback = callback
        self.done = False
        timer.timeout.connect(self._fire)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._timer.stop()
        self._timer.deleteLater()

    def _fire(self) -> None:
        if self.done:
            return
        self.done = True
        self._release()
        self._callback()

    def cancel(self) -> None:
        self.done = True
        self._release()

    @property
    def pending(self) -> bool:
        return not self.done


class QtScheduler:
    """以 QTimer 實作的排程器"""

    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent
        self._calls: List[ScheduledCall] = []

    def schedule(self, delayMs: int, callback: Callable[[], None]) -> ScheduledCall:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        call = ScheduledCall(timer, callback)
        self._calls = [c for c in self._calls if c.pending]
        self._calls.append(call)
        timer.start(max(0, int(delayMs)))
        return call

    def cancelAll(self) -> None:
        for call in self._calls:
            call.cancel()
        self._calls.clear()


__all__ = ["QtScheduler", "ScheduledCall"]
