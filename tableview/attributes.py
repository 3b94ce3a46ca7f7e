"""宿主屬性綁定介面

以 Qt 信號模擬宿主平台的可編輯屬性與動作。宿主端寫入新值時同樣呼叫
``setValue``，因此本地寫入也會立即觸發 ``valueChanged``（即回音）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from .enums import AttributeStatus


class EditableValue(QObject):
    """可讀寫的宿主屬性"""

    valueChanged = pyqtSignal(object)

    def __init__(
        self,
        value: Any = None,
        status: AttributeStatus = AttributeStatus.AVAILABLE,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._value = value
        self.status = status
        self.writeCount = 0

    @property
    def isAvailable(self) -> bool:
        return self.status is AttributeStatus.AVAILABLE

    @property
    def value(self) -> Any:
        return self._value

    def setValue(self, value: Any) -> None:
        """寫入新值並發出 ``valueChanged``；不可用時忽略。"""
        if not self.isAvailable:
            return
        self._value = value
        self.writeCount += 1
        self.valueChanged.emit(value)


class ActionValue(QObject):
    """宿主動作（例如表格變更事件）"""

    executed = pyqtSignal()

    def __init__(self, canExecute: bool = True, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self.canExecute = canExecute
        self.executionCount = 0

    def execute(self) -> None:
        if not self.canExecute:
            return
        self.executionCount += 1
        self.executed.emit()


@dataclass
class TableviewProps:
    """表格元件的宿主設定"""
    useAttributeData: Optional[EditableValue] = None
    tableDataAttribute: Optional[EditableValue] = None
    rowCountAttribute: Optional[EditableValue] = None
    columnCountAttribute: Optional[EditableValue] = None
    totalCellsAttribute: Optional[EditableValue] = None
    blockedCellsAttribute: Optional[EditableValue] = None
    mergedCellsAttribute: Optional[EditableValue] = None
    onTableChange: Optional[ActionValue] = None
    onCellClick: Optional[ActionValue] = None
    autoSave: bool = True

    @classmethod
    def inMemory(cls, data: str = "", autoSave: bool = True, mirror: bool = True) -> "TableviewProps":
        """建立全部屬性皆可用的記憶體版本（CLI 與測試使用）。"""
        return cls(
            useAttributeData=EditableValue(data),
            tableDataAttribute=EditableValue("") if mirror else None,
            rowCountAttribute=EditableValue(None),
            columnCountAttribute=EditableValue(None),
            totalCellsAttribute=EditableValue(0),
            blockedCellsAttribute=EditableValue(0),
            mergedCellsAttribute=EditableValue(0),
            onTableChange=ActionValue(),
            onCellClick=ActionValue(),
            autoSave=autoSave,
        )


def isAvailable(attribute: Optional[EditableValue]) -> bool:
    return attribute is not None and attribute.isAvailable


__all__ = ["EditableValue", "ActionValue", "TableviewProps", "isAvailable"]
