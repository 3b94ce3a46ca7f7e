"""表格模型模組"""

from __future__ import annotations

import pandas as pd
from PyQt5.QtCore import QAbstractTableModel, QModelIndex, QSize, Qt

from .grid_model import Table

MergeIdRole = Qt.UserRole + 1


def toDataFrame(table: Table, includeHidden: bool = False) -> pd.DataFrame:
    """將表格內容轉為 DataFrame。

    列索引與欄名皆為 1 起算；被合併隱藏的儲存格預設輸出空字串。

    Args:
        table: 表格資料。
        includeHidden: 是否輸出隱藏儲存格的內容。

    Returns:
        pd.DataFrame: 表格內容。
    """
    data = [
        [
            cell.value if includeHidden or not cell.isHidden else ""
            for cell in tableRow.cells
        ]
        for tableRow in table.rows
    ]
    return pd.DataFrame(
        data,
        index=pd.RangeIndex(1, table.rowCount + 1),
        columns=list(range(1, table.columnCount + 1)),
    )


class GridTableModel(QAbstractTableModel):
    """用於在 Qt 檢視中顯示表格的模型"""

    def __init__(self, controller, parent=None) -> None:
        """初始化模型。

        Args:
            controller: 表格控制器，編輯會透過控制器寫回。
            parent: 父物件。
        """
        super().__init__(parent)
        self._controller = controller
        self._shape = (controller.model.rowCount, controller.model.columnCount)
        controller.tableChanged.connect(self._onTableChanged)

    def _cell(self, index):
        return self._controller.model.cell(index.row() + 1, index.column() + 1)

    def _onTableChanged(self) -> None:
        shape = (self._controller.model.rowCount, self._controller.model.columnCount)
        if shape != self._shape:
            self.beginResetModel()
            self._shape = shape
            self.endResetModel()
            return
        if shape[0] and shape[1]:
            self.dataChanged.emit(self.index(0, 0), self.index(shape[0] - 1, shape[1] - 1))

    def rowCount(self, parent=QModelIndex()):  # type: ignore[override]
        """回傳列數。"""
        if parent.isValid():
            return 0
        return self._shape[0]

    def columnCount(self, parent=QModelIndex()):  # type: ignore[override]
        """回傳欄數。"""
        if parent.isValid():
            return 0
        return self._shape[1]

    def data(self, index, role=Qt.DisplayRole):  # type: ignore[override]
        """提供儲存格內容、勾選狀態與合併代號。"""
        if not index.isValid():
            return None
        cell = self._cell(index)
        if role in (Qt.DisplayRole, Qt.EditRole):
            return "" if cell.isHidden else cell.value
        if role == Qt.CheckStateRole:
            return Qt.Checked if cell.checked else Qt.Unchecked
        if role == MergeIdRole:
            return cell.mergeId
        return None

    def setData(self, index, value, role=Qt.EditRole):  # type: ignore[override]
        if not index.isValid():
            return False
        cell = self._cell(index)
        if cell.isHidden:
            return False
        if role == Qt.EditRole:
            return self._controller.setCellValue(cell.rowIndex, cell.columnIndex, str(value))
        if role == Qt.CheckStateRole:
            wanted = value == Qt.Checked
            if wanted != cell.checked:
                self._controller.toggleCheckbox(cell.rowIndex, cell.columnIndex)
            return True
        return False

    def flags(self, index):  # type: ignore[override]
        if not index.isValid() or self._cell(index).isHidden:
            return Qt.NoItemFlags
        return (
            Qt.ItemIsEnabled
            | Qt.ItemIsSelectable
            | Qt.ItemIsEditable
            | Qt.ItemIsUserCheckable
        )

    def span(self, index):  # type: ignore[override]
        """合併錨點回傳其跨距，其餘儲存格為 1x1。"""
        if not index.isValid():
            return QSize(1, 1)
        cell = self._cell(index)
        if cell.isMergeAnchor:
            return QSize(cell.colSpan, cell.rowSpan)
        return QSize(1, 1)

    def headerData(
        self, section, orientation, role=Qt.DisplayRole
    ):  # type: ignore[override]
        """提供表頭顯示文字。"""
        if role == Qt.DisplayRole:
            return str(section + 1)
        return None


__all__ = ["GridTableModel", "toDataFrame", "MergeIdRole"]
