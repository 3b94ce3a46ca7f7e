"""表格資料模型模組

負責儲存格矩陣的建立、增列增欄與內容編輯。合併群組的建立與解除
由 ``merge_manager`` 處理，此處只保證編輯時群組成員的狀態一致。
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator, List, NamedTuple, Optional

from .errors import CellOutOfRange, DimensionOutOfRange

logger = logging.getLogger(__name__)

MIN_DIMENSION = 1
MAX_DIMENSION = 100
EMPTY_VALUE = "-"


def isoNow() -> str:
    """回傳 UTC 時間的 ISO 字串（毫秒精度，以 Z 結尾）。"""
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def isBlockedValue(value: Optional[str]) -> bool:
    """判斷儲存格內容是否代表已佔用。

    空字串與 ``"-"`` 視為未佔用，其餘內容（去除空白後）皆為佔用。

    Args:
        value: 儲存格內容。

    Returns:
        bool: 是否為佔用狀態。
    """
    text = (value or "").strip()
    return text != "" and text != EMPTY_VALUE


def validateDimension(value: int, label: str = "維度") -> int:
    """檢查列數或欄數位於 1 至 100 之間。

    Args:
        value: 欲檢查的數值。
        label: 錯誤訊息中使用的名稱。

    Returns:
        int: 通過檢查的數值。
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise DimensionOutOfRange(f"{label}必須為整數")
    if value < MIN_DIMENSION or value > MAX_DIMENSION:
        raise DimensionOutOfRange(
            f"{label}必須介於 {MIN_DIMENSION} 與 {MAX_DIMENSION} 之間"
        )
    return value


class CellId(NamedTuple):
    """儲存格識別（1-based 列、欄）"""
    row: int
    col: int

    @property
    def key(self) -> str:
        return f"cell_{self.row}_{self.col}"


@dataclass
class Cell:
    """單一儲存格"""
    rowIndex: int
    columnIndex: int
    value: str = EMPTY_VALUE
    isBlocked: bool = False
    checked: bool = False
    mergeId: str = ""
    rowSpan: int = 1
    colSpan: int = 1
    isHidden: bool = False

    @property
    def cellId(self) -> CellId:
        return CellId(self.rowIndex, self.columnIndex)

    @property
    def isMerged(self) -> bool:
        return self.mergeId != ""

    @property
    def isMergeAnchor(self) -> bool:
        return self.isMerged and not self.isHidden

    def clearMerge(self) -> None:
        """恢復為未合併狀態，保留內容。"""
        self.mergeId = ""
        self.rowSpan = 1
        self.colSpan = 1
        self.isHidden = False


@dataclass
class TableRow:
    rowIndex: int
    cells: List[Cell] = field(default_factory=list)


@dataclass(frozen=True)
class TableStatistics:
    """表格統計：總格數、佔用格數、可見的合併格數"""
    totalCells: int
    blockedCells: int
    mergedCells: int


@dataclass
class Table:
    """完整表格資料"""
    rows: List[TableRow] = field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @property
    def rowCount(self) -> int:
        return len(self.rows)

    @property
    def columnCount(self) -> int:
        return len(self.rows[0].cells) if self.rows else 0

    def contains(self, row: int, col: int) -> bool:
        return 1 <= row <= self.rowCount and 1 <= col <= self.columnCount

    def cell(self, row: int, col: int) -> Cell:
        if not self.contains(row, col):
            raise CellOutOfRange(f"儲存格 ({row}, {col}) 超出表格範圍")
        return self.rows[row - 1].cells[col - 1]

    def iterCells(self) -> Iterator[Cell]:
        for tableRow in self.rows:
            yield from tableRow.cells

    def groupMembers(self, mergeId: str) -> List[Cell]:
        """回傳指定合併群組的全部成員。"""
        if not mergeId:
            return []
        return [c for c in self.iterCells() if c.mergeId == mergeId]

    def anchorOf(self, row: int, col: int) -> Cell:
        """回傳代表該位置的可見儲存格（隱藏格回傳其群組的錨點）。"""
        target = self.cell(row, col)
        if not target.isHidden:
            return target
        for member in self.groupMembers(target.mergeId):
            if not member.isHidden:
                return member
        return target

    def copy(self) -> "Table":
        return copy.deepcopy(self)


def buildDefaultRow(rowIndex: int, columnCount: int) -> TableRow:
    """建立一列預設（未佔用）的儲存格。"""
    return TableRow(
        rowIndex=rowIndex,
        cells=[Cell(rowIndex, colIndex) for colIndex in range(1, columnCount + 1)],
    )


def computeStatistics(table: Table) -> TableStatistics:
    """計算表格統計資料。

    Args:
        table: 表格資料。

    Returns:
        TableStatistics: 總格數、佔用格數與可見合併格數。
    """
    total = 0
    blocked = 0
    merged = 0
    for cell in table.iterCells():
        total += 1
        if cell.isBlocked:
            blocked += 1
        if cell.isMergeAnchor:
            merged += 1
    return TableStatistics(total, blocked, merged)


class GridModel:
    """儲存格矩陣模型

    模型變更後會依序呼叫已註冊的監聽函式，參數為變更原因字串。
    """

    def __init__(self, table: Optional[Table] = None) -> None:
        self._table = table
        self._listeners: List[Callable[[str], None]] = []

    # ------------------------------------------------------------------
    # 監聽
    # ------------------------------------------------------------------
    def addListener(self, callback: Callable[[str], None]) -> None:
        self._listeners.append(callback)

    def removeListener(self, callback: Callable[[str], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def notifyChanged(self, reason: str) -> None:
        for callback in list(self._listeners):
            callback(reason)

    # ------------------------------------------------------------------
    # 屬性
    # ------------------------------------------------------------------
    @property
    def hasTable(self) -> bool:
        return self._table is not None

    @property
    def table(self) -> Table:
        if self._table is None:
            raise RuntimeError("表格尚未建立")
        return self._table

    @property
    def rowCount(self) -> int:
        return self._table.rowCount if self._table else 0

    @property
    def columnCount(self) -> int:
        return self._table.columnCount if self._table else 0

    def cell(self, row: int, col: int) -> Cell:
        return self.table.cell(row, col)

    def visibleCellIds(self) -> List[CellId]:
        if self._table is None:
            return []
        return [c.cellId for c in self._table.iterCells() if not c.isHidden]

    # ------------------------------------------------------------------
    # 建立與替換
    # ------------------------------------------------------------------
    def create(self, rows: int, cols: int) -> Table:
        """建立全新表格，所有儲存格皆為預設未佔用狀態。

        Args:
            rows: 列數（1-100）。
            cols: 欄數（1-100）。

        Returns:
            Table: 新建立的表格。
        """
        validateDimension(rows, "列數")
        validateDimension(cols, "欄數")
        self._table = Table(
            rows=[buildDefaultRow(r, cols) for r in range(1, rows + 1)],
            createdAt=isoNow(),
        )
        logger.debug("建立 %dx%d 表格", rows, cols)
        self.notifyChanged("create")
        return self._table

    def replace(self, table: Table) -> None:
        """以外部載入的表格整體替換目前內容。"""
        self._table = table
        self.notifyChanged("replace")

    # ------------------------------------------------------------------
    # 增列、增欄
    # ------------------------------------------------------------------
    def addRow(self) -> TableRow:
        """在表格底部新增一列，既有儲存格保持不變。"""
        table = self.table
        newRowCount = table.rowCount + 1
        if newRowCount > MAX_DIMENSION:
            raise DimensionOutOfRange(f"最多只能有 {MAX_DIMENSION} 列")
        newRow = buildDefaultRow(newRowCount, table.columnCount)
        table.rows.append(newRow)
        self.notifyChanged("addRow")
        return newRow

    def addColumn(self) -> int:
        """在表格右側新增一欄，既有儲存格保持不變。"""
        table = self.table
        newColCount = table.columnCount + 1
        if newColCount > MAX_DIMENSION:
            raise DimensionOutOfRange(f"最多只能有 {MAX_DIMENSION} 欄")
        for tableRow in table.rows:
            tableRow.cells.append(Cell(tableRow.rowIndex, newColCount))
        self.notifyChanged("addColumn")
        return newColCount

    # ------------------------------------------------------------------
    # 內容編輯
    # ------------------------------------------------------------------
    def setValue(self, row: int, col: int, text: str) -> Cell:
        """設定儲存格內容並重新計算佔用狀態。

        若儲存格屬於合併群組，內容與佔用狀態同步寫入所有成員。空字串
        以 ``"-"`` 儲存，重新載入後內容不變。

        Args:
            row: 列索引（1-based）。
            col: 欄索引（1-based）。
            text: 新內容。

        Returns:
            Cell: 被編輯的儲存格。
        """
        target = self.cell(row, col)
        text = "" if text is None else str(text)
        if text == "":
            text = EMPTY_VALUE
        blocked = isBlockedValue(text)
        members = self.table.groupMembers(target.mergeId) or [target]
        for member in members:
            member.value = text
            member.isBlocked = blocked
        self.notifyChanged("setValue")
        return target

    def setChecked(self, row: int, col: int, checked: bool) -> Cell:
        target = self.cell(row, col)
        members = self.table.groupMembers(target.mergeId) or [target]
        for member in members:
            member.checked = bool(checked)
        self.notifyChanged("setChecked")
        return target

    def toggleChecked(self, row: int, col: int) -> bool:
        """切換勾選狀態並同步至合併群組，回傳新的勾選值。"""
        newState = not self.cell(row, col).checked
        self.setChecked(row, col, newState)
        return newState

    def statistics(self) -> TableStatistics:
        if self._table is None:
            return TableStatistics(0, 0, 0)
        return computeStatistics(self._table)


__all__ = [
    "MIN_DIMENSION",
    "MAX_DIMENSION",
    "EMPTY_VALUE",
    "CellId",
    "Cell",
    "TableRow",
    "Table",
    "TableStatistics",
    "GridModel",
    "isBlockedValue",
    "isoNow",
    "validateDimension",
    "buildDefaultRow",
    "computeStatistics",
]
