"""外部資料同步模組

將表格序列化為 JSON 寫入宿主屬性，並在載入外部資料時避免把自己剛寫出的
內容再套用一次。
"""

from __future__ import annotations

import json
import logging
import math
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from .attributes import TableviewProps, isAvailable
from .enums import LoadResult
from .errors import MalformedPayload
from .grid_model import (
    EMPTY_VALUE,
    MAX_DIMENSION,
    Cell,
    GridModel,
    Table,
    TableRow,
    TableStatistics,
    computeStatistics,
    isBlockedValue,
    isoNow,
)
from .merge_manager import normalizeMergeGroups
from .scheduler import ScheduledCall

logger = logging.getLogger(__name__)

DEFAULT_RELEASE_MS = 100
# 保留最近寫出的內容數量，用來辨識延遲抵達的舊回音
ECHO_HISTORY = 32


def cellToPayload(cell: Cell) -> Dict[str, Any]:
    return {
        "sequenceNumber": cell.value,
        "isBlocked": cell.isBlocked,
        "isMerged": cell.isMerged,
        "mergeId": cell.mergeId,
        "checked": cell.checked,
        "rowSpan": cell.rowSpan,
        "colSpan": cell.colSpan,
        "isHidden": cell.isHidden,
    }


def tableToPayload(table: Table) -> Dict[str, Any]:
    """將表格轉為外部資料格式的字典。"""
    metadata: Dict[str, str] = {}
    if table.createdAt:
        metadata["createdAt"] = table.createdAt
    if table.updatedAt:
        metadata["updatedAt"] = table.updatedAt
    return {
        "rows": table.rowCount,
        "columns": table.columnCount,
        "tableRows": [
            {"cells": [cellToPayload(cell) for cell in tableRow.cells]}
            for tableRow in table.rows
        ],
        "metadata": metadata,
    }


def _readDimension(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayload(f"{key} 欄位缺少或不是數字")
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        raise MalformedPayload(f"{key} 必須為正整數")
    if int(value) <= 0:
        raise MalformedPayload(f"{key} 必須為正整數")
    if int(value) > MAX_DIMENSION:
        raise MalformedPayload(f"{key} 超過上限 {MAX_DIMENSION}")
    return int(value)


def _readSpan(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 1:
        return value
    return 1


def _cellFromPayload(rowIndex: int, colIndex: int, data: Dict[str, Any]) -> Cell:
    raw = data.get("sequenceNumber")
    value = str(raw) if raw not in (None, "") else EMPTY_VALUE
    blocked = data.get("isBlocked")
    mergeId = data.get("mergeId") or ""
    if data.get("isMerged") is False:
        mergeId = ""
    return Cell(
        rowIndex=rowIndex,
        columnIndex=colIndex,
        value=value,
        isBlocked=blocked if isinstance(blocked, bool) else isBlockedValue(value),
        checked=bool(data.get("checked", False)),
        mergeId=str(mergeId),
        rowSpan=_readSpan(data.get("rowSpan")),
        colSpan=_readSpan(data.get("colSpan")),
        isHidden=bool(data.get("isHidden", False)),
    )


def parsePayload(rawText: str) -> Table:
    """解析外部資料並依陣列位置重建表格。

    資料中的索引與 id 一律忽略，改以陣列位置重新計算；缺少的選填欄位
    使用未合併、未勾選的預設值。

    Args:
        rawText: 外部 JSON 字串。

    Returns:
        Table: 重建後的表格。
    """
    try:
        data = json.loads(rawText)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedPayload(f"無法解析 JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedPayload("外部資料必須為 JSON 物件")

    rowCount = _readDimension(data, "rows")
    columnCount = _readDimension(data, "columns")
    tableRows = data.get("tableRows")
    if not isinstance(tableRows, list):
        raise MalformedPayload("缺少 tableRows 陣列")

    rows = []
    for r in range(1, rowCount + 1):
        rowData = tableRows[r - 1] if r - 1 < len(tableRows) else {}
        cellsData = rowData.get("cells") if isinstance(rowData, dict) else None
        if not isinstance(cellsData, list):
            cellsData = []
        cells = []
        for c in range(1, columnCount + 1):
            cellData = cellsData[c - 1] if c - 1 < len(cellsData) else {}
            if not isinstance(cellData, dict):
                cellData = {}
            cells.append(_cellFromPayload(r, c, cellData))
        rows.append(TableRow(rowIndex=r, cells=cells))

    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    table = Table(
        rows=rows,
        createdAt=metadata.get("createdAt"),
        updatedAt=metadata.get("updatedAt"),
    )
    normalizeMergeGroups(table)
    return table


class PersistenceBridge:
    """模型與宿主屬性之間的同步橋接

    每次寫出維度時產生新的世代代號；只有帶著最新代號的延遲呼叫
    才能解除 ``suppressInbound``，連續快速寫出時不會提早解除。

    最近寫出的內容都會記錄下來，宿主延遲送回的任何一份都視為回音，
    不會把較新的表格覆蓋回舊版本。
    """

    def __init__(
        self,
        model: GridModel,
        props: TableviewProps,
        scheduler,
        releaseDelayMs: int = DEFAULT_RELEASE_MS,
        clock: Callable[[], str] = isoNow,
    ) -> None:
        self.model = model
        self.props = props
        self.scheduler = scheduler
        self.releaseDelayMs = releaseDelayMs
        self.clock = clock

        self.lastWritten = ""
        self._recentWrites: Deque[str] = deque(maxlen=ECHO_HISTORY)
        self.lastError: Optional[MalformedPayload] = None
        self.writtenRows: Optional[int] = None
        self.writtenColumns: Optional[int] = None
        self._generation = 0
        self._suppressToken: Optional[int] = None
        self._pendingRelease: Optional[ScheduledCall] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def suppressInbound(self) -> bool:
        return self._suppressToken is not None

    # ------------------------------------------------------------------
    # 寫出
    # ------------------------------------------------------------------
    def serialize(self, table: Optional[Table] = None) -> str:
        """序列化表格並記錄為 ``lastWritten``。"""
        table = table or self.model.table
        table.updatedAt = self.clock()
        text = json.dumps(tableToPayload(table), ensure_ascii=False, separators=(",", ":"))
        self.lastWritten = text
        self._recentWrites.append(text)
        return text

    def publish(self, table: Optional[Table] = None) -> str:
        """序列化並寫入主要與鏡像屬性、維度與統計，最後觸發變更事件。"""
        table = table or self.model.table
        text = self.serialize(table)

        if isAvailable(self.props.useAttributeData):
            self.props.useAttributeData.setValue(text)
        if isAvailable(self.props.tableDataAttribute):
            self.props.tableDataAttribute.setValue(text)

        self.writeDimensions(table.rowCount, table.columnCount)
        self.writeStatistics(computeStatistics(table))

        action = self.props.onTableChange
        if action is not None and action.canExecute:
            action.execute()
        logger.debug("已寫出表格 %dx%d (世代 %d)", table.rowCount, table.columnCount, self._generation)
        return text

    def writeDimensions(self, rows: int, columns: int) -> None:
        """寫出列數與欄數，並在短時間內忽略相同數值的回音。"""
        self._generation += 1
        token = self._generation
        self._suppressToken = token
        self.writtenRows = rows
        self.writtenColumns = columns

        if isAvailable(self.props.rowCountAttribute):
            self.props.rowCountAttribute.setValue(rows)
        if isAvailable(self.props.columnCountAttribute):
            self.props.columnCountAttribute.setValue(columns)

        if self._pendingRelease is not None:
            self._pendingRelease.cancel()
        self._pendingRelease = self.scheduler.schedule(
            self.releaseDelayMs, lambda: self._releaseSuppress(token)
        )

    def writeStatistics(self, stats: TableStatistics) -> None:
        if isAvailable(self.props.totalCellsAttribute):
            self.props.totalCellsAttribute.setValue(stats.totalCells)
        if isAvailable(self.props.blockedCellsAttribute):
            self.props.blockedCellsAttribute.setValue(stats.blockedCells)
        if isAvailable(self.props.mergedCellsAttribute):
            self.props.mergedCellsAttribute.setValue(stats.mergedCells)

    def _releaseSuppress(self, token: int) -> None:
        if self._suppressToken != token:
            return
        self._suppressToken = None
        self._pendingRelease = None
        logger.debug("解除寫入回音抑制 (世代 %d)", token)

    def isDimensionEcho(self, kind: str, value: int) -> bool:
        """判斷傳入的維度是否為自己剛寫出的數值。"""
        if not self.suppressInbound:
            return False
        written = self.writtenRows if kind == "rows" else self.writtenColumns
        return written is not None and value == written

    # ------------------------------------------------------------------
    # 載入
    # ------------------------------------------------------------------
    def load(self, rawText: Optional[str]) -> LoadResult:
        """載入外部資料。

        與 ``lastWritten`` 或最近寫出過的內容相同時視為回音而忽略；格式錯誤時記錄
        日誌並保留目前表格，不會拋出例外。

        Args:
            rawText: 外部 JSON 字串。

        Returns:
            LoadResult: 載入結果。
        """
        text = rawText or ""
        if text and text == self.lastWritten:
            logger.debug("忽略自身寫出的資料回音")
            return LoadResult.ECHO
        if text and text in self._recentWrites:
            logger.debug("忽略延遲抵達的舊版自身寫出資料")
            return LoadResult.ECHO
        if not text.strip():
            return LoadResult.EMPTY

        try:
            table = parsePayload(text)
        except MalformedPayload as exc:
            self.lastError = exc
            logger.warning("外部表格資料格式錯誤，已忽略: %s", exc)
            return LoadResult.MALFORMED

        self.lastError = None
        self.model.replace(table)
        self.lastWritten = text
        self.writeDimensions(table.rowCount, table.columnCount)
        self.writeStatistics(computeStatistics(table))
        logger.info("已載入外部表格 %dx%d", table.rowCount, table.columnCount)
        return LoadResult.APPLIED

    def dispose(self) -> None:
        if self._pendingRelease is not None:
            self._pendingRelease.cancel()
            self._pendingRelease = None
        self._suppressToken = None


__all__ = ["PersistenceBridge", "parsePayload", "tableToPayload", "cellToPayload"]
