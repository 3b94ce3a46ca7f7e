"""表格元件控制器

組合資料模型、合併管理、選取狀態機與外部同步，對應使用者操作與宿主
屬性的進出。
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Tuple

from PyQt5.QtCore import QObject, pyqtSignal

from .attributes import EditableValue, TableviewProps, isAvailable
from .config import TableviewConfig, clampDimension
from .enums import LoadResult, SelectionState
from .errors import TableviewError
from .grid_model import CellId, GridModel, TableStatistics, isoNow, validateDimension
from .merge_manager import MergeManager
from .persistence import PersistenceBridge
from .scheduler import QtScheduler
from .selection_engine import SelectionEngine

logger = logging.getLogger(__name__)


class TableviewController(QObject):
    """表格元件控制器

    建構時先同步嘗試載入外部資料，沒有有效資料才建立預設表格，
    因此不需要以計時器等待載入完成。
    """

    noticeRaised = pyqtSignal(str)
    tableChanged = pyqtSignal()
    selectionChanged = pyqtSignal()
    initialLoadFinished = pyqtSignal()

    def __init__(
        self,
        props: TableviewProps,
        config: Optional[TableviewConfig] = None,
        scheduler=None,
        clock: Callable[[], str] = isoNow,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.props = props
        self.config = config or TableviewConfig()
        self.scheduler = scheduler or QtScheduler(self)

        self.model = GridModel()
        self.mergeManager = MergeManager(self.model)
        self.selection = SelectionEngine(self.model)
        self.bridge = PersistenceBridge(
            self.model,
            props,
            self.scheduler,
            releaseDelayMs=self.config.writeEchoReleaseMs,
            clock=clock,
        )

        self.rowCountInput = self._initialDimension(props.rowCountAttribute, self.config.defaultRows)
        self.columnCountInput = self._initialDimension(
            props.columnCountAttribute, self.config.defaultColumns
        )
        self.isInitialLoad = True
        self._connections: List[Tuple[Any, Callable]] = []

        self.model.addListener(self._onModelChanged)
        self._connect(props.useAttributeData, self._onDataChanged)
        self._connect(props.rowCountAttribute, self._onRowCountChanged)
        self._connect(props.columnCountAttribute, self._onColumnCountChanged)

        data = props.useAttributeData.value if isAvailable(props.useAttributeData) else ""
        if self.bridge.load(data) is LoadResult.APPLIED:
            self._syncInputsFromModel()
        else:
            self._regenerate(self.rowCountInput, self.columnCountInput)

        self._initialLoadCall = self.scheduler.schedule(
            self.config.initialLoadGraceMs, self._finishInitialLoad
        )

    # ------------------------------------------------------------------
    # 初始化輔助
    # ------------------------------------------------------------------
    @staticmethod
    def _initialDimension(attribute: Optional[EditableValue], fallback: int) -> int:
        if isAvailable(attribute) and attribute.value:
            return clampDimension(attribute.value, fallback)
        return fallback

    def _connect(self, attribute: Optional[EditableValue], slot: Callable) -> None:
        if attribute is None:
            return
        attribute.valueChanged.connect(slot)
        self._connections.append((attribute.valueChanged, slot))

    def _finishInitialLoad(self) -> None:
        if not self.isInitialLoad:
            return
        self.isInitialLoad = False
        self.initialLoadFinished.emit()

    def _syncInputsFromModel(self) -> None:
        self.rowCountInput = self.model.rowCount
        self.columnCountInput = self.model.columnCount

    # ------------------------------------------------------------------
    # 屬性
    # ------------------------------------------------------------------
    @property
    def autoSave(self) -> bool:
        return self.props.autoSave

    @property
    def table(self):
        return self.model.table

    @property
    def selectedCells(self):
        return self.selection.selection

    @property
    def selectionState(self) -> SelectionState:
        return self.selection.state

    def statistics(self) -> TableStatistics:
        return self.model.statistics()

    # ------------------------------------------------------------------
    # 內部事件
    # ------------------------------------------------------------------
    def _onModelChanged(self, reason: str) -> None:
        # 不論是否自動儲存，統計值都要即時更新
        self.bridge.writeStatistics(self.model.statistics())
        self.tableChanged.emit()
        if self.selection.pruneHidden():
            self.selectionChanged.emit()

    def _reject(self, error: TableviewError) -> None:
        logger.info("操作被拒絕: %s", error)
        self.noticeRaised.emit(str(error))

    def _fireCellClick(self) -> None:
        action = self.props.onCellClick
        if action is not None and action.canExecute:
            action.execute()

    def _publish(self) -> None:
        self.bridge.publish()

    # ------------------------------------------------------------------
    # 宿主傳入
    # ------------------------------------------------------------------
    def _onDataChanged(self, value: Any) -> None:
        result = self.bridge.load(value if isinstance(value, str) else "")
        if result is LoadResult.APPLIED:
            self.selection.clear()
            self._syncInputsFromModel()
            self.selectionChanged.emit()

    def _onRowCountChanged(self, value: Any) -> None:
        self._applyInboundDimension("rows", value)

    def _onColumnCountChanged(self, value: Any) -> None:
        self._applyInboundDimension("columns", value)

    def _applyInboundDimension(self, kind: str, value: Any) -> None:
        if value is None:
            return
        current = self.rowCountInput if kind == "rows" else self.columnCountInput
        number = clampDimension(value, current)
        if self.bridge.isDimensionEcho(kind, number):
            return
        if number == current:
            return
        logger.debug("外部更新 %s: %d", kind, number)
        if kind == "rows":
            self.rowCountInput = number
        else:
            self.columnCountInput = number

    # ------------------------------------------------------------------
    # 表格結構
    # ------------------------------------------------------------------
    def setRowCountInput(self, value: int) -> None:
        self.rowCountInput = value

    def setColumnCountInput(self, value: int) -> None:
        self.columnCountInput = value

    def _regenerate(self, rows: int, cols: int) -> None:
        self.model.create(rows, cols)
        self._syncInputsFromModel()
        self.selection.clear()
        self.selectionChanged.emit()
        self._publish()

    def applyDimensions(self) -> bool:
        """依輸入的列數與欄數重新產生表格。"""
        try:
            rows = validateDimension(self.rowCountInput, "列數")
            cols = validateDimension(self.columnCountInput, "欄數")
        except TableviewError as exc:
            self._reject(exc)
            return False
        self._regenerate(rows, cols)
        return True

    def addRow(self) -> bool:
        try:
            self.model.addRow()
        except TableviewError as exc:
            self._reject(exc)
            return False
        self._syncInputsFromModel()
        self._publish()
        return True

    def addColumn(self) -> bool:
        try:
            self.model.addColumn()
        except TableviewError as exc:
            self._reject(exc)
            return False
        self._syncInputsFromModel()
        self._publish()
        return True

    # ------------------------------------------------------------------
    # 內容編輯
    # ------------------------------------------------------------------
    def setCellValue(self, row: int, col: int, text: str) -> bool:
        try:
            self.model.setValue(row, col, text)
        except TableviewError as exc:
            self._reject(exc)
            return False
        if self.autoSave:
            self._publish()
        self._fireCellClick()
        return True

    def toggleCheckbox(self, row: int, col: int) -> Optional[bool]:
        try:
            checked = self.model.toggleChecked(row, col)
        except TableviewError as exc:
            self._reject(exc)
            return None
        if self.autoSave:
            self._publish()
        self._fireCellClick()
        return checked

    def save(self) -> str:
        return self.bridge.publish()

    # ------------------------------------------------------------------
    # 合併
    # ------------------------------------------------------------------
    def mergeSelected(self) -> Optional[CellId]:
        """合併目前選取；成功後只保留新群組的錨點為選取。"""
        try:
            anchor = self.mergeManager.merge(self.selection.selection)
        except TableviewError as exc:
            self._reject(exc)
            return None
        self.selection.setSelection([anchor])
        self.selectionChanged.emit()
        self._publish()
        return anchor

    def unmergeSelected(self) -> int:
        """解除所有選取儲存格所屬的合併群組，回傳解除的群組數。"""
        dissolved = 0
        for cellId in sorted(self.selection.selection):
            if self.mergeManager.unmerge(cellId) is not None:
                dissolved += 1
        if dissolved:
            self._publish()
        return dissolved

    # ------------------------------------------------------------------
    # 選取
    # ------------------------------------------------------------------
    def cellClick(self, row: int, col: int, ctrl: bool = False) -> None:
        if self.selection.isDragging:
            return
        try:
            self.selection.click(row, col, ctrl)
        except TableviewError as exc:
            self._reject(exc)
            return
        self._fireCellClick()
        self.selectionChanged.emit()

    def pointerDown(self, row: int, col: int, shift: bool = False, onInput: bool = False) -> None:
        try:
            self.selection.pointerDown(row, col, shift, onInput)
        except TableviewError as exc:
            self._reject(exc)
            return
        self.selectionChanged.emit()

    def pointerEnter(self, row: int, col: int) -> None:
        if not self.selection.isDragging:
            return
        try:
            self.selection.pointerEnter(row, col)
        except TableviewError as exc:
            self._reject(exc)
            return
        self.selectionChanged.emit()

    def pointerUp(self) -> None:
        if self.selection.isDragging:
            self.selection.pointerUp()
            self.selectionChanged.emit()

    def selectAll(self) -> None:
        self.selection.selectAll()
        self.selectionChanged.emit()

    def clearSelection(self) -> None:
        self.selection.clear()
        self.selectionChanged.emit()

    # ------------------------------------------------------------------
    # 銷毀
    # ------------------------------------------------------------------
    def dispose(self) -> None:
        """取消尚未執行的延遲動作並中斷與宿主屬性的連線。"""
        if self._initialLoadCall is not None:
            self._initialLoadCall.cancel()
            self._initialLoadCall = None
        self.bridge.dispose()
        for signal, slot in self._connections:
            signal.disconnect(slot)
        self._connections.clear()
        self.model.removeListener(self._onModelChanged)


__all__ = ["TableviewController"]
