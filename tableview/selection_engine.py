"""選取與拖曳選取狀態機

所有輸入事件都經由 ``transition`` 處理；選取集合只包含可見的儲存格，
合併群組以其錨點代表。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Set, Tuple, Union

from .enums import SelectionState
from .grid_model import CellId, GridModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Click:
    cell: CellId
    ctrl: bool = False


@dataclass(frozen=True)
class PointerDown:
    cell: CellId
    shift: bool = False
    onInput: bool = False


@dataclass(frozen=True)
class PointerEnter:
    cell: CellId


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class ClearSelection:
    pass


SelectionEvent = Union[Click, PointerDown, PointerEnter, PointerUp, SelectAll, ClearSelection]


class SelectionEngine:
    """選取狀態機

    狀態：
    - IDLE: 無選取
    - ACTIVE: 有選取，未拖曳
    - DRAGGING: 按住滑鼠拖曳中
    """

    def __init__(self, model: GridModel) -> None:
        self.model = model
        self.state = SelectionState.IDLE
        self._selection: Set[CellId] = set()
        self.dragAnchor: Optional[CellId] = None
        self._preSelection: Set[CellId] = set()

    @property
    def selection(self) -> FrozenSet[CellId]:
        return frozenset(self._selection)

    @property
    def preSelection(self) -> FrozenSet[CellId]:
        return frozenset(self._preSelection)

    @property
    def isDragging(self) -> bool:
        return self.state is SelectionState.DRAGGING

    # ------------------------------------------------------------------
    # 事件入口
    # ------------------------------------------------------------------
    def transition(self, event: SelectionEvent) -> SelectionState:
        """處理單一輸入事件並回傳新狀態。"""
        if isinstance(event, Click):
            self._onClick(self._visible(event.cell), event.ctrl)
        elif isinstance(event, PointerDown):
            if not event.onInput:
                self._onPointerDown(self._visible(event.cell), event.shift)
        elif isinstance(event, PointerEnter):
            if self.state is SelectionState.DRAGGING:
                self._onPointerEnter(self._visible(event.cell))
        elif isinstance(event, PointerUp):
            if self.state is SelectionState.DRAGGING:
                self._endDrag()
        elif isinstance(event, SelectAll):
            self._endDragState()
            self._selection = set(self.model.visibleCellIds())
            self.state = SelectionState.ACTIVE if self._selection else SelectionState.IDLE
        elif isinstance(event, ClearSelection):
            self._endDragState()
            self._selection = set()
            self.state = SelectionState.IDLE
        else:
            raise TypeError(f"未知的選取事件: {event!r}")
        return self.state

    def click(self, row: int, col: int, ctrl: bool = False) -> SelectionState:
        return self.transition(Click(CellId(row, col), ctrl))

    def pointerDown(self, row: int, col: int, shift: bool = False, onInput: bool = False) -> SelectionState:
        return self.transition(PointerDown(CellId(row, col), shift, onInput))

    def pointerEnter(self, row: int, col: int) -> SelectionState:
        return self.transition(PointerEnter(CellId(row, col)))

    def pointerUp(self) -> SelectionState:
        return self.transition(PointerUp())

    def selectAll(self) -> SelectionState:
        return self.transition(SelectAll())

    def clear(self) -> SelectionState:
        return self.transition(ClearSelection())

    # ------------------------------------------------------------------
    # 外部設定
    # ------------------------------------------------------------------
    def setSelection(self, cells: Iterable[Tuple[int, int]]) -> SelectionState:
        """直接指定選取（例如合併後只保留錨點）。"""
        self._endDragState()
        self._selection = {self._visible(CellId(*c)) for c in cells}
        self.state = SelectionState.ACTIVE if self._selection else SelectionState.IDLE
        return self.state

    def pruneHidden(self) -> bool:
        """移除已不存在或已被隱藏的儲存格，回傳選取是否有變動。"""
        before = len(self._selection)
        if not self.model.hasTable:
            self._selection.clear()
        else:
            table = self.model.table
            self._selection = {
                c for c in self._selection
                if table.contains(c.row, c.col) and not table.cell(c.row, c.col).isHidden
            }
        if not self._selection and self.state is SelectionState.ACTIVE:
            self.state = SelectionState.IDLE
        return len(self._selection) != before

    def rectangle(self, start: CellId, end: CellId) -> Set[CellId]:
        """回傳兩角之間所有可見儲存格，計算量與矩形面積成正比。"""
        table = self.model.table
        minRow, maxRow = sorted((start.row, end.row))
        minCol, maxCol = sorted((start.col, end.col))
        result: Set[CellId] = set()
        for r in range(minRow, maxRow + 1):
            for c in range(minCol, maxCol + 1):
                if not table.cell(r, c).isHidden:
                    result.add(CellId(r, c))
        return result

    # ------------------------------------------------------------------
    # 內部轉換
    # ------------------------------------------------------------------
    def _visible(self, cell: CellId) -> CellId:
        return self.model.table.anchorOf(cell.row, cell.col).cellId

    def _onClick(self, cell: CellId, ctrl: bool) -> None:
        if self.state is SelectionState.DRAGGING:
            # 拖曳中的點擊忽略
            return
        if self.state is SelectionState.IDLE:
            self._selection = {cell}
            self.state = SelectionState.ACTIVE
            return
        if ctrl:
            if cell in self._selection:
                # 至少保留一格
                if len(self._selection) > 1:
                    self._selection.discard(cell)
            else:
                self._selection.add(cell)
        else:
            self._selection.add(cell)

    def _onPointerDown(self, cell: CellId, shift: bool) -> None:
        self._preSelection = set(self._selection) if shift else set()
        self.dragAnchor = cell
        self._selection = self._preSelection | {cell}
        self.state = SelectionState.DRAGGING

    def _onPointerEnter(self, cell: CellId) -> None:
        if self.dragAnchor is None:
            return
        # 每次完整重算，確保反向拖曳時結果正確
        self._selection = self._preSelection | self.rectangle(self.dragAnchor, cell)

    def _endDrag(self) -> None:
        self._endDragState()
        self.state = SelectionState.ACTIVE if self._selection else SelectionState.IDLE
        logger.debug("拖曳選取完成，共 %d 格", len(self._selection))

    def _endDragState(self) -> None:
        self._preSelection = set()
        self.dragAnchor = None


__all__ = [
    "SelectionEngine",
    "SelectionEvent",
    "Click",
    "PointerDown",
    "PointerEnter",
    "PointerUp",
    "SelectAll",
    "ClearSelection",
]
