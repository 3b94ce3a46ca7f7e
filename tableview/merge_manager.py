"""儲存格合併管理模組"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import InvalidSelectionShape
from .grid_model import Cell, CellId, GridModel, Table

logger = logging.getLogger(__name__)


def createMergeId(rowStart: int, colStart: int, rowEnd: int, colEnd: int) -> str:
    """依矩形四個邊界建立合併群組代號。

    以分隔符號串接，避免 ``1,12,1,3`` 與 ``1,1,2,13`` 之類的邊界產生相同代號。
    """
    return f"merge_{rowStart}_{colStart}_{rowEnd}_{colEnd}"


def boundingBox(positions: Iterable[CellId]) -> Tuple[int, int, int, int]:
    """回傳 (minRow, minCol, maxRow, maxCol)。"""
    positions = list(positions)
    rows = [p.row for p in positions]
    cols = [p.col for p in positions]
    return min(rows), min(cols), max(rows), max(cols)


def _dissolve(table: Table, mergeId: str) -> List[Cell]:
    members = table.groupMembers(mergeId)
    for member in members:
        member.clearMerge()
    return members


def _applyGroup(table: Table, mergeId: str, bounds: Tuple[int, int, int, int]) -> Cell:
    """將矩形內的儲存格設為同一群組，以左上角儲存格的狀態為準。"""
    minRow, minCol, maxRow, maxCol = bounds
    anchor = table.cell(minRow, minCol)
    value, checked, blocked = anchor.value, anchor.checked, anchor.isBlocked
    for r in range(minRow, maxRow + 1):
        for c in range(minCol, maxCol + 1):
            cell = table.cell(r, c)
            cell.value = value
            cell.checked = checked
            cell.isBlocked = blocked
            cell.mergeId = mergeId
            if cell is anchor:
                cell.rowSpan = maxRow - minRow + 1
                cell.colSpan = maxCol - minCol + 1
                cell.isHidden = False
            else:
                cell.rowSpan = 1
                cell.colSpan = 1
                cell.isHidden = True
    return anchor


def normalizeMergeGroups(table: Table) -> List[str]:
    """整理外部載入的合併群組。

    成員能構成完整矩形的群組重新設定錨點、跨距與共享狀態；
    其餘群組一律解除。

    Args:
        table: 欲整理的表格。

    Returns:
        List[str]: 被解除的群組代號。
    """
    groups: Dict[str, List[CellId]] = {}
    for cell in table.iterCells():
        if cell.mergeId:
            groups.setdefault(cell.mergeId, []).append(cell.cellId)
        else:
            cell.clearMerge()

    dissolved: List[str] = []
    for mergeId, positions in groups.items():
        minRow, minCol, maxRow, maxCol = boundingBox(positions)
        area = (maxRow - minRow + 1) * (maxCol - minCol + 1)
        if len(positions) < 2 or len(positions) != area:
            _dissolve(table, mergeId)
            dissolved.append(mergeId)
            continue
        _applyGroup(table, mergeId, (minRow, minCol, maxRow, maxCol))

    if dissolved:
        logger.warning("解除 %d 個非矩形合併群組：%s", len(dissolved), ", ".join(dissolved))
    return dissolved


class MergeManager:
    """維持合併群組為互不重疊的矩形"""

    def __init__(self, model: GridModel) -> None:
        self.model = model

    def merge(self, selection: Iterable[Tuple[int, int]]) -> CellId:
        """合併選取的矩形範圍。

        選取格數必須剛好等於外框面積。與範圍相交的既有合併群組會先
        整組解除。任何檢查失敗都不會改動表格。

        Args:
            selection: 選取的儲存格位置。

        Returns:
            CellId: 新群組的錨點位置。
        """
        table = self.model.table
        selected = {CellId(*cellId) for cellId in selection}
        if len(selected) < 2:
            raise InvalidSelectionShape("至少需要選取兩個儲存格才能合併")

        for cellId in selected:
            if not table.contains(cellId.row, cellId.col):
                raise InvalidSelectionShape(f"儲存格 ({cellId.row}, {cellId.col}) 不在表格內")

        bounds = boundingBox(selected)
        minRow, minCol, maxRow, maxCol = bounds
        area = (maxRow - minRow + 1) * (maxCol - minCol + 1)
        if len(selected) != area:
            raise InvalidSelectionShape("請選取矩形範圍以合併")

        # 檢查完成後才開始修改
        for r in range(minRow, maxRow + 1):
            for c in range(minCol, maxCol + 1):
                cell = table.cell(r, c)
                if cell.isMerged:
                    _dissolve(table, cell.mergeId)

        mergeId = createMergeId(minRow, minCol, maxRow, maxCol)
        anchor = _applyGroup(table, mergeId, bounds)
        logger.info("合併儲存格 %s (%d 格)", mergeId, area)
        self.model.notifyChanged("merge")
        return anchor.cellId

    def unmerge(self, cellId: Tuple[int, int]) -> Optional[List[CellId]]:
        """解除儲存格所屬的合併群組。

        儲存格未合併時不做任何事並回傳 ``None``。
        """
        row, col = cellId
        table = self.model.table
        target = table.cell(row, col)
        if not target.isMerged:
            return None
        mergeId = target.mergeId
        members = _dissolve(table, mergeId)
        logger.info("解除合併 %s", mergeId)
        self.model.notifyChanged("unmerge")
        return [m.cellId for m in members]


__all__ = ["MergeManager", "createMergeId", "boundingBox", "normalizeMergeGroups"]
