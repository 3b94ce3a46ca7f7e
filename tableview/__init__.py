"""可合併儲存格的表格編輯引擎

模組結構：
- grid_model.py: 儲存格矩陣與內容編輯
- merge_manager.py: 矩形合併與解除
- selection_engine.py: 點選與拖曳選取狀態機
- persistence.py: 與宿主屬性的 JSON 同步
- controller.py: 組合以上元件的控制器
- models.py: Qt 表格模型與 DataFrame 匯出
"""

from .enums import AttributeStatus, LoadResult, SelectionState
from .errors import (
    CellOutOfRange,
    DimensionOutOfRange,
    InvalidSelectionShape,
    MalformedPayload,
    TableviewError,
)
from .grid_model import Cell, CellId, GridModel, Table, TableRow, TableStatistics
from .merge_manager import MergeManager, createMergeId
from .selection_engine import SelectionEngine
from .persistence import PersistenceBridge, parsePayload
from .attributes import ActionValue, EditableValue, TableviewProps
from .controller import TableviewController

__all__ = [
    # 資料模型
    'Cell', 'CellId', 'GridModel', 'Table', 'TableRow', 'TableStatistics',

    # 引擎
    'MergeManager', 'createMergeId', 'SelectionEngine',
    'PersistenceBridge', 'parsePayload', 'TableviewController',

    # 宿主綁定
    'ActionValue', 'EditableValue', 'TableviewProps',

    # 枚舉
    'AttributeStatus', 'LoadResult', 'SelectionState',

    # 例外
    'TableviewError', 'DimensionOutOfRange', 'InvalidSelectionShape', 'MalformedPayload',
    'CellOutOfRange',
]
