"""表格編輯器例外定義"""


class TableviewError(ValueError):
    """所有表格操作錯誤的基底類別"""


class DimensionOutOfRange(TableviewError):
    """列數或欄數超出 1 至 100 的範圍"""


class InvalidSelectionShape(TableviewError):
    """合併時選取範圍並非完整矩形"""


class MalformedPayload(TableviewError):
    """外部資料無法解析或結構不正確"""


class CellOutOfRange(TableviewError):
    """儲存格位置超出目前表格範圍"""


__all__ = [
    "TableviewError",
    "DimensionOutOfRange",
    "InvalidSelectionShape",
    "MalformedPayload",
    "CellOutOfRange",
]
