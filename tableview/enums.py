from enum import Enum


class SelectionState(Enum):
    """選取狀態枚舉"""
    IDLE = "idle"
    ACTIVE = "active"
    DRAGGING = "dragging"


class AttributeStatus(Enum):
    """宿主屬性可用狀態"""
    AVAILABLE = "available"
    LOADING = "loading"
    UNAVAILABLE = "unavailable"


class LoadResult(Enum):
    """外部資料載入結果"""
    APPLIED = "applied"
    ECHO = "echo"
    EMPTY = "empty"
    MALFORMED = "malformed"
