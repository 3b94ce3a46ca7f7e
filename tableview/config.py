"""元件設定讀取"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict

from .grid_model import MAX_DIMENSION, MIN_DIMENSION

logger = logging.getLogger(__name__)


@dataclass
class TableviewConfig:
    """表格元件設定"""
    defaultRows: int = 3
    defaultColumns: int = 3
    autoSave: bool = True
    initialLoadGraceMs: int = 500
    writeEchoReleaseMs: int = 100


def clampDimension(value: Any, fallback: int) -> int:
    """將維度限制在 1 至 100，無法轉換時回傳 ``fallback``。"""
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return fallback
    return max(MIN_DIMENSION, min(MAX_DIMENSION, number))


def _delay(value: Any, fallback: int) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return fallback


def configFromDict(data: Dict[str, Any]) -> TableviewConfig:
    defaults = TableviewConfig()
    return TableviewConfig(
        defaultRows=clampDimension(data.get("defaultRows", defaults.defaultRows), defaults.defaultRows),
        defaultColumns=clampDimension(
            data.get("defaultColumns", defaults.defaultColumns), defaults.defaultColumns
        ),
        autoSave=bool(data.get("autoSave", defaults.autoSave)),
        initialLoadGraceMs=_delay(data.get("initialLoadGraceMs"), defaults.initialLoadGraceMs),
        writeEchoReleaseMs=_delay(data.get("writeEchoReleaseMs"), defaults.writeEchoReleaseMs),
    )


def loadConfig(path: str = "config.json") -> TableviewConfig:
    """讀取設定檔，檔案不存在或格式錯誤時使用預設值。

    Args:
        path: 設定檔路徑。

    Returns:
        TableviewConfig: 設定內容。
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.debug("無法讀取設定檔 %s，使用預設值: %s", path, exc)
        return TableviewConfig()
    if not isinstance(data, dict):
        logger.warning("設定檔 %s 不是 JSON 物件，使用預設值", path)
        return TableviewConfig()
    return configFromDict(data.get("tableview", data))


__all__ = ["TableviewConfig", "loadConfig", "configFromDict", "clampDimension"]
