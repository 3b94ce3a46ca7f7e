from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_logging(*, debug: bool = False, log_path: str | None = None) -> None:
    """設定全域日誌。

    - 一律寫入 ./logs 下的輪替日誌檔（可用 TABLEVIEW_LOG_DIR 指定目錄）
    - debug 時同時輸出到主控台
    """
    level = logging.DEBUG if debug else logging.INFO

    if log_path is None:
        env_log_dir = os.environ.get("TABLEVIEW_LOG_DIR")
        log_dir = Path(env_log_dir) if env_log_dir else Path.cwd() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = str(log_dir / "tableview.log")

    root = logging.getLogger()
    root.setLevel(level)

    # 避免重複加入 handler
    if getattr(root, "_tableview_configured", False):
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if debug:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(fmt)
        root.addHandler(console)

    setattr(root, "_tableview_configured", True)
