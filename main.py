import argparse
import sys
from pathlib import Path

from PyQt5.QtCore import QCoreApplication

from tableview.attributes import TableviewProps
from tableview.config import loadConfig
from tableview.controller import TableviewController
from tableview.grid_model import validateDimension
from tableview.logging_utils import configure_logging
from tableview.models import toDataFrame


def parse_arguments(argv=None):
    """解析命令列參數"""
    parser = argparse.ArgumentParser(description="可合併儲存格的表格編輯工具")
    parser.add_argument("--input", metavar="PATH", help="輸入表格 JSON 檔案路徑")
    parser.add_argument("--config", default="config.json", help="設定檔路徑")
    parser.add_argument("--rows", type=int, help="建立新表格的列數 (1-100)")
    parser.add_argument("--columns", type=int, help="建立新表格的欄數 (1-100)")
    parser.add_argument(
        "--add-rows", dest="addRows", type=int, default=0, metavar="N",
        help="在表格底部新增 N 列")
    parser.add_argument(
        "--add-columns", dest="addColumns", type=int, default=0, metavar="N",
        help="在表格右側新增 N 欄")
    parser.add_argument(
        "--set", dest="values", action="append", default=[], metavar="R,C=VALUE",
        help="設定儲存格內容，可重複")
    parser.add_argument(
        "--check", dest="checks", action="append", default=[], metavar="R,C",
        help="切換儲存格勾選，可重複")
    parser.add_argument(
        "--merge", dest="merges", action="append", default=[], metavar="R1,C1:R2,C2",
        help="合併矩形範圍，可重複")
    parser.add_argument(
        "--unmerge", dest="unmerges", action="append", default=[], metavar="R,C",
        help="解除儲存格所屬的合併，可重複")
    parser.add_argument("--output", metavar="PATH", help="輸出表格 JSON 路徑")
    parser.add_argument("--csv", metavar="PATH", help="輸出儲存格內容 CSV 路徑")
    parser.add_argument("--debug", action="store_true", help="於主控台顯示除錯日誌")
    return parser.parse_args(argv)


def parse_cell(text):
    """解析 ``R,C`` 格式的儲存格位置"""
    try:
        row, col = (int(part) for part in text.split(","))
    except ValueError:
        raise ValueError(f"無法解析儲存格位置：{text}") from None
    return row, col


def parse_range(text):
    """解析 ``R1,C1:R2,C2`` 格式的範圍"""
    if ":" not in text:
        raise ValueError(f"無法解析合併範圍：{text}")
    start, end = text.split(":", 1)
    return parse_cell(start), parse_cell(end)


def load_data(args):
    """載入設定與輸入資料"""
    config = loadConfig(args.config)
    if args.rows is not None:
        config.defaultRows = validateDimension(args.rows, "列數")
    if args.columns is not None:
        config.defaultColumns = validateDimension(args.columns, "欄數")
    data = ""
    if args.input:
        data = Path(args.input).read_text(encoding="utf-8")
    props = TableviewProps.inMemory(data=data, autoSave=config.autoSave)
    return config, props


def apply_operations(controller, args):
    """依參數順序套用編輯，回傳被拒絕的操作訊息"""
    notices = []
    controller.noticeRaised.connect(notices.append)

    for _ in range(args.addRows):
        controller.addRow()
    for _ in range(args.addColumns):
        controller.addColumn()

    for item in args.values:
        position, _, value = item.partition("=")
        row, col = parse_cell(position)
        controller.setCellValue(row, col, value)

    for item in args.checks:
        controller.toggleCheckbox(*parse_cell(item))

    for item in args.merges:
        (r1, c1), (r2, c2) = parse_range(item)
        controller.clearSelection()
        controller.pointerDown(r1, c1)
        controller.pointerEnter(r2, c2)
        controller.pointerUp()
        controller.mergeSelected()

    for item in args.unmerges:
        controller.clearSelection()
        controller.cellClick(*parse_cell(item))
        controller.unmergeSelected()

    controller.save()
    return notices


def generate_outputs(controller, args):
    """輸出統計與檔案"""
    stats = controller.statistics()
    table = controller.table
    print(f"表格大小：{table.rowCount} 列 x {table.columnCount} 欄")
    print(f"總格數：{stats.totalCells}")
    print(f"佔用格數：{stats.blockedCells}")
    print(f"合併格數：{stats.mergedCells}")

    if args.output:
        Path(args.output).write_text(controller.bridge.lastWritten, encoding="utf-8")
        print(f"已輸出表格 JSON：{args.output}")

    if args.csv:
        toDataFrame(table).to_csv(args.csv, encoding="utf-8-sig")
        print(f"已輸出 CSV：{args.csv}")


def main(argv=None):
    """主執行流程"""
    args = parse_arguments(argv)
    configure_logging(debug=args.debug)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])  # noqa: F841

    try:
        config, props = load_data(args)
    except (OSError, ValueError) as exc:
        print(f"無法載入輸入：{exc}")
        return 2
    controller = TableviewController(props, config)
    try:
        notices = apply_operations(controller, args)
        generate_outputs(controller, args)
    finally:
        controller.dispose()

    for notice in notices:
        print(f"操作被拒絕：{notice}")
    return 1 if notices else 0


if __name__ == "__main__":
    sys.exit(main())
