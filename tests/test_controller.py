import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402
from PyQt5.QtCore import QCoreApplication, QEvent, QTimer  # noqa: E402

from tableview.attributes import TableviewProps  # noqa: E402
from tableview.config import TableviewConfig  # noqa: E402
from tableview.controller import TableviewController  # noqa: E402
from tableview.enums import SelectionState  # noqa: E402
from tableview.grid_model import CellId  # noqa: E402


def _payload(rows, cols, values=None):
    values = values or {}
    return json.dumps({
        "rows": rows,
        "columns": cols,
        "tableRows": [
            {"cells": [{"sequenceNumber": values.get((r, c), "-")} for c in range(1, cols + 1)]}
            for r in range(1, rows + 1)
        ],
    })


@pytest.fixture
def make(qapp, scheduler, fixedClock):
    created = []

    def factory(props=None, config=None):
        props = props or TableviewProps.inMemory()
        controller = TableviewController(props, config, scheduler=scheduler, clock=fixedClock)
        created.append(controller)
        return controller, props

    yield factory
    for controller in created:
        controller.dispose()


def test_default_table_created_and_published(make):
    controller, props = make()
    assert (controller.table.rowCount, controller.table.columnCount) == (3, 3)
    assert props.useAttributeData.value == controller.bridge.lastWritten
    assert props.tableDataAttribute.value == controller.bridge.lastWritten
    assert props.rowCountAttribute.value == 3
    assert props.totalCellsAttribute.value == 9
    assert props.onTableChange.executionCount == 1


def test_default_table_uses_dimension_attributes(make):
    props = TableviewProps.inMemory()
    props.rowCountAttribute.setValue(5)
    props.columnCountAttribute.setValue(2)
    controller, _ = make(props)
    assert (controller.table.rowCount, controller.table.columnCount) == (5, 2)


def test_valid_data_loaded_at_construction(make):
    raw = _payload(2, 4, {(1, 1): "8"})
    controller, props = make(TableviewProps.inMemory(data=raw))
    assert (controller.table.rowCount, controller.table.columnCount) == (2, 4)
    assert controller.model.cell(1, 1).value == "8"
    assert (controller.rowCountInput, controller.columnCountInput) == (2, 4)
    # 載入不會觸發寫出
    assert props.useAttributeData.value == raw
    assert props.onTableChange.executionCount == 0
    assert props.blockedCellsAttribute.value == 1


def test_malformed_data_falls_back_to_default(make):
    controller, props = make(TableviewProps.inMemory(data="{broken"), TableviewConfig(defaultRows=4))
    assert (controller.table.rowCount, controller.table.columnCount) == (4, 3)
    assert controller.bridge.lastError is not None
    assert props.useAttributeData.value == controller.bridge.lastWritten


def test_inbound_data_replaces_table_and_clears_selection(make):
    controller, props = make()
    controller.cellClick(1, 1)
    raw = _payload(2, 2, {(2, 2): "3"})
    props.useAttributeData.setValue(raw)
    assert (controller.table.rowCount, controller.table.columnCount) == (2, 2)
    assert controller.model.cell(2, 2).value == "3"
    assert controller.selectedCells == frozenset()
    assert controller.selectionState is SelectionState.IDLE


def test_own_writes_are_not_reloaded(make):
    controller, props = make()
    table = controller.table
    controller.setCellValue(1, 1, "6")
    assert controller.table is table
    assert props.useAttributeData.value == controller.bridge.lastWritten


def test_inbound_dimension_updates_input(make):
    controller, props = make()
    props.rowCountAttribute.setValue(7)
    assert controller.rowCountInput == 7
    props.columnCountAttribute.setValue(250)
    assert controller.columnCountInput == 100
    props.columnCountAttribute.setValue(4)
    assert controller.applyDimensions() is True
    assert (controller.table.rowCount, controller.table.columnCount) == (7, 4)


def test_dimension_echo_ignored_while_latch_pending(make, scheduler):
    controller, props = make()
    controller.setRowCountInput(5)
    props.rowCountAttribute.setValue(3)
    assert controller.rowCountInput == 5
    scheduler.advance(100)
    props.rowCountAttribute.setValue(3)
    assert controller.rowCountInput == 3


def test_apply_dimensions_out_of_range_rejected(make):
    controller, _ = make()
    notices = []
    controller.noticeRaised.connect(notices.append)
    before = controller.table.copy()
    controller.setRowCountInput(0)
    assert controller.applyDimensions() is False
    assert notices
    assert controller.table == before


def test_add_row_and_column_publish(make):
    controller, props = make()
    controller.setCellValue(1, 1, "2")
    assert controller.addRow() is True
    assert controller.addColumn() is True
    assert (controller.table.rowCount, controller.table.columnCount) == (4, 4)
    assert controller.model.cell(1, 1).value == "2"
    assert props.rowCountAttribute.value == 4
    assert props.columnCountAttribute.value == 4
    assert json.loads(props.useAttributeData.value)["rows"] == 4


def test_add_row_at_limit_raises_notice(make):
    controller, _ = make(config=TableviewConfig(defaultRows=100))
    notices = []
    controller.noticeRaised.connect(notices.append)
    assert controller.addRow() is False
    assert len(notices) == 1
    assert controller.table.rowCount == 100


def test_merge_selected_rectangle(make):
    controller, props = make()
    controller.pointerDown(1, 1)
    controller.pointerEnter(2, 2)
    controller.pointerUp()
    anchor = controller.mergeSelected()
    assert anchor == CellId(1, 1)
    assert controller.selectedCells == {CellId(1, 1)}
    assert props.mergedCellsAttribute.value == 1
    assert json.loads(props.useAttributeData.value)["tableRows"][0]["cells"][0]["colSpan"] == 2


def test_merge_selected_l_shape_rejected(make):
    controller, _ = make()
    notices = []
    controller.noticeRaised.connect(notices.append)
    controller.cellClick(1, 1)
    controller.cellClick(2, 1)
    controller.cellClick(2, 2)
    before = controller.table.copy()
    assert controller.mergeSelected() is None
    assert len(notices) == 1
    assert controller.table == before


def test_unmerge_selected(make):
    controller, props = make()
    controller.selectAll()
    controller.mergeSelected()
    assert props.mergedCellsAttribute.value == 1
    assert controller.unmergeSelected() == 1
    assert props.mergedCellsAttribute.value == 0
    assert controller.unmergeSelected() == 0


def test_edits_without_auto_save_update_statistics_only(make):
    controller, props = make(TableviewProps.inMemory(autoSave=False))
    written = controller.bridge.lastWritten
    controller.setCellValue(2, 2, "9")
    assert controller.toggleCheckbox(2, 2) is True
    assert controller.bridge.lastWritten == written
    assert props.blockedCellsAttribute.value == 1
    assert props.onCellClick.executionCount == 2
    controller.save()
    assert controller.bridge.lastWritten != written


def test_cell_click_fires_action_except_while_dragging(make):
    controller, props = make()
    controller.cellClick(1, 1)
    assert props.onCellClick.executionCount == 1
    controller.pointerDown(2, 2)
    controller.cellClick(3, 3)
    assert props.onCellClick.executionCount == 1
    controller.pointerUp()
    assert controller.selectedCells == {CellId(2, 2)}


def test_initial_load_grace_and_dispose(make, scheduler):
    controller, props = make()
    finished = []
    controller.initialLoadFinished.connect(lambda: finished.append(True))
    assert controller.isInitialLoad is True
    scheduler.advance(500)
    assert controller.isInitialLoad is False
    assert finished == [True]

    other, otherProps = make()
    other.dispose()
    scheduler.advance(1000)
    assert other.isInitialLoad is True
    table = other.table
    otherProps.useAttributeData.setValue(_payload(2, 2))
    assert other.table is table


def test_out_of_range_positions_are_rejected(make):
    controller, props = make()
    notices = []
    controller.noticeRaised.connect(notices.append)
    written = controller.bridge.lastWritten
    before = controller.table.copy()

    assert controller.setCellValue(10, 10, "5") is False
    assert controller.toggleCheckbox(4, 1) is None
    controller.pointerDown(0, 1)
    controller.cellClick(1, 9)

    assert len(notices) == 4
    assert controller.selectionState is SelectionState.IDLE
    assert controller.table == before
    assert controller.bridge.lastWritten == written
    assert props.onCellClick.executionCount == 0

    controller.pointerDown(1, 1)
    controller.pointerEnter(5, 5)
    assert len(notices) == 5
    assert controller.selectionState is SelectionState.DRAGGING
    assert controller.selectedCells == {CellId(1, 1)}
    controller.pointerUp()


def test_selection_drops_cells_hidden_by_merge(make):
    controller, _ = make()
    controller.selectAll()
    changes = []
    controller.selectionChanged.connect(lambda: changes.append(True))

    controller.mergeManager.merge([(1, 1), (1, 2)])

    assert CellId(1, 2) not in controller.selectedCells
    assert len(controller.selectedCells) == 8
    assert changes


def test_scheduled_timers_are_released(qapp):
    """重複寫出不會讓控制器底下的計時器持續累積"""
    controller = TableviewController(TableviewProps.inMemory())
    try:
        for i in range(20):
            controller.setCellValue(1, 1, str(i))
        QCoreApplication.sendPostedEvents(None, QEvent.DeferredDelete)
        # 初始載入寬限與最後一次回音抑制
        assert len(controller.findChildren(QTimer)) <= 2
    finally:
        controller.dispose()
