import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402

from tableview.errors import InvalidSelectionShape  # noqa: E402
from tableview.grid_model import GridModel  # noqa: E402
from tableview.merge_manager import (  # noqa: E402
    MergeManager,
    createMergeId,
    normalizeMergeGroups,
)


def _rect(r1, c1, r2, c2):
    return [(r, c) for r in range(r1, r2 + 1) for c in range(c1, c2 + 1)]


def _setup(rows=4, cols=4):
    model = GridModel()
    model.create(rows, cols)
    return model, MergeManager(model)


def test_merge_rectangle_sets_anchor_and_followers():
    model, manager = _setup()
    model.setValue(2, 2, "15")
    model.toggleChecked(2, 2)
    model.setValue(3, 4, "99")

    anchor = manager.merge(_rect(2, 2, 3, 4))

    assert anchor == (2, 2)
    table = model.table
    head = table.cell(2, 2)
    assert (head.rowSpan, head.colSpan, head.isHidden) == (2, 3, False)
    assert head.rowSpan * head.colSpan == 6
    followers = [table.cell(r, c) for r, c in _rect(2, 2, 3, 4) if (r, c) != (2, 2)]
    assert len(followers) == 5
    for cell in followers:
        assert cell.isHidden is True
        assert (cell.rowSpan, cell.colSpan) == (1, 1)
        assert cell.mergeId == head.mergeId
        # 以左上角儲存格為準
        assert cell.value == "15"
        assert cell.checked is True
        assert cell.isBlocked is True
    assert head.mergeId == createMergeId(2, 2, 3, 4)


def test_merge_id_is_unambiguous():
    assert createMergeId(1, 12, 1, 3) != createMergeId(1, 1, 2, 13)
    assert createMergeId(11, 1, 1, 1) != createMergeId(1, 11, 1, 1)


def test_merge_l_shape_rejected_and_table_unchanged():
    model, manager = _setup()
    before = model.table.copy()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(1, 1), (2, 1), (2, 2)])
    assert model.table == before


def test_merge_requires_two_cells():
    model, manager = _setup()
    before = model.table.copy()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(1, 1)])
    with pytest.raises(InvalidSelectionShape):
        manager.merge([])
    assert model.table == before


def test_merge_with_gap_rejected():
    model, manager = _setup()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(1, 1), (1, 3)])


def test_merge_outside_table_rejected():
    model, manager = _setup(2, 2)
    before = model.table.copy()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(2, 2), (2, 3)])
    assert model.table == before


def test_unmerge_restores_cells():
    model, manager = _setup()
    cells = _rect(1, 1, 2, 3)
    manager.merge(cells)

    restored = manager.unmerge((2, 3))

    assert sorted(restored) == sorted(cells)
    for r, c in cells:
        cell = model.cell(r, c)
        assert (cell.rowSpan, cell.colSpan) == (1, 1)
        assert cell.isHidden is False
        assert cell.mergeId == ""
    assert model.statistics().mergedCells == 0


def test_unmerge_unmerged_cell_is_noop():
    model, manager = _setup()
    before = model.table.copy()
    events = []
    model.addListener(events.append)
    assert manager.unmerge((1, 1)) is None
    assert model.table == before
    assert events == []


def test_merge_counts_selected_cells_only():
    """選取格數以實際選取計算，錨點不會展開為整個群組"""
    model, manager = _setup(3, 3)
    manager.merge([(1, 1), (1, 2)])
    before = model.table.copy()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(1, 1), (1, 3)])
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(1, 1), (1, 3), (2, 3)])
    assert model.table == before


def test_merge_dissolves_groups_intersecting_rectangle():
    model, manager = _setup()
    manager.merge([(1, 2), (1, 3)])
    model.setValue(1, 1, "4")

    anchor = manager.merge(_rect(1, 1, 2, 2))

    assert anchor == (1, 1)
    head = model.cell(1, 1)
    assert head.mergeId == createMergeId(1, 1, 2, 2)
    assert (head.rowSpan, head.colSpan) == (2, 2)
    assert all(model.cell(r, c).mergeId == head.mergeId for r, c in _rect(1, 1, 2, 2))
    # 舊群組超出範圍的成員恢復為未合併
    outside = model.cell(1, 3)
    assert (outside.mergeId, outside.isHidden, outside.rowSpan, outside.colSpan) == ("", False, 1, 1)
    assert model.statistics().mergedCells == 1


def test_merge_replaces_group_covering_same_rectangle():
    model, manager = _setup()
    manager.merge([(1, 1), (1, 2)])

    anchor = manager.merge(_rect(1, 1, 2, 2))

    assert anchor == (1, 1)
    assert model.cell(1, 2).mergeId == createMergeId(1, 1, 2, 2)
    assert model.cell(1, 2).isHidden is True
    assert model.statistics().mergedCells == 1


def test_merge_partially_covering_group_rejected():
    model, manager = _setup()
    manager.merge(_rect(1, 2, 2, 3))
    before = model.table.copy()
    with pytest.raises(InvalidSelectionShape):
        manager.merge([(2, 1), (3, 1), (2, 2)])
    assert model.table == before


def test_normalize_dissolves_non_rectangular_group():
    model, _ = _setup(3, 3)
    table = model.table
    for r, c in [(1, 1), (1, 2), (2, 1)]:
        table.cell(r, c).mergeId = "broken"
    for r, c in _rect(3, 1, 3, 3):
        table.cell(r, c).mergeId = "row3"
        table.cell(r, c).isHidden = True
    table.cell(3, 2).value = "8"

    dissolved = normalizeMergeGroups(table)

    assert dissolved == ["broken"]
    assert table.cell(1, 2).mergeId == ""
    head = table.cell(3, 1)
    assert (head.rowSpan, head.colSpan, head.isHidden) == (1, 3, False)
    assert table.cell(3, 2).isHidden is True
    assert table.cell(3, 2).value == "-"
