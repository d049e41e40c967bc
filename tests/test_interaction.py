"""Tests for the interaction state machine."""

from datetime import date

import pytest

from ganttcore.exceptions import (
    DragError,
    MaxDepthExceededError,
    MilestoneParentError,
    NoParentError,
    NoPreviousSiblingError,
    PhaseMutationError,
    ReorderError,
    SelfDependencyError,
    ValidationError,
)
from ganttcore.hierarchy import ItemForest
from ganttcore.interaction import (
    ClickModifier,
    DependencyDialog,
    DragEdge,
    DragSession,
    DropPosition,
    InteractionState,
    MoveDirection,
    apply_drag_delta,
    begin_drag,
    can_drag,
    can_link,
    cancel_drag,
    click_item,
    close_dialog,
    collapse_all,
    day_delta,
    drop_position,
    end_drag,
    expand_all,
    open_dependency_editor,
    open_link_dialog,
    plan_drop,
    plan_indent,
    plan_move,
    plan_outdent,
    prune,
    toggle_collapse,
    update_dialog,
    update_drag,
    validate_dialog,
    zoom_in,
    zoom_out,
)
from ganttcore.models import DateSpan, DependencyType, PhaseKey
from tests.conftest import chain, item, link, milestone, phase

SPAN = DateSpan(date(2026, 3, 3), date(2026, 3, 5))


class TestDrag:
    """Drag-to-reschedule."""

    def test_pixels_to_days_rounding(self) -> None:
        """83px at 40px per day is two days."""
        assert day_delta(83, 1 / 40) == 2
        assert day_delta(20, 1 / 40) == 1
        assert day_delta(-19, 1 / 40) == 0

    def test_middle_moves_both_ends(self) -> None:
        moved = apply_drag_delta(SPAN, DragEdge.MIDDLE, 2)
        assert moved == DateSpan(date(2026, 3, 5), date(2026, 3, 7))

    def test_edges_clamped(self) -> None:
        assert apply_drag_delta(SPAN, DragEdge.LEFT, 10) == DateSpan(SPAN.end, SPAN.end)
        assert apply_drag_delta(SPAN, DragEdge.RIGHT, -10) == DateSpan(SPAN.start, SPAN.start)
        assert apply_drag_delta(SPAN, DragEdge.LEFT, -1).start == date(2026, 3, 2)

    def test_only_editable_tasks_and_phases_drag(self) -> None:
        assert can_drag(item("t"))
        assert can_drag(phase(PhaseKey.DESIGN))
        assert not can_drag(milestone("m"))
        assert not can_drag(item("ro", is_editable=False))

    def test_full_drag_cycle(self) -> None:
        task = item("t", "2026-03-03", "2026-03-05", external_id="task-9")
        state = begin_drag(InteractionState(), task, DragEdge.MIDDLE)
        state = update_drag(state, 30, 1 / 40)
        state = update_drag(state, 83, 1 / 40)

        assert state.drag is not None
        assert state.drag.preview == DateSpan(date(2026, 3, 5), date(2026, 3, 7))

        cleared, commit = end_drag(state)
        assert cleared.drag is None
        assert commit is not None
        assert commit.persistence_id == "task-9"
        assert (commit.start_date, commit.end_date) == (date(2026, 3, 5), date(2026, 3, 7))

    def test_right_edge_moves_end_only(self) -> None:
        """83px on the right edge extends the end by two days."""
        task = item("t", "2026-03-03", "2026-03-05")
        state = update_drag(begin_drag(InteractionState(), task, DragEdge.RIGHT), 83, 1 / 40)

        assert state.drag is not None
        assert state.drag.preview == DateSpan(date(2026, 3, 3), date(2026, 3, 7))

    def test_drag_without_movement_commits_nothing(self) -> None:
        state = begin_drag(InteractionState(), item("t"), DragEdge.RIGHT)
        assert end_drag(state)[1] is None
        assert end_drag(update_drag(state, 5, 1 / 40))[1] is None

    def test_milestone_drag_ignored(self) -> None:
        state = InteractionState()
        assert begin_drag(state, milestone("m"), DragEdge.MIDDLE) is state

    def test_inverted_preview_rejected(self) -> None:
        broken = DragSession(
            item_id="t",
            persistence_id="t",
            edge=DragEdge.MIDDLE,
            original=SPAN,
            preview=DateSpan(SPAN.end, SPAN.start),
        )
        with pytest.raises(DragError):
            end_drag(InteractionState(drag=broken))

    def test_cancel(self) -> None:
        state = begin_drag(InteractionState(), item("t"), DragEdge.LEFT)
        assert cancel_drag(state).drag is None


class TestSelection:
    """Click handling."""

    visible = [item("a"), item("b"), item("ro", is_editable=False), item("c"), item("d")]

    def click(
        self, state: InteractionState, item_id: str, modifier: ClickModifier = ClickModifier.NONE
    ) -> tuple[InteractionState, str | None]:
        target = next(i for i in self.visible if i.id == item_id)
        return click_item(state, target, self.visible, modifier)

    def test_plain_click_selects_then_deselects(self) -> None:
        state, _ = self.click(InteractionState(selected_ids=("a", "b")), "c")
        assert state.selected_ids == ("c",)

        state, _ = self.click(state, "c")
        assert state.selected_ids == ()

    def test_toggle(self) -> None:
        state, _ = self.click(InteractionState(selected_ids=("a",)), "c", ClickModifier.TOGGLE)
        assert state.selected_ids == ("a", "c")

        state, _ = self.click(state, "a", ClickModifier.TOGGLE)
        assert state.selected_ids == ("c",)
        assert state.anchor_id == "c"

    def test_range_skips_read_only(self) -> None:
        state, _ = self.click(InteractionState(selected_ids=("a",)), "d", ClickModifier.RANGE)
        assert state.selected_ids == ("a", "b", "c", "d")

    def test_range_without_selection_acts_as_plain_click(self) -> None:
        state, _ = self.click(InteractionState(), "b", ClickModifier.RANGE)
        assert state.selected_ids == ("b",)

    def test_read_only_click_opens_item(self) -> None:
        start = InteractionState(selected_ids=("a",))
        state, view_id = self.click(start, "ro")

        assert view_id == "ro"
        assert state is start
        assert self.click(start, "ro", ClickModifier.TOGGLE) == (start, None)

    def test_prune_drops_unknown_ids(self) -> None:
        state = InteractionState(selected_ids=("a", "gone"), collapsed_ids=frozenset({"x", "a"}))
        pruned = prune(state, ["a"])

        assert pruned.selected_ids == ("a",)
        assert pruned.collapsed_ids == frozenset({"a"})


class TestCollapseAndZoom:
    """Collapse set and zoom index."""

    def test_toggle_collapse(self) -> None:
        state = toggle_collapse(InteractionState(), "p")
        assert state.is_collapsed("p")
        assert not toggle_collapse(state, "p").is_collapsed("p")

    def test_expand_and_collapse_all(self) -> None:
        state = collapse_all(InteractionState(), ["p", "q"])
        assert state.collapsed_ids == frozenset({"p", "q"})
        assert expand_all(state).collapsed_ids == frozenset()

    def test_zoom_clamped(self) -> None:
        levels = (0.5, 1.0, 2.0)
        state = InteractionState(zoom_index=1)

        assert zoom_in(zoom_in(state, levels), levels).zoom_index == 2
        assert zoom_out(zoom_out(state, levels), levels).zoom_index == 0


class TestIndentOutdent:
    """Hierarchy edits planned from the keyboard."""

    def test_indent_under_previous_sibling(self) -> None:
        forest = ItemForest([item("a", sort_order=1), item("b", sort_order=2)])
        change = plan_indent(forest, "b")

        assert change.new_parent_id == "a"
        assert change.new_level == 1

    def test_indent_first_sibling_rejected(self) -> None:
        forest = ItemForest([item("a", sort_order=1), item("b", sort_order=2)])
        with pytest.raises(NoPreviousSiblingError):
            plan_indent(forest, "a")

    def test_indent_under_milestone_rejected(self) -> None:
        forest = ItemForest([milestone("m", sort_order=1), item("b", sort_order=2)])
        with pytest.raises(MilestoneParentError):
            plan_indent(forest, "b")

    def test_indent_past_max_depth_rejected(self) -> None:
        forest = ItemForest([*chain(6), item("x", parent="c4", sort_order=9)])
        with pytest.raises(MaxDepthExceededError):
            plan_indent(forest, "x")

    def test_phase_cannot_move(self) -> None:
        forest = ItemForest([phase(PhaseKey.DESIGN), phase(PhaseKey.PRODUCTION)])
        with pytest.raises(PhaseMutationError):
            plan_indent(forest, "production")

    def test_indent_with_missing_parent(self) -> None:
        """Items whose parent is gone are still siblings of each other."""
        forest = ItemForest(
            [item("a", parent="gone", sort_order=1), item("b", parent="gone", sort_order=2)]
        )
        change = plan_indent(forest, "b")

        assert change.new_parent_id == "a"
        assert change.new_level == 1
        with pytest.raises(NoPreviousSiblingError):
            plan_indent(forest, "a")

    def test_outdent_to_grandparent(self) -> None:
        change = plan_outdent(ItemForest(chain(3)), "c2")
        assert change.new_parent_id == "c0"
        assert change.new_level == 1

    def test_outdent_top_level_rejected(self) -> None:
        with pytest.raises(NoParentError):
            plan_outdent(ItemForest([item("a")]), "a")


class TestReorder:
    """Move up/down and drag-drop reordering."""

    def siblings(self) -> ItemForest:
        return ItemForest(
            [
                phase(PhaseKey.PRODUCTION),
                item("item1", parent="production", sort_order=1),
                item("item2", parent="production", sort_order=2),
                item("item3", parent="production", sort_order=3),
            ]
        )

    def test_move_down_swaps_with_next(self) -> None:
        order = plan_move(self.siblings(), "item1", MoveDirection.DOWN)
        assert order == ("item2", "item1", "item3")

    def test_move_up_first_rejected(self) -> None:
        with pytest.raises(ReorderError, match="already first"):
            plan_move(self.siblings(), "item1", MoveDirection.UP)

    def test_move_down_last_rejected(self) -> None:
        with pytest.raises(ReorderError, match="already last"):
            plan_move(self.siblings(), "item3", MoveDirection.DOWN)

    def test_phases_excluded_from_top_level_group(self) -> None:
        forest = ItemForest(
            [phase(PhaseKey.DESIGN), item("x", sort_order=5), item("y", sort_order=6)]
        )
        assert plan_move(forest, "x", MoveDirection.DOWN) == ("y", "x")
        with pytest.raises(ReorderError, match="Fixed phases cannot be reordered"):
            plan_move(forest, "design", MoveDirection.DOWN)

    def test_drop_position_midpoint(self) -> None:
        assert drop_position(10, 0, 36) is DropPosition.BEFORE
        assert drop_position(18, 0, 36) is DropPosition.AFTER

    def test_plan_drop(self) -> None:
        forest = self.siblings()

        assert plan_drop(forest, "item1", "item3", 80, 72, 36) == ("item2", "item1", "item3")
        assert plan_drop(forest, "item1", "item3", 100, 80, 36) == ("item2", "item3", "item1")

    def test_reorder_with_missing_parent(self) -> None:
        forest = ItemForest(
            [item("a", parent="gone", sort_order=1), item("b", parent="gone", sort_order=2)]
        )

        assert plan_move(forest, "a", MoveDirection.DOWN) == ("b", "a")
        assert plan_drop(forest, "b", "a", 0, 0, 36) == ("b", "a")
        with pytest.raises(ReorderError, match="already last"):
            plan_move(forest, "b", MoveDirection.DOWN)

    def test_drop_across_parents_rejected(self) -> None:
        forest = ItemForest([item("p"), item("c", parent="p"), item("q")])
        with pytest.raises(ReorderError):
            plan_drop(forest, "c", "q", 0, 0, 36)
        with pytest.raises(ReorderError):
            plan_drop(forest, "q", "q", 0, 0, 36)


class TestDependencyDialog:
    """Relationship editor state."""

    items = {"a": item("a"), "b": item("b"), "ro": item("ro", is_editable=False)}

    def test_requires_two_editable_items(self) -> None:
        assert can_link(InteractionState(selected_ids=("a", "b")), self.items)
        assert not can_link(InteractionState(selected_ids=("a",)), self.items)
        assert not can_link(InteractionState(selected_ids=("a", "ro")), self.items)
        with pytest.raises(ValidationError, match="Select exactly two"):
            open_link_dialog(InteractionState(selected_ids=("a",)), self.items)

    def test_first_selected_is_source(self) -> None:
        state = open_link_dialog(InteractionState(selected_ids=("b", "a")), self.items)

        assert state.dialog is not None
        assert (state.dialog.source_id, state.dialog.target_id) == ("b", "a")
        assert not state.dialog.is_edit

    def test_editor_prefills_from_dependency(self) -> None:
        dep = link("a", "b", DependencyType.START_TO_START, lag=4)
        state = open_dependency_editor(InteractionState(), dep)

        assert state.dialog is not None
        assert state.dialog.is_edit
        assert (state.dialog.type, state.dialog.lag_days) == (DependencyType.START_TO_START, 4)

    def test_update_keeps_session(self) -> None:
        state = open_link_dialog(InteractionState(selected_ids=("a", "b")), self.items)
        assert state.dialog is not None
        session = state.dialog.session

        updated = update_dialog(state, dep_type=DependencyType.FINISH_TO_FINISH, lag_days=-3)
        assert updated.dialog is not None
        assert updated.dialog.session == session
        assert updated.dialog.lag_days == -3

    def test_close_by_session(self) -> None:
        state = open_link_dialog(InteractionState(selected_ids=("a", "b")), self.items)
        assert state.dialog is not None
        stale = state.dialog.session
        reopened = open_link_dialog(state, self.items)

        assert close_dialog(reopened, stale).dialog is not None
        assert close_dialog(reopened).dialog is None

    def test_self_dependency_rejected(self) -> None:
        with pytest.raises(SelfDependencyError, match="Cannot create a dependency to itself"):
            validate_dialog(DependencyDialog(source_id="a", target_id="a"))
