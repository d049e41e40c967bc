"""Interaction state machine.

All transient UI state (selection, collapsed parents, drag preview, open
dependency dialog, view mode and zoom) lives in one immutable
InteractionState. Every event is a pure function from the old state to a
new one; nothing here talks to persistence. Planning helpers for indent,
outdent and reorder return what should be submitted, or raise a
ValidationError subclass when the mutation must not happen.
"""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum

from .exceptions import (
    DragError,
    HierarchyError,
    MilestoneParentError,
    NoParentError,
    NoPreviousSiblingError,
    PhaseMutationError,
    ReorderError,
    SelfDependencyError,
    ValidationError,
)
from .hierarchy import ItemForest, validate_reparent
from .logger import get_logger
from .models import (
    DateSpan,
    Dependency,
    DependencyType,
    ItemKind,
    ScheduleItem,
    ViewMode,
    WeekendSettings,
)
from .temporal import DEFAULT_ZOOM_INDEX, ZOOM_LEVELS

logger = get_logger()

_DRAGGABLE_KINDS = frozenset({ItemKind.TASK, ItemKind.PHASE})


class DragEdge(str, Enum):
    """Which part of a bar is being dragged."""

    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


class ClickModifier(str, Enum):
    """Keyboard modifier held during a click."""

    NONE = "none"
    TOGGLE = "toggle"  # ctrl / cmd
    RANGE = "range"  # shift


class DropPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True, slots=True)
class DragSession:
    """An in-progress drag. preview is None until the pointer first moves."""

    item_id: str
    persistence_id: str
    edge: DragEdge
    original: DateSpan
    preview: DateSpan | None = None


@dataclass(frozen=True, slots=True)
class DragCommit:
    """New span to submit when a drag ends."""

    item_id: str
    persistence_id: str
    start_date: date
    end_date: date


_dialog_sessions = itertools.count(1)


def _next_dialog_session() -> int:
    return next(_dialog_sessions)


@dataclass(frozen=True, slots=True)
class DependencyDialog:
    """Relationship editor state.

    session identifies one opening of the dialog; edits keep it, reopening
    gets a new one.
    """

    source_id: str
    target_id: str
    type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0
    dependency_id: str | None = None
    session: int = field(default_factory=_next_dialog_session)

    @property
    def is_edit(self) -> bool:
        return self.dependency_id is not None


@dataclass(frozen=True, slots=True)
class ParentChange:
    """A validated reparent, ready to submit."""

    item_id: str
    new_parent_id: str | None
    new_level: int


@dataclass(frozen=True, slots=True)
class InteractionState:
    """Everything the timeline view remembers between events."""

    view_mode: ViewMode = ViewMode.WEEK
    zoom_index: int = DEFAULT_ZOOM_INDEX
    weekend_settings: WeekendSettings = WeekendSettings()
    selected_ids: tuple[str, ...] = ()  # Last element anchors shift-click ranges
    collapsed_ids: frozenset[str] = frozenset()
    drag: DragSession | None = None
    dialog: DependencyDialog | None = None

    @property
    def anchor_id(self) -> str | None:
        return self.selected_ids[-1] if self.selected_ids else None

    def is_selected(self, item_id: str) -> bool:
        return item_id in self.selected_ids

    def is_collapsed(self, item_id: str) -> bool:
        return item_id in self.collapsed_ids


# Drag-to-reschedule


def can_drag(item: ScheduleItem) -> bool:
    """Only editable tasks and phases can be rescheduled by dragging."""
    return item.is_editable and item.kind in _DRAGGABLE_KINDS


def day_delta(delta_px: float, days_per_pixel: float) -> int:
    """Convert a pointer delta to whole days, rounding halves up."""
    return int(math.floor(delta_px * days_per_pixel + 0.5))


def apply_drag_delta(original: DateSpan, edge: DragEdge, days: int) -> DateSpan:
    """Move one or both ends of a span.

    The left edge never passes the end and the right edge never precedes
    the start, so the result is always at least one day long.
    """
    shift = timedelta(days=days)
    if edge is DragEdge.LEFT:
        return DateSpan(min(original.start + shift, original.end), original.end)
    if edge is DragEdge.RIGHT:
        return DateSpan(original.start, max(original.end + shift, original.start))
    return DateSpan(original.start + shift, original.end + shift)


def begin_drag(state: InteractionState, item: ScheduleItem, edge: DragEdge) -> InteractionState:
    if not can_drag(item):
        logger.checks("Ignoring drag on %s: not draggable", item.id)
        return state
    return replace(
        state,
        drag=DragSession(
            item_id=item.id,
            persistence_id=item.persistence_id,
            edge=edge,
            original=item.span,
        ),
    )


def update_drag(
    state: InteractionState, delta_px: float, days_per_pixel: float
) -> InteractionState:
    """Recompute the preview span from the total pointer delta since drag start."""
    drag = state.drag
    if drag is None:
        return state
    preview = apply_drag_delta(drag.original, drag.edge, day_delta(delta_px, days_per_pixel))
    return replace(state, drag=replace(drag, preview=preview))


def end_drag(state: InteractionState) -> tuple[InteractionState, DragCommit | None]:
    """Finish a drag. The drag session is always cleared.

    Returns:
        The new state and the span to submit, or None when nothing moved

    Raises:
        DragError: The preview span ends before it starts
    """
    drag = state.drag
    cleared = replace(state, drag=None)
    if drag is None or drag.preview is None or drag.preview == drag.original:
        return cleared, None
    if drag.preview.end < drag.preview.start:
        raise DragError("End date must be on or after start date")
    return cleared, DragCommit(
        item_id=drag.item_id,
        persistence_id=drag.persistence_id,
        start_date=drag.preview.start,
        end_date=drag.preview.end,
    )


def cancel_drag(state: InteractionState) -> InteractionState:
    return replace(state, drag=None)


# Selection


def click_item(
    state: InteractionState,
    item: ScheduleItem,
    visible: Sequence[ScheduleItem],
    modifier: ClickModifier = ClickModifier.NONE,
) -> tuple[InteractionState, str | None]:
    """Apply a click to the selection.

    Args:
        state: Current state
        item: The clicked item
        visible: Currently visible items in display order
        modifier: Held modifier key

    Returns:
        The new state, and the id of an item to open read-only (plain click
        on a non-editable item), else None
    """
    selected = state.selected_ids

    if not item.is_editable:
        if modifier is ClickModifier.NONE:
            return state, item.id
        return state, None

    if modifier is ClickModifier.TOGGLE:
        if item.id in selected:
            new_selection = tuple(i for i in selected if i != item.id)
        else:
            new_selection = (*selected, item.id)
    elif modifier is ClickModifier.RANGE and selected:
        visible_ids = [v.id for v in visible]
        anchor = selected[-1]
        if anchor not in visible_ids or item.id not in visible_ids:
            return state, None
        lo, hi = sorted((visible_ids.index(anchor), visible_ids.index(item.id)))
        in_range = [v.id for v in visible[lo : hi + 1] if v.is_editable]
        new_selection = (*selected, *(i for i in in_range if i not in selected))
    elif selected == (item.id,):
        new_selection = ()
    else:
        new_selection = (item.id,)

    return replace(state, selected_ids=new_selection), None


def clear_selection(state: InteractionState) -> InteractionState:
    return replace(state, selected_ids=())


def prune(state: InteractionState, known_ids: Iterable[str]) -> InteractionState:
    """Forget selected and collapsed ids that no longer exist."""
    known = set(known_ids)
    return replace(
        state,
        selected_ids=tuple(i for i in state.selected_ids if i in known),
        collapsed_ids=frozenset(i for i in state.collapsed_ids if i in known),
    )


# Collapse / expand


def toggle_collapse(state: InteractionState, item_id: str) -> InteractionState:
    return replace(state, collapsed_ids=state.collapsed_ids ^ {item_id})


def expand_all(state: InteractionState) -> InteractionState:
    return replace(state, collapsed_ids=frozenset())


def collapse_all(state: InteractionState, parent_ids: Iterable[str]) -> InteractionState:
    return replace(state, collapsed_ids=frozenset(parent_ids))


# View


def zoom_in(state: InteractionState, levels: Sequence[float] = ZOOM_LEVELS) -> InteractionState:
    return replace(state, zoom_index=min(state.zoom_index + 1, len(levels) - 1))


def zoom_out(state: InteractionState, levels: Sequence[float] = ZOOM_LEVELS) -> InteractionState:
    return replace(state, zoom_index=max(min(state.zoom_index, len(levels) - 1) - 1, 0))


def set_view_mode(state: InteractionState, view_mode: ViewMode) -> InteractionState:
    return replace(state, view_mode=view_mode)


def set_weekend_settings(
    state: InteractionState, weekend_settings: WeekendSettings
) -> InteractionState:
    return replace(state, weekend_settings=weekend_settings)


# Indent / outdent


def _require_item(forest: ItemForest, item_id: str) -> ScheduleItem:
    item = forest.get(item_id)
    if item is None:
        raise HierarchyError(f"Timeline item not found: {item_id}")
    if item.is_phase:
        raise PhaseMutationError("Fixed phases cannot be moved")
    return item


def plan_indent(
    forest: ItemForest, item_id: str, *, max_depth: int | None = None
) -> ParentChange:
    """Make an item a child of its immediately preceding sibling.

    Raises:
        NoPreviousSiblingError: The item is first among its siblings
        MilestoneParentError: The preceding sibling is a milestone
        HierarchyError: The move fails parent-chain validation
    """
    item = _require_item(forest, item_id)
    siblings = forest.siblings(item)
    index = next((i for i, sibling in enumerate(siblings) if sibling.id == item.id), None)
    if index is None:
        raise HierarchyError(f"Timeline item not found among its siblings: {item.id}")
    if index == 0:
        raise NoPreviousSiblingError()

    previous = siblings[index - 1]
    if previous.is_milestone:
        raise MilestoneParentError()

    new_level = validate_reparent(forest, item.id, previous.id, max_depth=max_depth)
    return ParentChange(item_id=item.id, new_parent_id=previous.id, new_level=new_level)


def plan_outdent(
    forest: ItemForest, item_id: str, *, max_depth: int | None = None
) -> ParentChange:
    """Move an item up to its grandparent (top level if the parent is a root).

    Raises:
        NoParentError: The item is already top-level
    """
    item = _require_item(forest, item_id)
    parent = forest.parent(item.id)
    if parent is None:
        raise NoParentError()

    new_level = validate_reparent(forest, item.id, parent.parent_id, max_depth=max_depth)
    return ParentChange(item_id=item.id, new_parent_id=parent.parent_id, new_level=new_level)


# Reorder


def _reorder_group(forest: ItemForest, item: ScheduleItem) -> list[ScheduleItem]:
    return [sibling for sibling in forest.siblings(item) if not sibling.is_phase]


def _require_reorderable(forest: ItemForest, item_id: str) -> ScheduleItem:
    item = forest.get(item_id)
    if item is None:
        raise ReorderError(f"Timeline item not found: {item_id}")
    if item.is_phase:
        raise ReorderError("Fixed phases cannot be reordered")
    if not item.is_editable:
        raise ReorderError(f"Item {item_id} is not editable")
    return item


def plan_move(forest: ItemForest, item_id: str, direction: MoveDirection) -> tuple[str, ...]:
    """Swap an item with its neighbor in the sibling group.

    Returns:
        The complete new sibling order (first element gets sort order 1)

    Raises:
        ReorderError: The item cannot move further in that direction
    """
    item = _require_reorderable(forest, item_id)
    ids = [sibling.id for sibling in _reorder_group(forest, item)]
    if item.id not in ids:
        raise ReorderError(f"Timeline item not found among its siblings: {item.id}")
    index = ids.index(item.id)
    neighbor = index - 1 if direction is MoveDirection.UP else index + 1
    if not 0 <= neighbor < len(ids):
        edge = "first" if direction is MoveDirection.UP else "last"
        raise ReorderError(f"Item is already {edge}")

    ids[index], ids[neighbor] = ids[neighbor], ids[index]
    return tuple(ids)


def drop_position(pointer_y: float, row_top: float, row_height: float) -> DropPosition:
    """Above the target row's vertical midpoint drops before it, otherwise after."""
    if pointer_y < row_top + row_height / 2:
        return DropPosition.BEFORE
    return DropPosition.AFTER


def plan_drop(  # noqa: PLR0913
    forest: ItemForest,
    dragged_id: str,
    target_id: str,
    pointer_y: float,
    row_top: float,
    row_height: float,
) -> tuple[str, ...]:
    """Relocate a dragged item before or after a sibling.

    Returns:
        The complete new sibling order

    Raises:
        ReorderError: Different parents, dropping onto itself, or a phase
    """
    dragged = _require_reorderable(forest, dragged_id)
    target = forest.get(target_id)
    if target is None:
        raise ReorderError(f"Timeline item not found: {target_id}")
    if dragged.id == target.id:
        raise ReorderError("Cannot drop an item onto itself")
    if dragged.parent_id != target.parent_id or target.is_phase:
        raise ReorderError("Items can only be reordered within the same parent")

    ids = [sibling.id for sibling in _reorder_group(forest, dragged) if sibling.id != dragged.id]
    if target.id not in ids:
        raise ReorderError(f"Timeline item not found among its siblings: {target.id}")
    index = ids.index(target.id)
    if drop_position(pointer_y, row_top, row_height) is DropPosition.AFTER:
        index += 1
    ids.insert(index, dragged.id)
    return tuple(ids)


# Dependency authoring


def can_link(state: InteractionState, items: Mapping[str, ScheduleItem]) -> bool:
    """Whether exactly two editable items are selected."""
    if len(state.selected_ids) != 2:  # noqa: PLR2004
        return False
    return all(
        item_id in items and items[item_id].is_editable for item_id in state.selected_ids
    )


def open_link_dialog(
    state: InteractionState, items: Mapping[str, ScheduleItem]
) -> InteractionState:
    """Open the relationship editor for the two selected items (first is the source)."""
    if not can_link(state, items):
        raise ValidationError("Select exactly two editable items to link")
    source_id, target_id = state.selected_ids
    return replace(state, dialog=DependencyDialog(source_id=source_id, target_id=target_id))


def open_dependency_editor(state: InteractionState, dependency: Dependency) -> InteractionState:
    return replace(
        state,
        dialog=DependencyDialog(
            source_id=dependency.source_id,
            target_id=dependency.target_id,
            type=dependency.type,
            lag_days=dependency.lag_days,
            dependency_id=dependency.id,
        ),
    )


def update_dialog(
    state: InteractionState,
    *,
    dep_type: DependencyType | None = None,
    lag_days: int | None = None,
) -> InteractionState:
    dialog = state.dialog
    if dialog is None:
        return state
    if dep_type is not None:
        dialog = replace(dialog, type=dep_type)
    if lag_days is not None:
        dialog = replace(dialog, lag_days=lag_days)
    return replace(state, dialog=dialog)


def close_dialog(state: InteractionState, session: int | None = None) -> InteractionState:
    """Close the dialog; with a session, only if that dialog is still the open one."""
    if state.dialog is None:
        return state
    if session is not None and state.dialog.session != session:
        return state
    return replace(state, dialog=None)


def validate_dialog(dialog: DependencyDialog) -> None:
    """Raises SelfDependencyError when source and target are the same item."""
    if dialog.source_id == dialog.target_id:
        raise SelfDependencyError()
