"""Timeline controller: owns the snapshot and the interaction state.

The controller turns UI events into reducer calls from interaction.py and,
for mutations, into awaited persistence calls. Persistence calls are its
only await points. Each handler captures the ids it acts on before the
await and never assumes the state it finds afterwards is the one it
started from: a new drag or click may have happened in between.

On success the snapshot is re-fetched (the refresh is authoritative); on
failure nothing optimistic is kept.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import replace
from datetime import date
from typing import Any, TypeVar

from .config import GanttConfig
from .exceptions import GanttError, PhaseMutationError
from .hierarchy import ItemForest, decorate_items, validate_reparent
from .interaction import (
    ClickModifier,
    DragEdge,
    InteractionState,
    MoveDirection,
    ParentChange,
    begin_drag,
    cancel_drag,
    click_item,
    close_dialog,
    collapse_all,
    end_drag,
    expand_all,
    open_dependency_editor,
    open_link_dialog,
    plan_drop,
    plan_indent,
    plan_move,
    plan_outdent,
    prune,
    set_view_mode,
    set_weekend_settings,
    toggle_collapse,
    update_dialog,
    update_drag,
    validate_dialog,
    zoom_in,
    zoom_out,
)
from .layout import TimelineLayout, build_layout
from .logger import get_logger
from .models import Dependency, DependencyType, ItemKind, ScheduleItem, ViewMode, WeekendSettings
from .persistence import (
    ActionResult,
    DependencyInput,
    DependencyUpdate,
    ItemInput,
    ItemUpdate,
    TimelinePersistence,
)

logger = get_logger()

T = TypeVar("T")


class TimelineController:
    """Event-driven controller for one project's timeline.

    Args:
        store: Persistence collaborator
        project_id: Project whose timeline is shown
        role: Caller's role, passed through to persistence
        config: Layout, hierarchy and access settings
        today: Reference date for layout (defaults to date.today())
    """

    def __init__(
        self,
        store: TimelinePersistence,
        project_id: str,
        *,
        role: str | None,
        config: GanttConfig | None = None,
        today: date | None = None,
    ) -> None:
        self.store = store
        self.project_id = project_id
        self.role = role
        self.config = config or GanttConfig()
        self.today = today
        self.state = InteractionState(
            view_mode=self.config.default_view_mode,
            zoom_index=self.config.layout.default_zoom_index,
            weekend_settings=self.config.weekends.to_settings(),
        )
        self.items: tuple[ScheduleItem, ...] = ()
        self.dependencies: tuple[Dependency, ...] = ()
        self.measurements: Mapping[str, float | None] = {}
        self.last_error: str | None = None
        self._drag_days_per_pixel = 0.0

    # Snapshot

    async def refresh(self) -> ActionResult[None]:
        """Re-fetch items, dependencies and measurements as one snapshot."""
        items, dependencies, measurements = await asyncio.gather(
            self.store.list_items(self.project_id),
            self.store.list_dependencies(self.project_id),
            self.store.list_measurements(self.project_id),
        )
        for result in (items, dependencies, measurements):
            if not result.success:
                return self._failed(result.error or "Failed to load timeline")

        self.items = tuple(items.data or ())
        self.dependencies = tuple(dependencies.data or ())
        self.measurements = dict(measurements.data or {})
        self.state = prune(self.state, (item.id for item in self.items))
        logger.debug(
            "Refreshed %s: %d items, %d dependencies",
            self.project_id,
            len(self.items),
            len(self.dependencies),
        )
        return ActionResult.ok()

    def layout(self) -> TimelineLayout:
        """Recompute the full layout from the current snapshot and state."""
        return build_layout(
            self.items,
            self.dependencies,
            self.state,
            measurements=self.measurements,
            config=self.config,
            today=self.today,
        )

    def decorated_items(self) -> dict[str, ScheduleItem]:
        decorated = decorate_items(
            self.items, self.measurements, max_depth=self.config.hierarchy.max_depth
        )
        return {item.id: item for item in decorated}

    def _forest(self) -> ItemForest:
        return ItemForest(self.items, max_depth=self.config.hierarchy.max_depth)

    def _persistence_id(self, item_id: str | None) -> str | None:
        if item_id is None:
            return None
        item = self._forest().get(item_id)
        return item.persistence_id if item else item_id

    # Outcomes

    def _failed(self, error: str) -> ActionResult[Any]:
        self.last_error = error
        logger.warning("%s", error)
        return ActionResult.fail(error)

    def _rejected(self, error: Exception) -> ActionResult[Any]:
        """A validation failure: nothing was submitted."""
        self.last_error = str(error)
        logger.checks("Rejected: %s", error)
        return ActionResult.fail(str(error))

    async def _settle(self, result: ActionResult[T]) -> ActionResult[T]:
        if not result.success:
            self._failed(result.error or "Request failed")
            return result
        self.last_error = None
        await self.refresh()
        return result

    # View state

    def click(self, item_id: str, modifier: ClickModifier = ClickModifier.NONE) -> str | None:
        """Handle a click on a row or bar.

        Returns:
            The id of an item to open read-only, if the click asks for that
        """
        layout = self.layout()
        row = layout.row_for(item_id)
        if row is None:
            return None
        self.state, view_id = click_item(self.state, row.item, layout.visible_items, modifier)
        return view_id

    def toggle_collapse(self, item_id: str) -> None:
        self.state = toggle_collapse(self.state, item_id)

    def expand_all(self) -> None:
        self.state = expand_all(self.state)

    def collapse_all(self) -> None:
        forest = self._forest()
        self.state = collapse_all(
            self.state, (item.id for item in forest if forest.has_children(item.id))
        )

    def zoom_in(self) -> None:
        self.state = zoom_in(self.state, self.config.layout.zoom_levels)

    def zoom_out(self) -> None:
        self.state = zoom_out(self.state, self.config.layout.zoom_levels)

    def set_view_mode(self, view_mode: ViewMode) -> None:
        self.state = set_view_mode(self.state, view_mode)

    def set_weekend_settings(self, weekend_settings: WeekendSettings) -> None:
        self.state = set_weekend_settings(self.state, weekend_settings)

    # Drag-to-reschedule

    def begin_drag(self, item_id: str, edge: DragEdge) -> bool:
        """Start dragging a bar. Returns False when the item cannot be dragged."""
        layout = self.layout()
        row = layout.row_for(item_id)
        if row is None:
            return False
        self.state = begin_drag(self.state, row.item, edge)
        self._drag_days_per_pixel = layout.days_per_pixel
        return self.state.drag is not None

    def drag_to(self, delta_px: float) -> None:
        """Update the preview from the pointer's total offset since the drag began."""
        self.state = update_drag(self.state, delta_px, self._drag_days_per_pixel)

    def cancel_drag(self) -> None:
        self.state = cancel_drag(self.state)

    async def finish_drag(self) -> ActionResult[ScheduleItem] | None:
        """Submit the previewed span. Returns None when there was nothing to submit."""
        try:
            self.state, commit = end_drag(self.state)
        except GanttError as e:
            self.state = cancel_drag(self.state)
            return self._rejected(e)
        if commit is None:
            return None

        logger.changes(
            "Reschedule %s: %s .. %s", commit.item_id, commit.start_date, commit.end_date
        )
        result = await self.store.update_item_dates(
            commit.persistence_id, commit.start_date, commit.end_date, role=self.role
        )
        return await self._settle(result)

    # Hierarchy

    async def _submit_parent_change(self, change: ParentChange) -> ActionResult[ScheduleItem]:
        item_id = self._persistence_id(change.item_id) or change.item_id
        parent_id = self._persistence_id(change.new_parent_id)
        logger.changes("Reparent %s under %s", item_id, parent_id or "<root>")
        result = await self.store.update_item(
            item_id, ItemUpdate(parent_id=parent_id), role=self.role
        )
        return await self._settle(result)

    async def indent(self, item_id: str) -> ActionResult[ScheduleItem]:
        try:
            change = plan_indent(
                self._forest(), item_id, max_depth=self.config.hierarchy.max_depth
            )
        except GanttError as e:
            return self._rejected(e)
        return await self._submit_parent_change(change)

    async def outdent(self, item_id: str) -> ActionResult[ScheduleItem]:
        try:
            change = plan_outdent(
                self._forest(), item_id, max_depth=self.config.hierarchy.max_depth
            )
        except GanttError as e:
            return self._rejected(e)
        return await self._submit_parent_change(change)

    # Reorder

    async def _submit_order(self, ordered_ids: tuple[str, ...]) -> ActionResult[None]:
        forest = self._forest()
        submitted = [forest[item_id].persistence_id for item_id in ordered_ids]
        logger.changes("Reorder: %s", ", ".join(submitted))
        result = await self.store.reorder_items(self.project_id, submitted, role=self.role)
        return await self._settle(result)

    async def move_up(self, item_id: str) -> ActionResult[None]:
        return await self._move(item_id, MoveDirection.UP)

    async def move_down(self, item_id: str) -> ActionResult[None]:
        return await self._move(item_id, MoveDirection.DOWN)

    async def _move(self, item_id: str, direction: MoveDirection) -> ActionResult[None]:
        try:
            ordered = plan_move(self._forest(), item_id, direction)
        except GanttError as e:
            return self._rejected(e)
        return await self._submit_order(ordered)

    async def drop_reorder(
        self, dragged_id: str, target_id: str, pointer_y: float
    ) -> ActionResult[None]:
        """Drop a dragged row onto a target row at a pointer position."""
        layout = self.layout()
        row = layout.row_for(target_id)
        if row is None:
            return self._rejected(GanttError(f"Timeline item not visible: {target_id}"))
        forest = self._forest()
        try:
            ordered = plan_drop(
                forest, dragged_id, row.item.id, pointer_y, row.top, layout.row_height
            )
        except GanttError as e:
            return self._rejected(e)

        dragged = forest[dragged_id]
        current = tuple(
            sibling.id for sibling in forest.siblings(dragged) if not sibling.is_phase
        )
        if ordered == current:
            return ActionResult.ok()
        return await self._submit_order(ordered)

    # Dependencies

    def link_selected(self) -> bool:
        """Open the relationship editor for the two selected items."""
        try:
            self.state = open_link_dialog(self.state, self.decorated_items())
        except GanttError as e:
            self._rejected(e)
            return False
        return True

    def edit_dependency(self, dependency_id: str) -> bool:
        dependency = next((d for d in self.dependencies if d.id == dependency_id), None)
        if dependency is None:
            self._failed("Dependency not found")
            return False
        self.state = open_dependency_editor(self.state, dependency)
        return True

    def update_dialog(
        self, *, dep_type: DependencyType | None = None, lag_days: int | None = None
    ) -> None:
        self.state = update_dialog(self.state, dep_type=dep_type, lag_days=lag_days)

    def close_dialog(self) -> None:
        self.state = close_dialog(self.state)

    async def save_dependency(
        self, dep_type: DependencyType | None = None, lag_days: int | None = None
    ) -> ActionResult[Dependency]:
        """Create or update the dependency described by the open dialog.

        A successful create clears the selection it was made from. The
        dialog is closed after the call completes, success or not, provided
        it is still the dialog this call was made for.
        """
        self.update_dialog(dep_type=dep_type, lag_days=lag_days)
        dialog = self.state.dialog
        if dialog is None:
            return self._failed("No dependency dialog is open")
        selection = self.state.selected_ids

        update: DependencyUpdate | None = None
        payload: DependencyInput | None = None
        try:
            validate_dialog(dialog)
            if dialog.dependency_id is not None:
                update = DependencyUpdate(type=dialog.type, lag_days=dialog.lag_days)
            else:
                payload = DependencyInput(
                    project_id=self.project_id,
                    source_id=self._persistence_id(dialog.source_id) or dialog.source_id,
                    target_id=self._persistence_id(dialog.target_id) or dialog.target_id,
                    type=dialog.type,
                    lag_days=dialog.lag_days,
                )
        except (GanttError, ValueError) as e:
            return self._rejected(e)

        if dialog.dependency_id is not None and update is not None:
            logger.changes("Update dependency %s", dialog.dependency_id)
            result = await self.store.update_dependency(
                dialog.dependency_id, update, role=self.role
            )
        elif payload is not None:
            logger.changes(
                "Link %s -> %s (%s)", dialog.source_id, dialog.target_id, dialog.type.short_label
            )
            result = await self.store.create_dependency(payload, role=self.role)
        else:
            return self._failed("No dependency to save")

        self.state = close_dialog(self.state, dialog.session)
        if result.success and not dialog.is_edit and self.state.selected_ids == selection:
            self.state = replace(self.state, selected_ids=())
        return await self._settle(result)

    async def delete_dependency(self, dependency_id: str | None = None) -> ActionResult[None]:
        """Delete a dependency, by default the one open in the editor."""
        dialog = self.state.dialog
        if dependency_id is None:
            dependency_id = dialog.dependency_id if dialog else None
        if dependency_id is None:
            return self._failed("No dependency selected")

        logger.changes("Delete dependency %s", dependency_id)
        result = await self.store.delete_dependency(dependency_id, role=self.role)
        if dialog is not None:
            self.state = close_dialog(self.state, dialog.session)
        return await self._settle(result)

    # Item CRUD

    async def create_item(self, item: ItemInput) -> ActionResult[ScheduleItem]:
        if item.kind is ItemKind.PHASE:
            return self._rejected(
                PhaseMutationError("Phases are fixed and cannot be created manually")
            )
        logger.changes("Create %s %r", item.kind.value, item.name)
        result = await self.store.create_item(item, role=self.role)
        return await self._settle(result)

    async def update_item(self, item_id: str, update: ItemUpdate) -> ActionResult[ScheduleItem]:
        if "parent_id" in update.model_fields_set:
            try:
                validate_reparent(
                    self._forest(),
                    item_id,
                    update.parent_id,
                    max_depth=self.config.hierarchy.max_depth,
                )
            except GanttError as e:
                return self._rejected(e)
            update = update.model_copy(
                update={"parent_id": self._persistence_id(update.parent_id)}
            )

        target = self._persistence_id(item_id) or item_id
        logger.changes("Update %s: %s", target, ", ".join(sorted(update.model_fields_set)))
        result = await self.store.update_item(target, update, role=self.role)
        return await self._settle(result)

    async def delete_item(self, item_id: str) -> ActionResult[None]:
        item = self._forest().get(item_id)
        if item is not None and item.is_phase:
            return self._rejected(PhaseMutationError("Fixed phases cannot be deleted"))
        target = item.persistence_id if item else item_id
        logger.changes("Delete %s", target)
        result = await self.store.delete_item(target, role=self.role)
        return await self._settle(result)
