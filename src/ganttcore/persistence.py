"""Persistence contracts and an in-memory reference store.

The engine never persists anything itself. Every mutation goes through a
TimelinePersistence implementation, whose methods are coroutines returning
an ActionResult. Authorization and transport failures come back as
ActionResult(success=False, error=...), never as exceptions.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, Field

from .config import AccessConfig
from .exceptions import HierarchyError
from .hierarchy import ItemForest, shift_subtree_levels, validate_reparent
from .logger import get_logger
from .models import (
    FIXED_PHASES,
    MAX_HIERARCHY_DEPTH,
    MAX_LAG_DAYS,
    MIN_LAG_DAYS,
    Dependency,
    DependencyType,
    ItemKind,
    PhaseKey,
    Priority,
    ScheduleItem,
)

logger = get_logger()

T = TypeVar("T")

NOT_AUTHENTICATED = "Not authenticated"


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Outcome of a persistence call."""

    success: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> ActionResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> ActionResult[T]:
        return cls(success=False, error=error)


def _check_span(start: date | None, end: date | None) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("End date must be on or after start date")


class ItemInput(BaseModel):
    """Fields for a new timeline item."""

    project_id: str
    name: str
    kind: ItemKind = ItemKind.TASK
    start_date: date
    end_date: date
    phase_key: PhaseKey | None = None
    parent_id: str | None = None
    external_id: str | None = None
    priority: Priority = Priority.NORMAL
    progress_override: int | None = Field(default=None, ge=0, le=100)
    is_completed: bool = False
    color: str | None = None
    linked_measurement_ids: list[str] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        """Validate configuration after initialization."""
        _check_span(self.start_date, self.end_date)


class ItemUpdate(BaseModel):
    """Partial update. Only fields explicitly set are applied.

    Passing parent_id=None explicitly moves the item to the top level;
    omitting it leaves the parent unchanged.
    """

    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    parent_id: str | None = None
    priority: Priority | None = None
    progress_override: int | None = Field(default=None, ge=0, le=100)
    is_completed: bool | None = None
    color: str | None = None
    linked_measurement_ids: list[str] | None = None

    def model_post_init(self, __context: Any) -> None:
        """Validate configuration after initialization."""
        _check_span(self.start_date, self.end_date)


class DependencyInput(BaseModel):
    """Fields for a new dependency."""

    project_id: str
    source_id: str
    target_id: str
    type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = Field(default=0, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)


class DependencyUpdate(BaseModel):
    """Partial dependency update."""

    type: DependencyType | None = None
    lag_days: int | None = Field(default=None, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)


class TimelinePersistence(Protocol):
    """Operations the controller needs from its storage collaborator."""

    async def list_items(self, project_id: str) -> ActionResult[list[ScheduleItem]]: ...

    async def list_dependencies(self, project_id: str) -> ActionResult[list[Dependency]]: ...

    async def list_measurements(
        self, project_id: str
    ) -> ActionResult[dict[str, float | None]]: ...

    async def create_item(
        self, item: ItemInput, *, role: str | None
    ) -> ActionResult[ScheduleItem]: ...

    async def update_item(
        self, item_id: str, update: ItemUpdate, *, role: str | None
    ) -> ActionResult[ScheduleItem]: ...

    async def update_item_dates(
        self, item_id: str, start_date: date, end_date: date, *, role: str | None
    ) -> ActionResult[ScheduleItem]: ...

    async def delete_item(self, item_id: str, *, role: str | None) -> ActionResult[None]: ...

    async def reorder_items(
        self, project_id: str, ordered_ids: Sequence[str], *, role: str | None
    ) -> ActionResult[None]: ...

    async def create_dependency(
        self, dependency: DependencyInput, *, role: str | None
    ) -> ActionResult[Dependency]: ...

    async def update_dependency(
        self, dependency_id: str, update: DependencyUpdate, *, role: str | None
    ) -> ActionResult[Dependency]: ...

    async def delete_dependency(
        self, dependency_id: str, *, role: str | None
    ) -> ActionResult[None]: ...


def _sequential_ids(prefix: str) -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


class InMemoryTimelineStore:
    """Dictionary-backed TimelinePersistence.

    Enforces the same rules a real backend would: role checks, fixed phases,
    reparenting children on delete, cascading dependency deletes, 1-based
    reorder and parent-chain validation. Every call is recorded in
    call_log so callers can assert what reached storage.
    """

    def __init__(
        self,
        *,
        access: AccessConfig | None = None,
        max_depth: int = MAX_HIERARCHY_DEPTH,
    ) -> None:
        self.access = access or AccessConfig()
        self.max_depth = max_depth
        self.call_log: list[str] = []
        self._items: dict[str, ScheduleItem] = {}
        self._dependencies: dict[str, Dependency] = {}
        self._measurements: dict[str, float | None] = {}
        self._next_item_id = _sequential_ids("item")
        self._next_dependency_id = _sequential_ids("dep")

    # Seeding

    def add_item(self, item: ScheduleItem) -> None:
        """Store an item as-is, bypassing validation."""
        self._items[item.id] = item

    def add_dependency(self, dependency: Dependency) -> None:
        """Store a dependency as-is, bypassing validation."""
        self._dependencies[dependency.id] = dependency

    def set_measurement(self, measurement_id: str, value: float | None) -> None:
        self._measurements[measurement_id] = value

    def ensure_fixed_phases(
        self, project_id: str, start_date: date, end_date: date
    ) -> list[ScheduleItem]:
        """Create whichever of the four fixed phases the project is missing.

        Returns:
            The phases that were created
        """
        existing = {
            item.phase_key
            for item in self._items.values()
            if item.project_id == project_id and item.is_phase
        }
        created: list[ScheduleItem] = []
        for phase in FIXED_PHASES:
            if phase.key in existing:
                continue
            item = ScheduleItem(
                id=f"{project_id}-{phase.key.value}",
                project_id=project_id,
                name=phase.name,
                kind=ItemKind.PHASE,
                phase_key=phase.key,
                start_date=start_date,
                end_date=end_date,
                sort_order=phase.order,
                color=phase.color,
            )
            self._items[item.id] = item
            created.append(item)
        if created:
            logger.changes("Seeded %d fixed phases for %s", len(created), project_id)
        return created

    # Helpers

    def _project_items(self, project_id: str) -> list[ScheduleItem]:
        return [item for item in self._items.values() if item.project_id == project_id]

    def _forest(self, project_id: str) -> ItemForest:
        return ItemForest(self._project_items(project_id), max_depth=self.max_depth)

    def _denied(self, role: str | None, action: str) -> str | None:
        if role is None:
            return NOT_AUTHENTICATED
        if not self.access.is_authorized(role):
            return f"Only PM and Admin can {action}"
        return None

    def _next_sort_order(self, project_id: str, parent_id: str | None) -> int:
        orders = [
            item.sort_order
            for item in self._project_items(project_id)
            if item.parent_id == parent_id
        ]
        return max(orders, default=0) + 1

    def _replace_items(self, items: Sequence[ScheduleItem]) -> None:
        for item in items:
            self._items[item.id] = item

    # Queries

    async def list_items(self, project_id: str) -> ActionResult[list[ScheduleItem]]:
        self.call_log.append("list_items")
        return ActionResult.ok(self._project_items(project_id))

    async def list_dependencies(self, project_id: str) -> ActionResult[list[Dependency]]:
        self.call_log.append("list_dependencies")
        return ActionResult.ok(
            [dep for dep in self._dependencies.values() if dep.project_id == project_id]
        )

    async def list_measurements(self, project_id: str) -> ActionResult[dict[str, float | None]]:
        self.call_log.append("list_measurements")
        return ActionResult.ok(dict(self._measurements))

    # Item mutations

    async def create_item(
        self, item: ItemInput, *, role: str | None
    ) -> ActionResult[ScheduleItem]:
        self.call_log.append("create_item")
        if denied := self._denied(role, "create timeline items"):
            return ActionResult.fail(denied)
        if item.kind is ItemKind.PHASE:
            return ActionResult.fail("Phases are fixed and cannot be created manually")

        level = 0
        if item.parent_id is not None:
            forest = self._forest(item.project_id)
            parent = forest.get(item.parent_id)
            if parent is None:
                return ActionResult.fail("Parent item not found")
            if parent.is_milestone:
                return ActionResult.fail("Milestones cannot have children")
            level = forest.depth(parent.id) + 1
            if level > self.max_depth:
                return ActionResult.fail(f"Maximum nesting depth ({self.max_depth}) exceeded")

        created = ScheduleItem(
            id=self._next_item_id(),
            project_id=item.project_id,
            name=item.name,
            kind=item.kind,
            phase_key=item.phase_key,
            start_date=item.start_date,
            end_date=item.end_date,
            parent_id=item.parent_id,
            external_id=item.external_id,
            hierarchy_level=level,
            sort_order=self._next_sort_order(item.project_id, item.parent_id),
            priority=item.priority,
            progress_override=item.progress_override,
            is_completed=item.is_completed,
            color=item.color,
            linked_measurement_ids=tuple(item.linked_measurement_ids),
        )
        self._items[created.id] = created
        logger.changes("Created %s %r (%s)", created.kind.value, created.name, created.id)
        return ActionResult.ok(created)

    async def update_item(
        self, item_id: str, update: ItemUpdate, *, role: str | None
    ) -> ActionResult[ScheduleItem]:
        self.call_log.append("update_item")
        if denied := self._denied(role, "update timeline items"):
            return ActionResult.fail(denied)
        existing = self._items.get(item_id)
        if existing is None:
            return ActionResult.fail("Timeline item not found")

        fields = update.model_fields_set
        changes: dict[str, Any] = {
            name: getattr(update, name)
            for name in (
                "name",
                "start_date",
                "end_date",
                "priority",
                "progress_override",
                "is_completed",
                "color",
            )
            if name in fields
        }
        if "linked_measurement_ids" in fields:
            changes["linked_measurement_ids"] = tuple(update.linked_measurement_ids or ())

        start = changes.get("start_date", existing.start_date)
        end = changes.get("end_date", existing.end_date)
        if start is None or end is None or end < start:
            return ActionResult.fail("End date must be on or after start date")
        for required in ("name", "priority", "is_completed"):
            if required in changes and changes[required] is None:
                del changes[required]

        items = self._project_items(existing.project_id)
        if "parent_id" in fields and update.parent_id != existing.parent_id:
            if existing.is_phase:
                return ActionResult.fail("Fixed phases cannot be moved")
            forest = ItemForest(items, max_depth=self.max_depth)
            try:
                new_level = validate_reparent(
                    forest, item_id, update.parent_id, max_depth=self.max_depth
                )
            except HierarchyError as e:
                logger.checks("Rejected reparent of %s: %s", item_id, e)
                return ActionResult.fail(str(e))
            parent_id = forest.resolve(update.parent_id) if update.parent_id else None
            items = shift_subtree_levels(items, item_id, new_level)
            changes["parent_id"] = parent_id
            changes["sort_order"] = self._next_sort_order(existing.project_id, parent_id)

        self._replace_items(items)
        updated = replace(self._items[item_id], **changes)
        self._items[item_id] = updated
        logger.changes("Updated %s: %s", item_id, ", ".join(sorted(changes)) or "no changes")
        return ActionResult.ok(updated)

    async def update_item_dates(
        self, item_id: str, start_date: date, end_date: date, *, role: str | None
    ) -> ActionResult[ScheduleItem]:
        """Shortcut used by drag-to-reschedule."""
        return await self.update_item(
            item_id, ItemUpdate(start_date=start_date, end_date=end_date), role=role
        )

    async def delete_item(self, item_id: str, *, role: str | None) -> ActionResult[None]:
        self.call_log.append("delete_item")
        if denied := self._denied(role, "delete timeline items"):
            return ActionResult.fail(denied)
        existing = self._items.get(item_id)
        if existing is None:
            return ActionResult.fail("Timeline item not found")
        if existing.is_phase:
            return ActionResult.fail("Fixed phases cannot be deleted")

        # Children move up to the deleted item's parent
        items = self._project_items(existing.project_id)
        forest = ItemForest(items, max_depth=self.max_depth)
        for child in forest.children(item_id):
            items = shift_subtree_levels(items, child.id, existing.hierarchy_level)
        self._replace_items(items)
        for child in forest.children(item_id):
            self._items[child.id] = replace(self._items[child.id], parent_id=existing.parent_id)

        del self._items[item_id]
        removed = [
            dep.id
            for dep in self._dependencies.values()
            if item_id in (dep.source_id, dep.target_id)
        ]
        for dep_id in removed:
            del self._dependencies[dep_id]

        logger.changes(
            "Deleted %s (%d children reparented, %d dependencies removed)",
            item_id,
            len(forest.children(item_id)),
            len(removed),
        )
        return ActionResult.ok()

    async def reorder_items(
        self, project_id: str, ordered_ids: Sequence[str], *, role: str | None
    ) -> ActionResult[None]:
        self.call_log.append("reorder_items")
        if role is None:
            return ActionResult.fail(NOT_AUTHENTICATED)
        if any(
            item_id not in self._items or self._items[item_id].project_id != project_id
            for item_id in ordered_ids
        ):
            return ActionResult.fail("Failed to reorder items")

        for position, item_id in enumerate(ordered_ids, start=1):
            self._items[item_id] = replace(self._items[item_id], sort_order=position)
        logger.changes("Reordered %d items in %s", len(ordered_ids), project_id)
        return ActionResult.ok()

    # Dependency mutations

    async def create_dependency(
        self, dependency: DependencyInput, *, role: str | None
    ) -> ActionResult[Dependency]:
        self.call_log.append("create_dependency")
        if denied := self._denied(role, "create dependencies"):
            return ActionResult.fail(denied)
        if dependency.source_id == dependency.target_id:
            return ActionResult.fail("Cannot create a dependency to itself")
        forest = self._forest(dependency.project_id)
        if dependency.source_id not in forest or dependency.target_id not in forest:
            return ActionResult.fail("Timeline item not found")

        created = Dependency(
            id=self._next_dependency_id(),
            project_id=dependency.project_id,
            source_id=dependency.source_id,
            target_id=dependency.target_id,
            type=dependency.type,
            lag_days=dependency.lag_days,
        )
        self._dependencies[created.id] = created
        logger.changes(
            "Linked %s -> %s (%s, lag %d)",
            created.source_id,
            created.target_id,
            created.type.short_label,
            created.lag_days,
        )
        return ActionResult.ok(created)

    async def update_dependency(
        self, dependency_id: str, update: DependencyUpdate, *, role: str | None
    ) -> ActionResult[Dependency]:
        self.call_log.append("update_dependency")
        if denied := self._denied(role, "update dependencies"):
            return ActionResult.fail(denied)
        existing = self._dependencies.get(dependency_id)
        if existing is None:
            return ActionResult.fail("Dependency not found")

        changes: dict[str, Any] = {}
        if update.type is not None:
            changes["type"] = update.type
        if update.lag_days is not None:
            changes["lag_days"] = update.lag_days
        updated = replace(existing, **changes)
        self._dependencies[dependency_id] = updated
        logger.changes("Updated dependency %s", dependency_id)
        return ActionResult.ok(updated)

    async def delete_dependency(
        self, dependency_id: str, *, role: str | None
    ) -> ActionResult[None]:
        self.call_log.append("delete_dependency")
        if denied := self._denied(role, "delete dependencies"):
            return ActionResult.fail(denied)
        if dependency_id not in self._dependencies:
            return ActionResult.fail("Dependency not found")
        del self._dependencies[dependency_id]
        logger.changes("Deleted dependency %s", dependency_id)
        return ActionResult.ok()
