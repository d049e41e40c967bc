"""Hierarchy and progress engine.

The schedule forest is held as a flat map keyed by id plus a derived
children index (ItemForest). Ancestor walks are bounded by the maximum
nesting depth so corrupted, cyclic input cannot hang them.

Progress and normalized parent spans are view-model decorations: they are
recomputed on every read by decorate_items() and never written back.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import replace

from .exceptions import (
    CircularParentError,
    HierarchyError,
    MaxDepthExceededError,
    MilestoneParentError,
)
from .logger import get_logger
from .models import MAX_HIERARCHY_DEPTH, PHASE_ORDER, DateSpan, ItemKind, ScheduleItem

logger = get_logger()

MAX_PROGRESS = 100


def rounded_mean(values: Sequence[float]) -> int:
    """Arithmetic mean rounded half-up to an integer; 0 for no values."""
    if not values:
        return 0
    return int(math.floor(sum(values) / len(values) + 0.5))


def _sibling_key(item: ScheduleItem) -> tuple[int, str]:
    return (item.sort_order, item.name)


class ItemForest:
    """Read-only parent-pointer view over a snapshot of schedule items."""

    def __init__(
        self, items: Iterable[ScheduleItem], *, max_depth: int = MAX_HIERARCHY_DEPTH
    ) -> None:
        self.max_depth = max_depth
        self._items: dict[str, ScheduleItem] = {}
        self._aliases: dict[str, str] = {}
        for item in items:
            self._items[item.id] = item
            if item.external_id:
                self._aliases.setdefault(item.external_id, item.id)

        self._children: dict[str | None, list[ScheduleItem]] = {}
        for item in self._items.values():
            parent_key = item.parent_id
            if parent_key is not None:
                parent_key = self.resolve(parent_key) or parent_key
            self._children.setdefault(parent_key, []).append(item)
        for siblings in self._children.values():
            siblings.sort(key=_sibling_key)

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.resolve(item_id) is not None

    def __iter__(self) -> Iterator[ScheduleItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def resolve(self, item_id: str) -> str | None:
        """Map an item id or external id to the item id."""
        if item_id in self._items:
            return item_id
        return self._aliases.get(item_id)

    def get(self, item_id: str | None) -> ScheduleItem | None:
        if item_id is None:
            return None
        resolved = self.resolve(item_id)
        return self._items[resolved] if resolved is not None else None

    def __getitem__(self, item_id: str) -> ScheduleItem:
        item = self.get(item_id)
        if item is None:
            raise KeyError(item_id)
        return item

    def children(self, item_id: str | None) -> list[ScheduleItem]:
        """Direct children ordered by (sort_order, name). None gives top-level items."""
        if item_id is not None:
            # Children of a missing parent stay filed under the raw id
            item_id = self.resolve(item_id) or item_id
        return list(self._children.get(item_id, []))

    def has_children(self, item_id: str) -> bool:
        return bool(self.children(item_id))

    def siblings(self, item: ScheduleItem) -> list[ScheduleItem]:
        """Items sharing the item's parent, including the item itself."""
        return self.children(item.parent_id)

    def parent(self, item_id: str) -> ScheduleItem | None:
        item = self.get(item_id)
        return self.get(item.parent_id) if item else None

    def ancestors(self, item_id: str) -> list[ScheduleItem]:
        """Ancestors from nearest to root.

        The walk stops after max_depth + 1 steps, or on revisiting a node,
        so cyclic input still terminates.
        """
        result: list[ScheduleItem] = []
        seen = {item_id}
        current = self.parent(item_id)
        while current is not None and len(result) <= self.max_depth:
            if current.id in seen:
                break
            result.append(current)
            seen.add(current.id)
            current = self.get(current.parent_id)
        return result

    def depth(self, item_id: str) -> int:
        """Hierarchy level derived from the parent chain (0 for roots)."""
        return len(self.ancestors(item_id))

    def descendants(self, item_id: str) -> list[ScheduleItem]:
        """All descendants in depth-first order, walked with an explicit stack."""
        result: list[ScheduleItem] = []
        seen = {item_id}
        stack = list(reversed(self.children(item_id)))
        while stack:
            node = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            result.append(node)
            stack.extend(reversed(self.children(node.id)))
        return result

    def subtree_height(self, item_id: str) -> int:
        """Number of levels below the item (0 for a leaf)."""
        height = 0
        seen = {item_id}
        stack = [(child, 1) for child in self.children(item_id)]
        while stack:
            node, level = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            height = max(height, level)
            stack.extend((child, level + 1) for child in self.children(node.id))
        return height

    def is_hidden(self, item_id: str, collapsed_ids: frozenset[str] | set[str]) -> bool:
        """Whether any ancestor of the item is collapsed."""
        return any(ancestor.id in collapsed_ids for ancestor in self.ancestors(item_id))


def _base_progress(
    item: ScheduleItem,
    measurements: Mapping[str, float | None],
    child_progress: Sequence[int],
) -> int:
    """Apply the progress rules to one item whose children are already resolved."""
    if item.is_milestone:
        return MAX_PROGRESS if item.is_completed else 0

    # Phases are pure containers
    if item.is_phase:
        return rounded_mean(child_progress)

    linked = [
        measurements[measurement_id] or 0.0
        for measurement_id in item.linked_measurement_ids
        if measurement_id in measurements
    ]
    if linked:
        return rounded_mean(linked)
    if item.progress_override is not None:
        return item.progress_override
    if child_progress:
        return rounded_mean(child_progress)
    return 0


def decorate_items(
    items: Sequence[ScheduleItem],
    measurements: Mapping[str, float | None] | None = None,
    *,
    max_depth: int = MAX_HIERARCHY_DEPTH,
) -> list[ScheduleItem]:
    """Compute derived progress, parent spans and hierarchy levels.

    Items are resolved leaves first (deepest level first), so every parent
    sees its children's final progress and normalized span. A parent's span
    becomes [min(children.start), max(children.end)], overriding what was
    stored.

    Args:
        items: Snapshot of raw items
        measurements: Completion percentage per linked measurement id. Ids
            missing from the mapping are ignored; None counts as 0.
        max_depth: Bound for ancestor walks

    Returns:
        New records in input order; the input is not modified
    """
    measurements = measurements or {}
    forest = ItemForest(items, max_depth=max_depth)
    depths = {item.id: forest.depth(item.id) for item in forest}

    progress: dict[str, int] = {}
    spans: dict[str, DateSpan] = {}

    for item in sorted(forest, key=lambda i: depths[i.id], reverse=True):
        children = forest.children(item.id)
        child_progress = [progress.get(child.id, child.progress) for child in children]
        value = _base_progress(item, measurements, child_progress)
        progress[item.id] = max(0, min(MAX_PROGRESS, value))

        if children:
            child_spans = [spans.get(child.id, child.span) for child in children]
            spans[item.id] = DateSpan(
                start=min(span.start for span in child_spans),
                end=max(span.end for span in child_spans),
            )
        else:
            spans[item.id] = item.span

    logger.debug("Decorated %d items (max depth %d)", len(items), max(depths.values(), default=0))

    return [
        replace(
            item,
            progress=progress[item.id],
            start_date=spans[item.id].start,
            end_date=spans[item.id].end,
            hierarchy_level=depths[item.id],
        )
        for item in items
        if item.id in progress
    ]


def display_order(
    items: Sequence[ScheduleItem], *, hide_empty_phases: bool = False
) -> list[ScheduleItem]:
    """Order items for rendering.

    Phases first in canonical order (design, production, shipping,
    installation), each followed depth-first by its descendants; then
    top-level milestones; then parentless tasks; then anything left over
    (e.g. items whose parent is missing). Siblings sort by sort_order, ties
    broken by name.
    """
    forest = ItemForest(items)
    ordered: list[ScheduleItem] = []
    pushed: set[str] = set()

    def push_with_descendants(root: ScheduleItem) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.id in pushed:
                continue
            pushed.add(node.id)
            ordered.append(node)
            stack.extend(reversed(forest.children(node.id)))

    phases = sorted((item for item in forest if item.is_phase), key=_sibling_key)
    for key in PHASE_ORDER:
        for phase in phases:
            if phase.phase_key is key:
                if hide_empty_phases and not forest.has_children(phase.id):
                    pushed.add(phase.id)
                    continue
                push_with_descendants(phase)
                break

    top_level = forest.children(None)
    for kind in (ItemKind.MILESTONE, ItemKind.TASK):
        for item in top_level:
            if item.kind is kind:
                push_with_descendants(item)

    for item in items:
        if hide_empty_phases and item.is_phase and not forest.has_children(item.id):
            continue
        push_with_descendants(item)

    return ordered


def visible_items(
    ordered_items: Sequence[ScheduleItem], collapsed_ids: frozenset[str] | set[str]
) -> list[ScheduleItem]:
    """Drop every item that sits under a collapsed ancestor, keeping order."""
    if not collapsed_ids:
        return list(ordered_items)
    forest = ItemForest(ordered_items)
    return [item for item in ordered_items if not forest.is_hidden(item.id, collapsed_ids)]


def validate_reparent(
    forest: ItemForest,
    item_id: str,
    new_parent_id: str | None,
    *,
    max_depth: int | None = None,
) -> int:
    """Check that moving an item under a new parent keeps the forest valid.

    Walks the new parent's ancestor chain (at most max_depth + 1 steps)
    looking for the item itself, then checks that the moved subtree still
    fits within max_depth.

    Returns:
        The item's hierarchy level after the move

    Raises:
        HierarchyError: Unknown item or parent
        MilestoneParentError: The new parent is a milestone
        CircularParentError: The item would become its own ancestor
        MaxDepthExceededError: The subtree would nest deeper than max_depth
    """
    max_depth = forest.max_depth if max_depth is None else max_depth
    item = forest.get(item_id)
    if item is None:
        raise HierarchyError(f"Timeline item not found: {item_id}")
    if new_parent_id is None:
        new_level = 0
    else:
        parent = forest.get(new_parent_id)
        if parent is None:
            raise HierarchyError(f"Parent item not found: {new_parent_id}")
        if parent.is_milestone:
            raise MilestoneParentError()

        current: ScheduleItem | None = parent
        new_level = 0
        while current is not None and new_level < max_depth + 1:
            if current.id == item.id:
                raise CircularParentError()
            current = forest.get(current.parent_id)
            new_level += 1

        if new_level > max_depth:
            raise MaxDepthExceededError(max_depth)

    if new_level + forest.subtree_height(item.id) > max_depth:
        raise MaxDepthExceededError(max_depth)

    logger.checks(
        "Reparent %s -> %s accepted (level %d)", item.id, new_parent_id or "<root>", new_level
    )
    return new_level


def shift_subtree_levels(
    items: Sequence[ScheduleItem], root_id: str, new_level: int
) -> list[ScheduleItem]:
    """Rebase the hierarchy level of an item and all its descendants.

    Uses an explicit stack, so pathological trees cannot exhaust the call
    stack. Returns new records in input order.
    """
    forest = ItemForest(items)
    root = forest.get(root_id)
    if root is None:
        return list(items)

    delta = new_level - root.hierarchy_level
    if delta == 0:
        return list(items)

    affected = {root.id} | {node.id for node in forest.descendants(root.id)}
    return [
        replace(item, hierarchy_level=max(0, item.hierarchy_level + delta))
        if item.id in affected
        else item
        for item in items
    ]
