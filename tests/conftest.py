"""Pytest configuration and fixtures for ganttcore tests."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from ganttcore.logger import reset_logger
from ganttcore.models import (
    FIXED_PHASES,
    Dependency,
    DependencyType,
    ItemKind,
    PhaseKey,
    ScheduleItem,
)
from ganttcore.persistence import InMemoryTimelineStore

PROJECT = "proj-1"


def d(value: str | date) -> date:
    """Parse an ISO date string (dates pass through)."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def item(  # noqa: PLR0913 - mirrors ScheduleItem fields
    item_id: str,
    start: str | date = "2026-03-01",
    end: str | date = "2026-03-05",
    *,
    name: str | None = None,
    kind: ItemKind = ItemKind.TASK,
    parent: str | None = None,
    sort_order: int = 0,
    **kwargs: Any,
) -> ScheduleItem:
    """Create a schedule item with sensible defaults."""
    return ScheduleItem(
        id=item_id,
        name=name or item_id,
        kind=kind,
        start_date=d(start),
        end_date=d(end),
        parent_id=parent,
        sort_order=sort_order,
        project_id=kwargs.pop("project_id", PROJECT),
        **kwargs,
    )


def milestone(item_id: str, on: str | date = "2026-03-10", **kwargs: Any) -> ScheduleItem:
    """Create a one-day milestone."""
    return item(item_id, on, on, kind=ItemKind.MILESTONE, **kwargs)


def phase(
    key: PhaseKey, start: str | date = "2026-03-01", end: str | date = "2026-03-31"
) -> ScheduleItem:
    """Create one of the fixed phases."""
    definition = next(p for p in FIXED_PHASES if p.key is key)
    return item(
        key.value,
        start,
        end,
        name=definition.name,
        kind=ItemKind.PHASE,
        phase_key=key,
        sort_order=definition.order,
        color=definition.color,
    )


def link(
    source: str,
    target: str,
    dep_type: DependencyType = DependencyType.FINISH_TO_START,
    lag: int = 0,
) -> Dependency:
    """Create a dependency between two item ids."""
    return Dependency(
        id=f"{source}->{target}",
        project_id=PROJECT,
        source_id=source,
        target_id=target,
        type=dep_type,
        lag_days=lag,
    )


def chain(length: int) -> list[ScheduleItem]:
    """Items c0 > c1 > ... nested one under the other (c0 is the root)."""
    return [
        item(f"c{i}", parent=f"c{i - 1}" if i else None, hierarchy_level=i)
        for i in range(length)
    ]


@pytest.fixture(autouse=True)
def quiet_logger() -> None:
    """Reset the ganttcore logger before each test for isolation."""
    reset_logger()


@pytest.fixture
def store() -> InMemoryTimelineStore:
    """A store seeded with the fixed phases and three sibling tasks under production."""
    store = InMemoryTimelineStore()
    store.ensure_fixed_phases(PROJECT, d("2026-03-01"), d("2026-04-30"))
    for index, name in enumerate(("cut", "assemble", "finish"), start=1):
        store.add_item(
            item(
                name,
                "2026-03-02",
                "2026-03-06",
                parent=f"{PROJECT}-production",
                sort_order=index,
                hierarchy_level=1,
            )
        )
    return store
