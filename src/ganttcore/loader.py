"""Timeline file loading."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config import GanttConfig, find_config, load_config
from .exceptions import ParseError
from .hierarchy import ItemForest
from .logger import get_logger
from .models import Dependency, ScheduleItem
from .persistence import InMemoryTimelineStore
from .schemas import TimelineSchema

logger = get_logger()


def _empty_measurements() -> dict[str, float | None]:
    return {}


@dataclass(frozen=True)
class TimelineData:
    """A parsed timeline file: one project's items, dependencies and measurements."""

    project_id: str
    items: tuple[ScheduleItem, ...] = ()
    dependencies: tuple[Dependency, ...] = ()
    measurements: dict[str, float | None] = field(default_factory=_empty_measurements)

    def to_store(self, **kwargs: Any) -> InMemoryTimelineStore:
        """Seed an in-memory store with this timeline."""
        store = InMemoryTimelineStore(**kwargs)
        for item in self.items:
            store.add_item(item)
        for dependency in self.dependencies:
            store.add_dependency(dependency)
        for measurement_id, value in self.measurements.items():
            store.set_measurement(measurement_id, value)
        return store


def parse_timeline(data: dict[str, Any]) -> TimelineData:
    """Build a TimelineData from already-loaded YAML.

    Raises:
        ParseError: Schema violations or dependencies on unknown items
    """
    try:
        schema = TimelineSchema.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid timeline file: {e}") from e

    project_id = schema.project
    sibling_counts: dict[str | None, int] = {}
    items: list[ScheduleItem] = []
    for item_id, entry in schema.items.items():
        if entry.parent is not None and entry.parent not in schema.items:
            logger.warning("Item %s has unknown parent %s", item_id, entry.parent)

        sibling_counts[entry.parent] = sibling_counts.get(entry.parent, 0) + 1
        items.append(
            ScheduleItem(
                id=item_id,
                project_id=project_id,
                name=entry.name,
                kind=entry.kind,
                phase_key=entry.phase,
                start_date=entry.start,
                end_date=entry.end,
                parent_id=entry.parent,
                external_id=entry.external_id,
                sort_order=(
                    entry.sort_order
                    if entry.sort_order is not None
                    else sibling_counts[entry.parent]
                ),
                priority=entry.priority,
                progress_override=entry.progress,
                is_completed=entry.completed,
                is_editable=entry.editable,
                color=entry.color,
                linked_measurement_ids=tuple(entry.measurements),
            )
        )

    forest = ItemForest(items)
    items = [replace(item, hierarchy_level=forest.depth(item.id)) for item in items]

    dependencies: list[Dependency] = []
    for entry in schema.dependencies:
        for endpoint in (entry.source, entry.target):
            if endpoint not in forest:
                raise ParseError(
                    f"Dependency {entry.source} -> {entry.target} "
                    f"references unknown item: {endpoint}"
                )
        if forest.resolve(entry.source) == forest.resolve(entry.target):
            raise ParseError(f"Cannot create a dependency to itself: {entry.source}")
        dependencies.append(
            Dependency(
                id=entry.id or f"{entry.source}->{entry.target}",
                project_id=project_id,
                source_id=entry.source,
                target_id=entry.target,
                type=entry.type,
                lag_days=entry.lag,
            )
        )

    return TimelineData(
        project_id=project_id,
        items=tuple(items),
        dependencies=tuple(dependencies),
        measurements=dict(schema.measurements),
    )


def load_timeline(path: Path | str) -> TimelineData:
    """Load a timeline YAML file.

    Raises:
        ParseError: Missing file, malformed YAML or invalid content
    """
    path = Path(path)
    if not path.exists():
        raise ParseError(f"File not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level")

    timeline = parse_timeline(data)  # type: ignore[arg-type]
    logger.debug(
        "Loaded %s: %d items, %d dependencies",
        path,
        len(timeline.items),
        len(timeline.dependencies),
    )
    return timeline


def discover_config(data_path: Path, config_path: Path | None = None) -> GanttConfig:
    """Find the configuration for a timeline file.

    Search order:
    1. Explicit config_path argument
    2. Timeline file directory / ganttcore.yaml
    3. Current directory / ganttcore.yaml

    Falls back to defaults when nothing is found.
    """
    if config_path is not None:
        return load_config(config_path)

    found = find_config(Path(data_path).parent)
    if found is not None:
        logger.debug("Using config %s", found)
        return load_config(found)
    return GanttConfig()
