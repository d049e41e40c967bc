"""Layout pipeline: raw snapshot plus interaction state to renderable geometry.

build_layout() is the single entry point a renderer needs. It is a pure
re-derivation of everything from its inputs; nothing is cached between
calls, so zoom, view-mode, collapse and date edits are always reflected.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from .config import GanttConfig
from .hierarchy import ItemForest, decorate_items, display_order, visible_items
from .interaction import InteractionState
from .logger import get_logger
from .models import DateRange, DateSpan, Dependency, ScheduleItem, ViewMode
from .router import BarBox, ConnectorPath, route_dependencies
from .temporal import (
    BarGeometry,
    Column,
    ColumnGroup,
    calculate_bar_position,
    calculate_work_days,
    column_width,
    compute_date_range,
    days_per_pixel,
    generate_columns,
    group_columns_by_month,
    pixels_per_day,
    zoom_level,
)

logger = get_logger()


@dataclass(frozen=True, slots=True)
class RowLayout:
    """One visible row: the decorated item and its bar."""

    item: ScheduleItem
    index: int
    top: float
    span: DateSpan  # Drag preview span when this item is being dragged
    bar: BarGeometry
    work_days: int
    has_children: bool
    is_collapsed: bool
    is_selected: bool
    is_preview: bool


@dataclass(frozen=True, slots=True)
class TimelineLayout:
    """Complete geometry for one render of the timeline."""

    view_mode: ViewMode
    date_range: DateRange
    zoom: float
    column_width: int
    total_width: float
    row_height: int
    columns: tuple[Column, ...]
    column_groups: tuple[ColumnGroup, ...]
    rows: tuple[RowLayout, ...]
    connectors: tuple[ConnectorPath, ...]

    @property
    def total_height(self) -> float:
        return len(self.rows) * self.row_height

    @property
    def pixels_per_day(self) -> float:
        return pixels_per_day(self.date_range, self.total_width)

    @property
    def days_per_pixel(self) -> float:
        return days_per_pixel(self.date_range, self.total_width)

    @property
    def visible_items(self) -> list[ScheduleItem]:
        return [row.item for row in self.rows]

    def row_for(self, item_id: str) -> RowLayout | None:
        for row in self.rows:
            if item_id in row.item.lookup_ids:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "view_mode": self.view_mode.value,
            "date_range": {
                "start": self.date_range.start.isoformat(),
                "end": self.date_range.end.isoformat(),
            },
            "zoom": self.zoom,
            "column_width": self.column_width,
            "total_width": self.total_width,
            "total_height": self.total_height,
            "columns": [
                {
                    "date": column.date.isoformat(),
                    "label": column.label,
                    "is_today": column.is_today,
                    "is_weekend": column.is_weekend,
                }
                for column in self.columns
            ],
            "column_groups": [
                {"label": group.label, "columns": len(group.columns)}
                for group in self.column_groups
            ],
            "rows": [
                {
                    "id": row.item.id,
                    "name": row.item.name,
                    "kind": row.item.kind.value,
                    "level": row.item.hierarchy_level,
                    "start": row.span.start.isoformat(),
                    "end": row.span.end.isoformat(),
                    "progress": row.item.progress,
                    "priority": row.item.priority.label,
                    "work_days": row.work_days,
                    "top": row.top,
                    "left": round(row.bar.left, 2),
                    "width": round(row.bar.width, 2),
                    "has_children": row.has_children,
                    "collapsed": row.is_collapsed,
                }
                for row in self.rows
            ],
            "connectors": [
                {
                    "id": connector.dependency_id,
                    "type": connector.type.short_label,
                    "color": connector.color,
                    "dash": connector.dash_pattern,
                    "label": connector.label,
                    "path": connector.to_svg_path(),
                }
                for connector in self.connectors
            ],
        }


def build_layout(  # noqa: PLR0913
    items: Sequence[ScheduleItem],
    dependencies: Sequence[Dependency],
    state: InteractionState,
    *,
    measurements: Mapping[str, float | None] | None = None,
    config: GanttConfig | None = None,
    today: date | None = None,
) -> TimelineLayout:
    """Run the whole pipeline.

    decorate (progress, spans, levels) -> display order -> collapse filter
    -> date range and columns -> bars (drag preview overlaid) -> connectors.

    Args:
        items: Raw item snapshot
        dependencies: Dependency snapshot
        state: Current interaction state
        measurements: Linked measurement completion values
        config: Layout and routing settings
        today: Reference date (defaults to date.today())

    Returns:
        The computed layout
    """
    config = config or GanttConfig()
    today = today or date.today()  # noqa: DTZ011
    layout_config = config.layout

    decorated = decorate_items(items, measurements, max_depth=config.hierarchy.max_depth)
    ordered = display_order(decorated, hide_empty_phases=layout_config.hide_empty_phases)
    shown = visible_items(ordered, state.collapsed_ids)
    forest = ItemForest(decorated, max_depth=config.hierarchy.max_depth)

    date_range = compute_date_range(decorated, state.view_mode, today=today)
    columns = generate_columns(date_range, state.view_mode, today=today)
    zoom = zoom_level(state.zoom_index, layout_config.zoom_levels)
    col_width = column_width(state.view_mode, zoom, layout_config.column_widths)
    total_width = len(columns) * col_width
    row_height = layout_config.row_height

    drag = state.drag
    rows: list[RowLayout] = []
    bar_boxes: dict[str, BarBox] = {}
    for index, item in enumerate(shown):
        span = item.span
        is_preview = False
        if drag is not None and drag.item_id == item.id and drag.preview is not None:
            span = drag.preview
            is_preview = True
        bar = calculate_bar_position(
            span, date_range, total_width, min_width=layout_config.min_bar_width
        )
        top = index * row_height
        rows.append(
            RowLayout(
                item=item,
                index=index,
                top=top,
                span=span,
                bar=bar,
                work_days=calculate_work_days(span.start, span.end, state.weekend_settings),
                has_children=forest.has_children(item.id),
                is_collapsed=state.is_collapsed(item.id),
                is_selected=state.is_selected(item.id),
                is_preview=is_preview,
            )
        )
        box = BarBox(left=bar.left, width=bar.width, top=top)
        for lookup_id in item.lookup_ids:
            bar_boxes[lookup_id] = box

    connectors = route_dependencies(
        dependencies, bar_boxes, row_height, **config.routing.as_kwargs()
    )

    logger.debug(
        "Layout: %d columns x %dpx, %d/%d rows visible, %d connectors",
        len(columns),
        col_width,
        len(rows),
        len(decorated),
        len(connectors),
    )

    return TimelineLayout(
        view_mode=state.view_mode,
        date_range=date_range,
        zoom=zoom,
        column_width=col_width,
        total_width=total_width,
        row_height=row_height,
        columns=tuple(columns),
        column_groups=tuple(group_columns_by_month(columns)),
        rows=tuple(rows),
        connectors=tuple(connectors),
    )
