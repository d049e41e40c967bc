"""Orthogonal connector routing for dependency arrows.

Each dependency becomes a ConnectorPath: an ordered list of MoveTo/LineTo/
QuadTo segments plus the anchor coordinates, stroke color and lag label.
The router is geometry only; it knows nothing about dates.

Routing by type and direction ("right" means the target anchor is at or to
the right of the source anchor):

    FS right   S-shape, vertical at the midpoint of the two lanes
    FS left    detour lane
    FF right   S-shape, vertical at the outer (rightmost) lane
    FF left    detour lane
    SS left    S-shape, vertical at the outer (leftmost) lane
    SS right   detour lane
    SF left    S-shape, vertical at the midpoint of the two lanes
    SF right   detour lane
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .logger import get_logger
from .models import Dependency, DependencyType

logger = get_logger()

HORIZONTAL_GAP = 15  # px between a bar edge and the first bend
VERTICAL_GAP = 5  # px between a row edge and a detour lane
CORNER_RADIUS = 5

DASH_PATTERN = "4 2"
LABEL_OFFSET_Y = 8

DEPENDENCY_COLORS: dict[DependencyType, str] = {
    DependencyType.FINISH_TO_START: "#6b7280",
    DependencyType.START_TO_START: "#2563eb",
    DependencyType.FINISH_TO_FINISH: "#16a34a",
    DependencyType.START_TO_FINISH: "#dc2626",
}

# Types whose source anchor is the right edge of the source bar
_SOURCE_FROM_RIGHT = frozenset({DependencyType.FINISH_TO_START, DependencyType.FINISH_TO_FINISH})
# Types whose target anchor is the left edge of the target bar
_TARGET_AT_LEFT = frozenset({DependencyType.FINISH_TO_START, DependencyType.START_TO_START})

Point = tuple[float, float]


@dataclass(frozen=True, slots=True)
class BarBox:
    """A bar's horizontal geometry plus the top of its row."""

    left: float
    width: float
    top: float

    @property
    def right(self) -> float:
        return self.left + self.width

    def center_y(self, row_height: float) -> float:
        return self.top + row_height / 2


@dataclass(frozen=True, slots=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class LineTo:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class QuadTo:
    """Quadratic curve through control point (cx, cy) ending at (x, y)."""

    cx: float
    cy: float
    x: float
    y: float


Segment = MoveTo | LineTo | QuadTo


@dataclass(frozen=True, slots=True)
class ConnectorPath:
    """Routed arrow for one dependency."""

    segments: tuple[Segment, ...]
    points: tuple[Point, ...]  # Polyline vertices before corner rounding
    start: Point
    end: Point
    color: str
    dashed: bool
    label: str | None
    label_position: Point | None
    dependency_id: str | None = None
    type: DependencyType = DependencyType.FINISH_TO_START

    @property
    def bends(self) -> tuple[Point, ...]:
        """Interior vertices of the polyline."""
        return self.points[1:-1]

    @property
    def dash_pattern(self) -> str | None:
        return DASH_PATTERN if self.dashed else None

    def to_svg_path(self) -> str:
        return to_svg_path(self.segments)


def _fmt(value: float) -> str:
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0").rstrip(".")


def to_svg_path(segments: Iterable[Segment]) -> str:
    """Render segments as an SVG path "d" attribute."""
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, MoveTo):
            parts.append(f"M {_fmt(segment.x)} {_fmt(segment.y)}")
        elif isinstance(segment, LineTo):
            parts.append(f"L {_fmt(segment.x)} {_fmt(segment.y)}")
        else:
            parts.append(
                f"Q {_fmt(segment.cx)} {_fmt(segment.cy)} {_fmt(segment.x)} {_fmt(segment.y)}"
            )
    return " ".join(parts)


def anchor_points(
    source: BarBox, target: BarBox, dep_type: DependencyType, row_height: float
) -> tuple[Point, Point]:
    """Connection points for a dependency type, at each bar's vertical center."""
    start_x = source.right if dep_type in _SOURCE_FROM_RIGHT else source.left
    end_x = target.left if dep_type in _TARGET_AT_LEFT else target.right
    return (start_x, source.center_y(row_height)), (end_x, target.center_y(row_height))


def _dedupe(points: Sequence[Point]) -> list[Point]:
    cleaned = [points[0]]
    for point in points[1:]:
        if point != cleaned[-1]:
            cleaned.append(point)
    return cleaned


def _segment_length(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _rounded_segments(points: Sequence[Point], radius: float) -> list[Segment]:
    """Turn an orthogonal polyline into segments with quadratic corners.

    Each corner's radius is clamped to half of both adjoining segments, so
    consecutive corners never overlap. Collinear vertices stay sharp.
    """
    segments: list[Segment] = [MoveTo(*points[0])]
    for index in range(1, len(points) - 1):
        prev_pt, corner, next_pt = points[index - 1], points[index], points[index + 1]
        len_in = _segment_length(prev_pt, corner)
        len_out = _segment_length(corner, next_pt)
        cross = (corner[0] - prev_pt[0]) * (next_pt[1] - corner[1]) - (corner[1] - prev_pt[1]) * (
            next_pt[0] - corner[0]
        )
        r = min(radius, len_in / 2, len_out / 2)
        if r <= 0 or abs(cross) < 1e-9:
            segments.append(LineTo(*corner))
            continue

        before = (
            corner[0] - (corner[0] - prev_pt[0]) / len_in * r,
            corner[1] - (corner[1] - prev_pt[1]) / len_in * r,
        )
        after = (
            corner[0] + (next_pt[0] - corner[0]) / len_out * r,
            corner[1] + (next_pt[1] - corner[1]) / len_out * r,
        )
        segments.append(LineTo(*before))
        segments.append(QuadTo(corner[0], corner[1], after[0], after[1]))
    segments.append(LineTo(*points[-1]))
    return segments


def is_natural_flow(dep_type: DependencyType, going_right: bool) -> bool:
    """Whether the anchors agree with the horizontal direction of travel."""
    if dep_type in (DependencyType.FINISH_TO_START, DependencyType.FINISH_TO_FINISH):
        return going_right
    return not going_right


def route_dependency(  # noqa: PLR0913
    source: BarBox,
    target: BarBox,
    dep_type: DependencyType,
    row_height: float,
    *,
    lag_days: int = 0,
    dependency_id: str | None = None,
    horizontal_gap: float = HORIZONTAL_GAP,
    vertical_gap: float = VERTICAL_GAP,
    corner_radius: float = CORNER_RADIUS,
) -> ConnectorPath:
    """Route one dependency arrow between two bars.

    Args:
        source: Geometry of the source bar
        target: Geometry of the target bar
        dep_type: Relationship type, selects the anchors
        row_height: Shared row height; centers sit at top + row_height / 2
        lag_days: Non-zero lag gives a dashed stroke and a signed label
        dependency_id: Carried through for renderers
        horizontal_gap: Distance from a bar edge to the first bend
        vertical_gap: Extra clearance of a detour lane beyond the source row
        corner_radius: Maximum radius of rounded bends

    Returns:
        The routed connector
    """
    (start_x, start_y), (end_x, end_y) = anchor_points(source, target, dep_type, row_height)

    # Lanes sit outside the bars: beyond the source edge, on the target's approach side
    if dep_type in _SOURCE_FROM_RIGHT:
        start_lane = start_x + horizontal_gap
    else:
        start_lane = start_x - horizontal_gap
    if dep_type in _TARGET_AT_LEFT:
        end_lane = end_x - horizontal_gap
    else:
        end_lane = end_x + horizontal_gap

    start: Point = (start_x, start_y)
    end: Point = (end_x, end_y)

    if abs(start_y - end_y) < row_height / 2:
        points = _dedupe([start, (start_lane, start_y), (end_lane, end_y), end])
        segments: list[Segment] = [MoveTo(*points[0])] + [LineTo(*p) for p in points[1:]]
    else:
        going_right = end_x >= start_x
        going_down = end_y >= start_y

        if is_natural_flow(dep_type, going_right):
            if dep_type is DependencyType.FINISH_TO_FINISH:
                lane_x = max(start_lane, end_lane)
            elif dep_type is DependencyType.START_TO_START:
                lane_x = min(start_lane, end_lane)
            else:
                lane_x = (start_lane + end_lane) / 2
            points = [start, (lane_x, start_y), (lane_x, end_y), end]
        else:
            offset = row_height / 2 + vertical_gap
            route_y = start_y + offset if going_down else start_y - offset
            points = [
                start,
                (start_lane, start_y),
                (start_lane, route_y),
                (end_lane, route_y),
                (end_lane, end_y),
                end,
            ]
        points = _dedupe(points)
        segments = _rounded_segments(points, corner_radius)

    label: str | None = None
    label_position: Point | None = None
    if lag_days:
        label = f"+{lag_days}d" if lag_days > 0 else f"{lag_days}d"
        label_position = ((end_lane + end_x) / 2, end_y - LABEL_OFFSET_Y)

    return ConnectorPath(
        segments=tuple(segments),
        points=tuple(points),
        start=start,
        end=end,
        color=DEPENDENCY_COLORS[dep_type],
        dashed=lag_days != 0,
        label=label,
        label_position=label_position,
        dependency_id=dependency_id,
        type=dep_type,
    )


def route_dependencies(
    dependencies: Iterable[Dependency],
    bar_boxes: Mapping[str, BarBox],
    row_height: float,
    **routing: float,
) -> list[ConnectorPath]:
    """Route every dependency whose two endpoints currently have a bar.

    bar_boxes may hold an item under several ids (its own id and the id of
    the record it wraps); dependencies touching hidden or unknown items are
    skipped.
    """
    paths: list[ConnectorPath] = []
    for dependency in dependencies:
        source = bar_boxes.get(dependency.source_id)
        target = bar_boxes.get(dependency.target_id)
        if source is None or target is None:
            logger.debug("Skipping dependency %s: endpoint not visible", dependency.id)
            continue
        paths.append(
            route_dependency(
                source,
                target,
                dependency.type,
                row_height,
                lag_days=dependency.lag_days,
                dependency_id=dependency.id,
                **routing,
            )
        )
    return paths
