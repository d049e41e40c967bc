"""ganttcore - project timeline engine for manufacturing projects.

This package provides:
- Temporal model: column grids per day/week/month, bar geometry, work days
- Hierarchy engine: progress roll-up, parent span normalization, display order
- Dependency router: orthogonal FS/SS/FF/SF connector paths with lag labels
- Interaction state machine: drag, selection, collapse, indent, reorder, linking

Main entry points:
- build_layout: Snapshot + interaction state to renderable geometry
- TimelineController: Async controller driving a TimelinePersistence store
- InMemoryTimelineStore: Reference persistence implementation
"""

# Configuration
from .config import GanttConfig, load_config

# Controller
from .controller import TimelineController

# Errors
from .exceptions import GanttError, HierarchyError, ParseError, ValidationError

# Hierarchy
from .hierarchy import ItemForest, decorate_items, display_order, visible_items

# Interaction
from .interaction import ClickModifier, DragEdge, InteractionState

# Layout
from .layout import TimelineLayout, build_layout

# Data files
from .loader import TimelineData, load_timeline

# Core dataclasses
from .models import (
    DateRange,
    DateSpan,
    Dependency,
    DependencyType,
    ItemKind,
    PhaseKey,
    Priority,
    ScheduleItem,
    ViewMode,
    WeekendSettings,
)

# Persistence
from .persistence import (
    ActionResult,
    DependencyInput,
    DependencyUpdate,
    InMemoryTimelineStore,
    ItemInput,
    ItemUpdate,
    TimelinePersistence,
)

# Routing
from .router import BarBox, ConnectorPath, route_dependency

__all__ = [
    "ActionResult",
    "BarBox",
    "ClickModifier",
    "ConnectorPath",
    "DateRange",
    "DateSpan",
    "Dependency",
    "DependencyInput",
    "DependencyType",
    "DependencyUpdate",
    "DragEdge",
    "GanttConfig",
    "GanttError",
    "HierarchyError",
    "InMemoryTimelineStore",
    "InteractionState",
    "ItemForest",
    "ItemInput",
    "ItemKind",
    "ItemUpdate",
    "ParseError",
    "PhaseKey",
    "Priority",
    "ScheduleItem",
    "TimelineController",
    "TimelineData",
    "TimelineLayout",
    "TimelinePersistence",
    "ValidationError",
    "ViewMode",
    "WeekendSettings",
    "build_layout",
    "decorate_items",
    "display_order",
    "load_config",
    "load_timeline",
    "route_dependency",
    "visible_items",
]
