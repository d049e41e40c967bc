"""Data models for ganttcore.

Records are frozen: every mutation produces a new record with
dataclasses.replace(), so a snapshot handed to a render pass never changes
underneath it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum, IntEnum

# Hierarchy limits
MAX_HIERARCHY_DEPTH = 5

# Lag convention (not enforced by the engine)
MIN_LAG_DAYS = -365
MAX_LAG_DAYS = 365


class ItemKind(str, Enum):
    """Kind of schedule item."""

    PHASE = "phase"
    TASK = "task"
    MILESTONE = "milestone"


class PhaseKey(str, Enum):
    """Well-known manufacturing lifecycle phases, in canonical order."""

    DESIGN = "design"
    PRODUCTION = "production"
    SHIPPING = "shipping"
    INSTALLATION = "installation"


class ViewMode(str, Enum):
    """Timeline column granularity."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Priority(IntEnum):
    """Display priority. Never used for scheduling."""

    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.title()

    @property
    def color(self) -> str:
        return PRIORITY_COLORS[self]


PRIORITY_COLORS: dict[Priority, str] = {
    Priority.LOW: "#94a3b8",
    Priority.NORMAL: "#3b82f6",
    Priority.HIGH: "#f59e0b",
    Priority.CRITICAL: "#ef4444",
}


class DependencyType(IntEnum):
    """Temporal relationship between a source and a target item."""

    FINISH_TO_START = 0
    START_TO_START = 1
    FINISH_TO_FINISH = 2
    START_TO_FINISH = 3

    @property
    def short_label(self) -> str:
        return _DEPENDENCY_SHORT_LABELS[self]

    @property
    def label(self) -> str:
        words = self.name.replace("_", " ").title().replace(" To ", " to ")
        return f"{words} ({self.short_label})"


_DEPENDENCY_SHORT_LABELS: dict[DependencyType, str] = {
    DependencyType.FINISH_TO_START: "FS",
    DependencyType.START_TO_START: "SS",
    DependencyType.FINISH_TO_FINISH: "FF",
    DependencyType.START_TO_FINISH: "SF",
}


@dataclass(frozen=True, slots=True)
class FixedPhase:
    """Definition of one of the four fixed phases every project carries."""

    key: PhaseKey
    name: str
    order: int
    color: str


FIXED_PHASES: tuple[FixedPhase, ...] = (
    FixedPhase(PhaseKey.DESIGN, "Design", 1, "#64748b"),
    FixedPhase(PhaseKey.PRODUCTION, "Production", 2, "#3b82f6"),
    FixedPhase(PhaseKey.SHIPPING, "Shipping", 3, "#f59e0b"),
    FixedPhase(PhaseKey.INSTALLATION, "Installation", 4, "#8b5cf6"),
)

PHASE_ORDER: tuple[PhaseKey, ...] = tuple(phase.key for phase in FIXED_PHASES)


@dataclass(frozen=True, slots=True)
class DateSpan:
    """An inclusive calendar-date interval."""

    start: date
    end: date

    @property
    def days(self) -> int:
        """Inclusive number of calendar days covered."""
        return abs((self.end - self.start).days) + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


# A chart's visible window is just a span of dates.
DateRange = DateSpan


@dataclass(frozen=True, slots=True)
class WeekendSettings:
    """Which weekend days count as working days for duration display."""

    include_saturday: bool = True
    include_sunday: bool = True


def _empty_ids() -> tuple[str, ...]:
    return ()


@dataclass(frozen=True, slots=True)
class ScheduleItem:
    """A node in the project schedule forest."""

    id: str
    name: str
    kind: ItemKind
    start_date: date
    end_date: date
    project_id: str = ""
    external_id: str | None = None  # Id of the backing record when this wraps another entity
    phase_key: PhaseKey | None = None
    parent_id: str | None = None
    hierarchy_level: int = 0
    sort_order: int = 0
    priority: Priority = Priority.NORMAL
    progress_override: int | None = None
    is_completed: bool = False
    progress: int = 0  # Derived, see hierarchy.decorate_items
    is_editable: bool = True
    color: str | None = None
    linked_measurement_ids: tuple[str, ...] = field(default_factory=_empty_ids)

    @property
    def span(self) -> DateSpan:
        return DateSpan(self.start_date, self.end_date)

    @property
    def duration_days(self) -> int:
        """Inclusive duration in calendar days, never less than 1."""
        return max((self.end_date - self.start_date).days + 1, 1)

    @property
    def is_phase(self) -> bool:
        return self.kind is ItemKind.PHASE

    @property
    def is_milestone(self) -> bool:
        return self.kind is ItemKind.MILESTONE

    @property
    def lookup_ids(self) -> tuple[str, ...]:
        """Ids under which this item's bar may be looked up."""
        if self.external_id and self.external_id != self.id:
            return (self.id, self.external_id)
        return (self.id,)

    @property
    def persistence_id(self) -> str:
        """Id to hand to the persistence layer."""
        return self.external_id or self.id


@dataclass(frozen=True, slots=True)
class Dependency:
    """A directed edge between two schedule items.

    Positive lag delays the target; negative lag lets it overlap the source.
    """

    id: str
    source_id: str
    target_id: str
    type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0
    project_id: str = ""

    @property
    def lag_label(self) -> str | None:
        """Signed day label ("+3d", "-2d"), or None when there is no lag."""
        if self.lag_days == 0:
            return None
        if self.lag_days > 0:
            return f"+{self.lag_days}d"
        return f"{self.lag_days}d"
