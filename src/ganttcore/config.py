"""Configuration loader for ganttcore.

A single YAML file (ganttcore.yaml) tunes the layout grid, connector routing,
hierarchy limits, the roles allowed to mutate the timeline and the default
weekend policy. Every section is optional.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .models import MAX_HIERARCHY_DEPTH, ViewMode, WeekendSettings
from .router import CORNER_RADIUS, HORIZONTAL_GAP, VERTICAL_GAP
from .temporal import BASE_COLUMN_WIDTHS, DEFAULT_ZOOM_INDEX, MIN_BAR_WIDTH, ZOOM_LEVELS

DEFAULT_CONFIG_FILENAME = "ganttcore.yaml"
DEFAULT_ROW_HEIGHT = 36


def _default_column_widths() -> dict[ViewMode, int]:
    return dict(BASE_COLUMN_WIDTHS)


def _default_zoom_levels() -> list[float]:
    return list(ZOOM_LEVELS)


def _default_roles() -> list[str]:
    return ["admin", "pm"]


class LayoutConfig(BaseModel):
    """Grid and bar sizing."""

    row_height: int = DEFAULT_ROW_HEIGHT
    column_widths: dict[ViewMode, int] = Field(default_factory=_default_column_widths)
    zoom_levels: list[float] = Field(default_factory=_default_zoom_levels)
    default_zoom_index: int = DEFAULT_ZOOM_INDEX
    min_bar_width: int = MIN_BAR_WIDTH
    hide_empty_phases: bool = False  # Skip phases that have no children

    def model_post_init(self, __context: Any) -> None:
        """Validate configuration after initialization."""
        if self.row_height <= 0:
            raise ValueError(f"layout.row_height must be positive, got {self.row_height}")
        if not self.zoom_levels:
            raise ValueError("layout.zoom_levels must not be empty")
        if any(level <= 0 for level in self.zoom_levels):
            raise ValueError("layout.zoom_levels must all be positive")
        if not 0 <= self.default_zoom_index < len(self.zoom_levels):
            raise ValueError(
                f"layout.default_zoom_index {self.default_zoom_index} is out of range "
                f"for {len(self.zoom_levels)} zoom levels"
            )
        missing = [mode.value for mode in ViewMode if mode not in self.column_widths]
        if missing:
            raise ValueError(f"layout.column_widths is missing: {', '.join(missing)}")


class RoutingConfig(BaseModel):
    """Dependency connector geometry."""

    horizontal_gap: float = HORIZONTAL_GAP
    vertical_gap: float = VERTICAL_GAP
    corner_radius: float = CORNER_RADIUS

    def as_kwargs(self) -> dict[str, float]:
        return {
            "horizontal_gap": self.horizontal_gap,
            "vertical_gap": self.vertical_gap,
            "corner_radius": self.corner_radius,
        }


class HierarchyConfig(BaseModel):
    """Nesting limits."""

    max_depth: int = MAX_HIERARCHY_DEPTH

    def model_post_init(self, __context: Any) -> None:
        """Validate configuration after initialization."""
        if self.max_depth < 1:
            raise ValueError(f"hierarchy.max_depth must be at least 1, got {self.max_depth}")


class AccessConfig(BaseModel):
    """Roles allowed to create and edit timeline items."""

    authorized_roles: list[str] = Field(default_factory=_default_roles)

    def is_authorized(self, role: str | None) -> bool:
        return role is not None and role.lower() in {r.lower() for r in self.authorized_roles}


class WeekendConfig(BaseModel):
    """Which weekend days count as working days."""

    include_saturday: bool = True
    include_sunday: bool = True

    def to_settings(self) -> WeekendSettings:
        return WeekendSettings(
            include_saturday=self.include_saturday, include_sunday=self.include_sunday
        )


class GanttConfig(BaseModel):
    """Top-level configuration."""

    default_view_mode: ViewMode = ViewMode.WEEK
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    hierarchy: HierarchyConfig = Field(default_factory=HierarchyConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    weekends: WeekendConfig = Field(default_factory=WeekendConfig)


def load_config(config_path: Path | str) -> GanttConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to ganttcore.yaml

    Returns:
        Validated GanttConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is empty or invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: dict[str, Any] | None = yaml.safe_load(f)

    if not data:
        raise ValueError("Empty configuration file")
    if not isinstance(data, dict):
        raise ValueError("Configuration file must contain a mapping")

    return GanttConfig.model_validate(data)


def find_config(*search_dirs: Path) -> Path | None:
    """Return the first ganttcore.yaml found in the given directories, then the cwd."""
    for directory in (*search_dirs, Path.cwd()):
        candidate = directory / DEFAULT_CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return None
