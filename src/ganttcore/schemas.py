"""Pydantic schemas for timeline YAML files."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import MAX_LAG_DAYS, MIN_LAG_DAYS, DependencyType, ItemKind, PhaseKey, Priority

_DEPENDENCY_TYPE_NAMES = {dep_type.short_label: dep_type for dep_type in DependencyType}


class ItemSchema(BaseModel):
    """Schema for one schedule item, keyed by its id in the file."""

    name: str
    kind: ItemKind = ItemKind.TASK
    phase: PhaseKey | None = None  # Required for kind: phase
    start: date
    end: date
    parent: str | None = None
    sort_order: int | None = None  # Defaults to file order among siblings
    priority: Priority = Priority.NORMAL
    progress: int | None = Field(default=None, ge=0, le=100)  # Manual override
    completed: bool = False
    editable: bool = True
    color: str | None = None
    external_id: str | None = None
    measurements: list[str] = Field(default_factory=list)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> Any:
        """Accept priority names ("high") as well as numbers."""
        if isinstance(v, str) and not v.isdigit():
            try:
                return Priority[v.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Invalid priority '{v}'. "
                    f"Valid values: {', '.join(p.name.lower() for p in Priority)}"
                ) from None
        return v

    @field_validator("measurements", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> list[str]:
        """Ensure value is a list."""
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item) for item in v]  # type: ignore[misc]
        return [str(v)]

    @model_validator(mode="after")
    def check_item(self) -> ItemSchema:
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) is before start ({self.start})")
        if self.kind is ItemKind.PHASE and self.phase is None:
            raise ValueError("Phase items must name their phase (design, production, ...)")
        return self


class DependencySchema(BaseModel):
    """Schema for one dependency edge."""

    id: str | None = None
    source: str
    target: str
    type: DependencyType = DependencyType.FINISH_TO_START
    lag: int = Field(default=0, ge=MIN_LAG_DAYS, le=MAX_LAG_DAYS)

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, v: Any) -> Any:
        """Accept FS/SS/FF/SF as well as 0-3."""
        if isinstance(v, str) and not v.isdigit():
            key = v.strip().upper()
            if key not in _DEPENDENCY_TYPE_NAMES:
                raise ValueError(
                    f"Invalid dependency type '{v}'. Valid values: FS, SS, FF, SF"
                )
            return _DEPENDENCY_TYPE_NAMES[key]
        return v


class TimelineSchema(BaseModel):
    """Schema for an entire timeline file."""

    project: str = "default"
    items: dict[str, ItemSchema] = Field(default_factory=dict)
    dependencies: list[DependencySchema] = Field(default_factory=list)
    measurements: dict[str, float | None] = Field(default_factory=dict)

    @field_validator("project", mode="before")
    @classmethod
    def coerce_project_to_string(cls, v: Any) -> str:
        return str(v)
