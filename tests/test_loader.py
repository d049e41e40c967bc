"""Tests for timeline file parsing."""

import asyncio
from pathlib import Path

import pytest

from ganttcore.exceptions import ParseError
from ganttcore.loader import load_timeline, parse_timeline
from ganttcore.models import DependencyType, ItemKind, PhaseKey, Priority


def test_load_example() -> None:
    timeline = load_timeline("examples/timeline.yaml")
    items = {i.id: i for i in timeline.items}

    assert timeline.project_id == "chair-order-1042"
    assert items["production"].phase_key is PhaseKey.PRODUCTION
    assert items["approval"].kind is ItemKind.MILESTONE
    assert items["frames"].priority is Priority.HIGH
    assert items["cut"].hierarchy_level == 2
    assert items["cut"].linked_measurement_ids == ("cut-count",)
    assert timeline.measurements == {"cut-count": 50}
    assert len(timeline.dependencies) == 4


def test_sort_order_defaults_to_file_order() -> None:
    timeline = parse_timeline(
        {
            "items": {
                "p": {"name": "P", "start": "2026-03-01", "end": "2026-03-02"},
                "b": {"name": "B", "parent": "p", "start": "2026-03-01", "end": "2026-03-02"},
                "a": {"name": "A", "parent": "p", "start": "2026-03-01", "end": "2026-03-02"},
                "z": {
                    "name": "Z",
                    "parent": "p",
                    "sort_order": 10,
                    "start": "2026-03-01",
                    "end": "2026-03-02",
                },
            }
        }
    )
    orders = {i.id: i.sort_order for i in timeline.items}

    assert orders == {"p": 1, "b": 1, "a": 2, "z": 10}


def test_dependency_fields() -> None:
    timeline = parse_timeline(
        {
            "items": {
                "a": {"name": "A", "start": "2026-03-01", "end": "2026-03-02"},
                "b": {"name": "B", "start": "2026-03-03", "end": "2026-03-04"},
            },
            "dependencies": [
                {"source": "a", "target": "b", "type": "ss", "lag": -2},
                {"id": "custom", "source": "b", "target": "a", "type": 3},
            ],
        }
    )
    first, second = timeline.dependencies

    assert first.id == "a->b"
    assert first.type is DependencyType.START_TO_START
    assert first.lag_days == -2
    assert second.id == "custom"
    assert second.type is DependencyType.START_TO_FINISH


class TestInvalidInput:
    """Errors surface as ParseError."""

    def test_end_before_start(self) -> None:
        with pytest.raises(ParseError, match="Invalid timeline file"):
            parse_timeline(
                {"items": {"a": {"name": "A", "start": "2026-03-05", "end": "2026-03-01"}}}
            )

    def test_phase_needs_key(self) -> None:
        with pytest.raises(ParseError, match="must name their phase"):
            parse_timeline(
                {
                    "items": {
                        "x": {
                            "name": "X",
                            "kind": "phase",
                            "start": "2026-03-01",
                            "end": "2026-03-02",
                        }
                    }
                }
            )

    def test_bad_dependency_type(self) -> None:
        with pytest.raises(ParseError, match="Invalid dependency type"):
            parse_timeline({"dependencies": [{"source": "a", "target": "b", "type": "XX"}]})

    def test_unknown_endpoint(self) -> None:
        with pytest.raises(ParseError, match="references unknown item: ghost"):
            parse_timeline(
                {
                    "items": {"a": {"name": "A", "start": "2026-03-01", "end": "2026-03-02"}},
                    "dependencies": [{"source": "a", "target": "ghost"}],
                }
            )

    def test_self_dependency(self) -> None:
        with pytest.raises(ParseError, match="Cannot create a dependency to itself"):
            parse_timeline(
                {
                    "items": {"a": {"name": "A", "start": "2026-03-01", "end": "2026-03-02"}},
                    "dependencies": [{"source": "a", "target": "a"}],
                }
            )

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ParseError, match="File not found"):
            load_timeline(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("items: [unclosed\n")
        with pytest.raises(ParseError, match="Failed to parse YAML"):
            load_timeline(path)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ParseError, match="dictionary at the root level"):
            load_timeline(path)


def test_priority_names_and_single_measurement() -> None:
    timeline = parse_timeline(
        {
            "items": {
                "a": {
                    "name": "A",
                    "start": "2026-03-01",
                    "end": "2026-03-02",
                    "priority": "critical",
                    "measurements": "m-1",
                }
            }
        }
    )
    assert timeline.items[0].priority is Priority.CRITICAL
    assert timeline.items[0].linked_measurement_ids == ("m-1",)


def test_to_store_round_trips_snapshot() -> None:
    timeline = load_timeline("examples/timeline.yaml")
    store = timeline.to_store()

    items = asyncio.run(store.list_items(timeline.project_id)).data or []
    measurements = asyncio.run(store.list_measurements(timeline.project_id)).data

    assert len(items) == len(timeline.items)
    assert measurements == {"cut-count": 50}
