"""Command-line interface for ganttcore."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Annotated

import typer

from .config import GanttConfig
from .exceptions import GanttError
from .hierarchy import decorate_items, display_order
from .interaction import InteractionState
from .layout import build_layout
from .loader import TimelineData, discover_config, load_timeline
from .logger import setup_logger
from .models import ViewMode, WeekendSettings
from .temporal import calculate_work_days

app = typer.Typer(
    name="ganttcore",
    help="Project timeline engine: layout, progress roll-up and dependency routing",
    add_completion=False,
)


class _Options:
    """Global options captured by the callback."""

    def __init__(self) -> None:
        self.config_path: Path | None = None


_options = _Options()


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: ganttcore.yaml next to the timeline file)",
        ),
    ] = None,
) -> None:
    """Global options for ganttcore commands."""
    setup_logger(verbose)
    _options.config_path = config


def _parse_date(date_str: str, option_name: str) -> date:
    """Parse a YYYY-MM-DD CLI value, exiting with an error message when malformed."""
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        typer.echo(
            f"Error: Invalid {option_name} '{date_str}'. Use YYYY-MM-DD format.",
            err=True,
        )
        raise typer.Exit(1) from None


def _parse_date_option(date_str: str | None, option_name: str) -> date | None:
    return None if date_str is None else _parse_date(date_str, option_name)


def _load(file: Path) -> tuple[TimelineData, GanttConfig]:
    try:
        timeline = load_timeline(file)
        config = discover_config(file, _options.config_path)
    except (GanttError, FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    return timeline, config


@app.command()
def layout(  # noqa: PLR0913 - CLI command needs multiple options
    file: Annotated[Path, typer.Argument(help="Path to the timeline YAML file")] = Path(
        "timeline.yaml"
    ),
    *,
    view: Annotated[
        ViewMode | None,
        typer.Option("--view", help="Column granularity (default from config)"),
    ] = None,
    zoom: Annotated[
        int | None,
        typer.Option("--zoom", help="Zoom level index (default from config)", min=0),
    ] = None,
    today: Annotated[
        str | None,
        typer.Option("--today", help="Reference date for the grid (YYYY-MM-DD)"),
    ] = None,
    collapse: Annotated[
        list[str] | None,
        typer.Option("--collapse", help="Collapse this parent item (repeatable)"),
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Compute the timeline layout and print it as JSON."""
    reference_date = _parse_date_option(today, "today")
    timeline, config = _load(file)

    state = InteractionState(
        view_mode=view or config.default_view_mode,
        zoom_index=config.layout.default_zoom_index if zoom is None else zoom,
        weekend_settings=config.weekends.to_settings(),
        collapsed_ids=frozenset(collapse or ()),
    )
    result = build_layout(
        timeline.items,
        timeline.dependencies,
        state,
        measurements=timeline.measurements,
        config=config,
        today=reference_date,
    )
    text = json.dumps(result.to_dict(), indent=2)

    if output:
        output.write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Layout written to {output}")
    else:
        typer.echo(text)


@app.command()
def order(
    file: Annotated[Path, typer.Argument(help="Path to the timeline YAML file")] = Path(
        "timeline.yaml"
    ),
) -> None:
    """Print items in display order with rolled-up progress and spans."""
    timeline, config = _load(file)
    decorated = decorate_items(
        timeline.items, timeline.measurements, max_depth=config.hierarchy.max_depth
    )
    ordered = display_order(decorated, hide_empty_phases=config.layout.hide_empty_phases)
    for item in ordered:
        indent = "  " * item.hierarchy_level
        typer.echo(
            f"{indent}{item.name} [{item.kind.value}] "
            f"{item.start_date.isoformat()}..{item.end_date.isoformat()} {item.progress}%"
        )


@app.command()
def workdays(
    start: Annotated[str, typer.Argument(help="First day (YYYY-MM-DD)")],
    end: Annotated[str, typer.Argument(help="Last day (YYYY-MM-DD)")],
    *,
    no_saturday: Annotated[
        bool, typer.Option("--no-saturday", help="Saturday is not a working day")
    ] = False,
    no_sunday: Annotated[
        bool, typer.Option("--no-sunday", help="Sunday is not a working day")
    ] = False,
) -> None:
    """Count working days in an inclusive date span."""
    start_date = _parse_date(start, "start date")
    end_date = _parse_date(end, "end date")

    settings = WeekendSettings()
    if no_saturday:
        settings = replace(settings, include_saturday=False)
    if no_sunday:
        settings = replace(settings, include_sunday=False)
    typer.echo(str(calculate_work_days(start_date, end_date, settings)))


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
