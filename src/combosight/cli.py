"""
ComboSight CLI - Command Line Interface for combo analysis

Provides commands for:
- Extracting combos from a decoded frame table
- Showing the effective configuration
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from combosight import __version__
from combosight.core.config import configure_logging, load_config
from combosight.core.constants import FRAMES_PER_SECOND, ComboEvent
from combosight.core.parser import load_frames, load_settings
from combosight.core.schemas import Combo
from combosight.pipeline.orchestrator import ComboRunResult, compute_combos

app = typer.Typer(
    name="combosight",
    help="Combo extraction from decoded replay frames",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

_state = {"config_file": None, "verbose": False}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]ComboSight[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (.yaml, .toml or .json)",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """ComboSight - combo analysis for replay frame data"""
    _state["config_file"] = config_file
    _state["verbose"] = verbose


def _load_effective_config():
    try:
        config = load_config(_state["config_file"])
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1)
    if _state["verbose"]:
        config.logging.level = "DEBUG"
    configure_logging(config.logging)
    return config


def _format_frames(frames: Optional[int]) -> str:
    if frames is None:
        return "-"
    return f"{frames} ({frames / FRAMES_PER_SECOND:.2f}s)"


def _combo_table(combos: list[Combo]) -> Table:
    table = Table(title="Combos")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Victim", justify="center")
    table.add_column("Attacker", justify="center")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Moves", justify="right")
    table.add_column("Hits", justify="right")
    table.add_column("Percent", justify="right", style="cyan")
    table.add_column("Kill", justify="center")

    for i, combo in enumerate(combos, start=1):
        end_percent = combo.end_percent if combo.end_percent is not None else combo.current_percent
        table.add_row(
            str(i),
            str(combo.victim_index),
            "-" if combo.last_hit_by is None else str(combo.last_hit_by),
            str(combo.start_frame),
            "open" if combo.is_open else str(combo.end_frame),
            _format_frames(combo.duration_frames),
            str(len(combo.moves)),
            str(combo.hit_count),
            f"{combo.start_percent:.0f}% -> {end_percent:.0f}%",
            "[bold red]yes[/bold red]" if combo.did_kill else "",
        )
    return table


def _summary_table(result: ComboRunResult) -> Table:
    table = Table(title="Summary", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Frames", str(result.frames_processed))
    table.add_row("Permutations", str(len(result.permutations)))
    table.add_row("Combos", str(len(result.combos)))
    table.add_row("Kill combos", str(result.kills))
    for event in ComboEvent:
        table.add_row(event.value, str(result.events.get(event, 0)))
    return table


@app.command()
def combos(
    frames_path: Path = typer.Argument(
        ...,
        help="Decoded frame table (.csv, .jsonl or .json)",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    settings_path: Path = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Game settings JSON",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    reset_frames: Optional[int] = typer.Option(
        None,
        "--reset-frames",
        "-r",
        min=0,
        help="Non-vulnerable frames before a combo string ends (default from config)",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format: table or json (default from config)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write JSON results to this file",
    ),
) -> None:
    """
    Extract combos from a decoded frame table.
    """
    config = _load_effective_config()
    if reset_frames is not None:
        config.combos.combo_string_reset_frames = reset_frames
    fmt = (output_format or config.output.default_format).lower()
    if fmt not in ("table", "json"):
        console.print(f"[red]Unknown output format:[/red] {fmt}")
        raise typer.Exit(2)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Loading frames...", total=None)
        try:
            settings = load_settings(settings_path)
            frames = load_frames(frames_path)
        except (OSError, ValueError) as e:
            console.print(f"[red]Error loading input:[/red] {e}")
            raise typer.Exit(1)

        progress.update(task, description=f"Detecting combos in {len(frames)} frames...")
        result = compute_combos(settings, frames, config=config.combos)

    payload = {
        "frames": result.frames_processed,
        "reset_frames": config.combos.combo_string_reset_frames,
        "combos": [combo.to_dict() for combo in result.combos],
    }

    if output:
        with open(output, "w") as f:
            json.dump(payload, f, indent=config.output.json_indent)
        console.print(f"[green]Wrote {len(result.combos)} combos to {output}[/green]")

    if fmt == "json":
        # Plain print so the output stays machine readable
        print(json.dumps(payload, indent=config.output.json_indent))
    else:
        console.print(_summary_table(result))
        console.print()
        if result.combos:
            console.print(_combo_table(result.combos))
        else:
            console.print("[yellow]No combos detected[/yellow]")


@app.command("config")
def show_config() -> None:
    """Show the effective configuration as JSON."""
    config = _load_effective_config()
    console.print_json(json.dumps(asdict(config)))


if __name__ == "__main__":
    app()
