"""Typer-based CLI for JourneyFlow."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import toml
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config_manager
from .analysis import derive_insights, edge_frequency_share, summarize_metrics
from .graph_export import EXPORT_FORMATS, export_graph
from .models import AnalysisPayloadError, FlowResult
from .normalize import TranscriptAnalysis
from .pipeline import FlowSettings, journey_from_analysis, parse_and_build

app = typer.Typer(
    help="🧭 JourneyFlow: turn conversation flow scripts into journey graphs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Manage config.toml settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"JourneyFlow v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log recovered parse anomalies."),
):
    """JourneyFlow: conversation flow text to journey graphs."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        raise typer.BadParameter(f"'{path}' is not UTF-8 text.")


def _read_json(path: Path) -> Any:
    try:
        return json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"'{path}' is not valid JSON: {exc}")


def _parse_file(flow_file: Path) -> FlowResult:
    return parse_and_build(_read_text(flow_file), FlowSettings.from_config())


def _load_analysis(path: Path, settings: FlowSettings) -> TranscriptAnalysis:
    """Read analysis JSON, a bare journey map, or the output of `jf graph`."""
    raw = _read_json(path)
    if isinstance(raw, dict) and isinstance(raw.get("journey"), dict):
        raw = raw["journey"]
    try:
        return journey_from_analysis(raw, settings)
    except AnalysisPayloadError as exc:
        raise typer.BadParameter(str(exc))


def _print_anomalies(result_anomalies) -> None:
    if not result_anomalies:
        return
    typer.echo(f"\nAnomalies ({len(result_anomalies)}):")
    for anomaly in result_anomalies:
        where = f" [step {anomaly.step_number}]" if anomaly.step_number is not None else ""
        typer.echo(f"- {anomaly.kind.value}{where}: {anomaly.message}")


def _write_or_echo(text: str, output: Optional[Path]) -> None:
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Wrote {output}")


@app.command("parse")
def parse(
    flow_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Flow text file."),
    as_json: bool = typer.Option(False, "--json", help="Print the parsed flow as JSON."),
):
    """Parse a flow script into numbered, typed steps."""
    result = _parse_file(flow_file)

    if as_json:
        typer.echo(json.dumps(
            {
                **result.flow.to_dict(),
                "anomalies": [a.to_dict() for a in result.anomalies],
            },
            indent=2,
            ensure_ascii=False,
        ))
        return

    if not result.flow.steps:
        typer.echo("No steps found.")
        raise typer.Exit(code=0)

    table = Table(title=f"{flow_file.name}: {len(result.flow)} steps")
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Messages")
    for step in result.flow.steps:
        table.add_row(
            str(step.step_number),
            step.step_type.value if step.step_type else "",
            "\n".join(f"{m.role.value}: {m.text}" for m in step.messages),
        )
    console.print(table)
    _print_anomalies(result.anomalies)


@app.command("graph")
def graph(
    flow_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Flow text file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
):
    """Parse a flow script and emit the journey graph as JSON."""
    result = _parse_file(flow_file)
    payload = {
        "journey": result.graph.to_dict(),
        "anomalies": [a.to_dict() for a in result.anomalies],
    }
    _write_or_echo(json.dumps(payload, indent=2, ensure_ascii=False), output)


@app.command("export")
def export(
    flow_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Flow text or journey JSON file."),
    fmt: str = typer.Option("html", "--format", "-f", help="Export format: json, dot, mermaid, html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Export a journey graph. ``.json`` inputs are read as journey maps."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(EXPORT_FORMATS)}")

    settings = FlowSettings.from_config()
    if flow_file.suffix.lower() == ".json":
        journey = _load_analysis(flow_file, settings).journey
    else:
        journey = parse_and_build(_read_text(flow_file), settings).graph

    extension = "mmd" if fmt == "mermaid" else fmt
    if output is None:
        output = Path.cwd() / f"{flow_file.stem}_journey.{extension}"

    export_graph(journey, output, fmt, name=flow_file.stem, direction=settings.layout.direction)
    typer.echo(f"Exported journey to {output}")


@app.command("normalize")
def normalize(
    analysis_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Transcript analysis JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
):
    """Normalize an externally produced transcript analysis."""
    analysis = _load_analysis(analysis_file, FlowSettings.from_config())
    _write_or_echo(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False), output)


@app.command("analyze")
def analyze(
    journey_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Journey or analysis JSON."),
):
    """Summarize metrics and report bottlenecks and dropoffs."""
    settings = FlowSettings.from_config()
    analysis = _load_analysis(journey_file, settings)

    journey = analysis.journey
    summary = summarize_metrics(journey)
    typer.echo(f"Nodes: {summary.node_count} | Edges: {len(journey.edges)} | Measured: {summary.measured_nodes}")
    for label, value in (
        ("Mean duration", summary.mean_duration),
        ("Mean satisfaction", summary.mean_satisfaction),
        ("Mean dropoff", summary.mean_dropoff),
    ):
        if value is not None:
            typer.echo(f"{label}: {value:.2f}")

    insights = derive_insights(journey, settings.thresholds)
    bottlenecks = insights.bottlenecks or analysis.insights.bottlenecks
    dropoffs = insights.dropoffs or analysis.insights.dropoffs

    if bottlenecks:
        typer.echo("\nBottlenecks:")
        for item in bottlenecks:
            typer.echo(f"- {item.node_id}: {item.reason}")
    if dropoffs:
        typer.echo("\nDropoffs:")
        for item in dropoffs:
            typer.echo(f"- {item.node_id} ({item.frequency:g}%): {item.reason}")

    shares = edge_frequency_share(journey)
    if shares:
        table = Table(title="Transition share")
        table.add_column("Edge")
        table.add_column("Share", justify="right")
        for edge_id, share in shares.items():
            table.add_row(edge_id, f"{share:.0%}")
        console.print(table)

    if not (bottlenecks or dropoffs):
        typer.echo("No bottlenecks or dropoffs above thresholds.")


@config_app.command("show")
def config_show():
    """Print the effective configuration."""
    effective = {
        "layout": config_manager.load_layout_config(),
        "analysis": config_manager.load_analysis_config(),
    }
    classifier = config_manager.load_classifier_config()
    if classifier:
        effective["classifier"] = classifier
    typer.echo(f"# {config_manager.CONFIG_FILE}")
    typer.echo(toml.dumps(effective))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
):
    """Write a default config file."""
    if not config_manager.init_config(overwrite=force):
        if config_manager.CONFIG_FILE.exists():
            typer.echo(f"Config already exists at {config_manager.CONFIG_FILE} (use --force).", err=True)
        else:
            typer.echo(f"Could not write {config_manager.CONFIG_FILE}.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Wrote {config_manager.CONFIG_FILE}")


if __name__ == "__main__":
    app()
