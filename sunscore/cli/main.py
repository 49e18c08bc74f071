import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from sunscore.config.logging_setup import setup_logging
from sunscore.models.shadow import ShadowPrecision
from sunscore.services.container import build_container

app = typer.Typer(help="Sun exposure scores for terraces, hour by hour")
console = Console()

LABEL_STYLES = {
    "sunny": "[bold yellow]☀️ sunny[/]",
    "partial": "[yellow]⛅ partial[/]",
    "shade": "[grey50]☁️ shade[/]",
    "night": "[blue]🌙 night[/]",
}


async def _compute_scores(hours, precision, limit, now):
    container = build_container()
    try:
        return await container.orchestrator.compute_window(
            reference_instant=now,
            hour_count=hours,
            precision_mode=precision,
            point_limit=limit,
        )
    finally:
        await container.close()


@app.command()
def scores(
    hours: Optional[int] = typer.Option(None, help="Hours to compute (capped at the configured maximum)"),
    precision: ShadowPrecision = typer.Option(ShadowPrecision.PRECOMPUTED, help="Shadow method"),
    limit: Optional[int] = typer.Option(None, help="Maximum number of places to score"),
    now: Optional[datetime] = typer.Option(None, help="Reference instant (ISO-8601)"),
    top: int = typer.Option(20, help="Number of places to show"),
    output_file: Optional[Path] = typer.Option(None, help="File to save the full result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging for sunscore modules"),
):
    """
    Compute sun scores and show the sunniest places for the first hour.
    """
    setup_logging(level="DEBUG" if verbose else None)
    window = asyncio.run(_compute_scores(hours, precision, limit, now))

    if not window.ok:
        console.print(f"[bold red]Error ({window.error.code}): {window.error.message}")
        raise typer.Exit(code=1)

    result = window.result
    if output_file:
        output_file.write_text(json.dumps(result.to_cache(), indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"[green]Result saved to {output_file}")

    ranked = sorted(
        result.points,
        key=lambda p: p.score_by_hour[0] if p.score_by_hour else 0.0,
        reverse=True,
    )[:top]

    table = Table(title=f"Sunniest places from {result.hours[0] if result.hours else '?'}")
    table.add_column("Place", style="cyan")
    table.add_column("Lat/Lon", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Now")
    table.add_column("Next hours")

    for point in ranked:
        first_score = point.score_by_hour[0] if point.score_by_hour else 0.0
        first_label = point.label_by_hour[0].value if point.label_by_hour else "shade"
        trend = " ".join(f"{s:.2f}" for s in point.score_by_hour[1:6])
        table.add_row(
            point.name or point.id,
            f"{point.lat:.4f}, {point.lon:.4f}",
            f"{first_score:.2f}",
            LABEL_STYLES.get(first_label, first_label),
            trend,
        )

    console.print(table)

    meta = result.meta
    console.print(
        f"[bold]{meta.total_points}[/] of {meta.total_available} places, "
        f"{meta.hours_computed} hours, "
        f"precomputed coverage {meta.precomputed_coverage_percent:.1f}% "
        f"({window.cache_status.value}, golden hour: {window.golden_hour}, ttl {window.ttl_seconds}s)"
    )


async def _cleanup():
    container = build_container()
    try:
        removed = await container.cache.cleanup()
        return removed, container.cache.get_stats()
    finally:
        await container.close()


@app.command()
def cleanup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging for sunscore modules"),
):
    """
    Remove expired cache entries and durable files past the retention period.
    """
    setup_logging(level="DEBUG" if verbose else None)
    removed, stats = asyncio.run(_cleanup())

    table = Table(title="Cache cleanup")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Memory entries removed", str(removed["memory"]))
    table.add_row("Durable files removed", str(removed["durable"]))
    for name, value in stats.items():
        table.add_row(name, str(value))
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind"),
    port: Optional[int] = typer.Option(None, help="Port to listen on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """
    Run the HTTP API.
    """
    from sunscore.run import main as run_server
    run_server(host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
