"""Export command - Re-serialize an incidents dataset as CSV."""
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from crimemap.config import settings
from crimemap.core.exceptions import DataLoadError
from crimemap.data.store import IncidentStore
from crimemap.utils.logger import logger

console = Console()


def export(
    incidents_file: Path = typer.Argument(
        ...,
        help="Incidents CSV file to read",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output CSV file (default: exports dir / updated-locations.csv)",
    ),
    full: bool = typer.Option(
        False,
        "--full/--coordinates-only",
        help="Write every column instead of id, Latitude, Longitude",
    ),
) -> Path:
    """Export the valid incidents of a dataset as CSV."""
    console.print("[bold blue]CrimeMap[/bold blue] - Export")
    console.print()

    try:
        store = IncidentStore.from_csv(incidents_file)
    except DataLoadError as e:
        console.print(f"[red]Error loading data:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Loaded {len(store)} incidents[/green]")

    if output is None:
        output = settings.EXPORT_DIR / settings.EXPORT_FILENAME

    store.export_csv(output, full=full)

    console.print(f"[green]Saved to:[/green] {output}")
    logger.info("Export complete", output=str(output), total=len(store))

    return output
