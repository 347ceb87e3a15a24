"""Serve command - Start the FastAPI server."""
from pathlib import Path

import typer
from rich.console import Console

from crimemap.core.exceptions import DataLoadError

console = Console()


def serve(
    incidents_file: Path = typer.Argument(
        ...,
        help="Incidents CSV file (columns: id, Latitude, Longitude, DateOfReport, CrimeDateTime, Crime, Location)",
    ),
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        help="Host to bind to",
    ),
    port: int = typer.Option(
        8000,
        "--port", "-p",
        help="Port to bind to",
    ),
):
    """Start the CrimeMap API server.

    Example:
        crimemap serve data/sample-data.csv --port 8000
    """
    console.print("[bold blue]CrimeMap[/bold blue] - API Server")
    console.print()

    if not incidents_file.exists():
        console.print(f"[red]Error:[/red] Incidents file not found: {incidents_file}")
        raise typer.Exit(1)
    if not incidents_file.suffix == ".csv":
        console.print(f"[red]Error:[/red] Incidents file must be a .csv file: {incidents_file}")
        raise typer.Exit(1)

    console.print(f"Incidents: {incidents_file}")
    console.print("Loading data...")

    from crimemap.api.main import app, init_app

    try:
        store = init_app(incidents_file)
    except DataLoadError as e:
        console.print(f"[red]Error loading data:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Loaded {len(store)} incidents[/green]")
    console.print(f"Starting server at [green]http://{host}:{port}[/green]")
    console.print(f"API docs at [cyan]http://{host}:{port}/docs[/cyan]")
    console.print()

    import uvicorn
    uvicorn.run(app, host=host, port=port)
