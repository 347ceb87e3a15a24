"""Cluster command - Run DBSCAN clustering on incident coordinates."""
import json
from pathlib import Path
from typing import Optional
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from crimemap.config import settings
from crimemap.clustering.clusterer import DBSCANClusterer
from crimemap.core.exceptions import DataLoadError, InvalidParameterError
from crimemap.data.store import IncidentStore
from crimemap.heatmap.layers import build_heat_layers
from crimemap.utils.logger import logger

console = Console()


def cluster(
    incidents_file: Path = typer.Argument(
        ...,
        help="Incidents CSV file",
    ),
    epsilon: float = typer.Option(
        settings.DEFAULT_EPSILON,
        "--epsilon", "-e",
        help="Neighborhood radius in degrees (larger = fewer, bigger clusters)",
    ),
    min_points: int = typer.Option(
        settings.DEFAULT_MIN_POINTS,
        "--min-points", "-m",
        help="Minimum neighborhood size, the point included",
    ),
    dedupe: bool = typer.Option(
        False,
        "--dedupe/--keep-duplicates",
        help="Collapse incidents with identical coordinates before clustering",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output JSON file (default: auto-generated)",
    ),
) -> Path:
    """Run DBSCAN clustering on incident coordinates."""
    console.print("[bold blue]CrimeMap[/bold blue] - Clustering")
    console.print()

    logger.info(
        "Starting clustering",
        incidents=str(incidents_file),
        epsilon=epsilon,
        min_points=min_points,
    )

    console.print(f"Loading incidents from: {incidents_file}")
    try:
        store = IncidentStore.from_csv(incidents_file)
    except DataLoadError as e:
        console.print(f"[red]Error loading data:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Loaded {len(store)} incidents[/green]")

    console.print("Running DBSCAN clustering...")
    points = store.positions()
    try:
        clusterer = DBSCANClusterer(epsilon=epsilon, min_points=min_points, deduplicate=dedupe)
        result = clusterer.cluster(points)
    except InvalidParameterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    stats = clusterer.get_stats()
    layers = build_heat_layers(points, result)

    # Display results
    console.print()
    table = Table(title="Clustering Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total clusters", str(stats.num_clusters))
    table.add_row("Noise points", str(stats.num_noise_points))
    table.add_row("Noise fraction", f"{stats.noise_fraction:.1%}")
    table.add_row("Average cluster size", f"{stats.avg_cluster_size:.1f}")
    table.add_row("Largest cluster", str(stats.largest_cluster_size))
    table.add_row("Smallest cluster", str(stats.smallest_cluster_size))

    console.print(table)

    if output is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output = settings.EXPORT_DIR / f"clusters_{timestamp}.json"

    output.parent.mkdir(parents=True, exist_ok=True)

    console.print(f"\nSaving clusters to: {output}")
    output_data = {
        'epsilon': epsilon,
        'min_points': min_points,
        'deduplicated': dedupe,
        'total_clusters': stats.num_clusters,
        'total_points': len(points),
        'noise_points': stats.num_noise_points,
        'center': list(store.center()),
        'clusters': [[list(p) for p in c] for c in result.clusters],
        'noise': [list(p) for p in result.noise],
        'labels': result.labels,
        'cluster_sizes': stats.cluster_sizes,
        'layers': [layer.model_dump(mode='json') for layer in layers],
        'source_file': str(incidents_file),
        'created_at': datetime.now().isoformat(),
    }

    with open(output, 'w') as f:
        json.dump(output_data, f, indent=2, default=str)

    console.print("[green]Clustering complete![/green]")
    logger.info("Clustering complete", output=str(output), num_clusters=stats.num_clusters)

    return output
