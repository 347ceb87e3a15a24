"""Main CLI application."""
import typer

from crimemap.cli.cluster import cluster
from crimemap.cli.export import export
from crimemap.cli.serve import serve

app = typer.Typer(
    name="crimemap",
    help="Crime incident clustering and heatmap data.",
    add_completion=False,
)

app.command()(cluster)
app.command()(export)
app.command()(serve)


if __name__ == "__main__":
    app()
