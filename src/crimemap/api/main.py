"""FastAPI application for CrimeMap."""
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from crimemap import __version__
from crimemap.config import settings
from crimemap.clustering.clusterer import dbscan, summarize
from crimemap.core.exceptions import InvalidParameterError
from crimemap.core.models import NewIncident
from crimemap.data.store import CSV_COLUMNS, EXPORT_COLUMNS, IncidentStore
from crimemap.heatmap.layers import heatmap_for_store
from crimemap.utils.logger import logger

app = FastAPI(
    title="CrimeMap API",
    description="Crime incident clustering and heatmap data",
    version=__version__,
)

# Data loaded by init_app()
store = IncidentStore()


def init_app(data_path: Optional[Path] = None, limit: Optional[int] = None) -> IncidentStore:
    """Load incidents into the app."""
    global store

    data_path = data_path or settings.INCIDENTS_FILE
    store = IncidentStore.from_csv(data_path, limit=limit)
    logger.info("API data loaded", path=str(data_path), incidents=len(store))
    return store


def _bad_parameters(e: InvalidParameterError) -> HTTPException:
    logger.warning("Rejected clustering parameters", error=str(e))
    return HTTPException(status_code=422, detail=str(e))


@app.get("/health")
def health_check():
    """Check if the server is running and data is loaded."""
    return {
        "status": "ok",
        "version": __version__,
        "incidents_loaded": len(store),
    }


@app.get("/incidents")
def list_incidents(limit: int = 100, offset: int = 0):
    """List incidents with pagination."""
    records = store.records
    return {
        "incidents": [r.model_dump(mode="json") for r in records[offset:offset + limit]],
        "total": len(records),
    }


@app.get("/incidents/export")
def export_incidents(full: bool = False):
    """Download the current dataset as CSV."""
    csv_text = store.to_csv(CSV_COLUMNS if full else EXPORT_COLUMNS)
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{settings.EXPORT_FILENAME}"'},
    )


@app.get("/incidents/{incident_id}")
def get_incident(incident_id: str):
    """Get a single incident by ID."""
    record = store.get(incident_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Incident {incident_id} not found")
    return record.model_dump(mode="json")


@app.post("/incidents", status_code=201)
def add_incident(incident: NewIncident):
    """Append an incident at a clicked map coordinate."""
    record = store.add_incident(
        latitude=incident.latitude,
        longitude=incident.longitude,
        crime=incident.crime,
        crime_datetime=incident.crime_datetime,
        date_of_report=incident.date_of_report,
        location=incident.location,
    )
    return record.model_dump(mode="json")


@app.get("/clusters")
def list_clusters(
    epsilon: float = settings.DEFAULT_EPSILON,
    min_points: int = settings.DEFAULT_MIN_POINTS,
):
    """Cluster the current incidents and return clusters, noise and stats."""
    try:
        result = dbscan(store.positions(), epsilon, min_points)
    except InvalidParameterError as e:
        raise _bad_parameters(e)

    return {
        "epsilon": epsilon,
        "min_points": min_points,
        "clusters": [[list(p) for p in cluster] for cluster in result.clusters],
        "noise": [list(p) for p in result.noise],
        "labels": result.labels,
        "stats": asdict(summarize(result)),
    }


@app.get("/heatmap")
def get_heatmap(
    epsilon: float = settings.DEFAULT_EPSILON,
    min_points: int = settings.DEFAULT_MIN_POINTS,
):
    """Map center plus heat layers (base layer first, then one per cluster)."""
    try:
        center, result, layers = heatmap_for_store(store, epsilon, min_points)
    except InvalidParameterError as e:
        raise _bad_parameters(e)

    return {
        "center": list(center),
        "num_clusters": result.num_clusters,
        "layers": [layer.model_dump(mode="json") for layer in layers],
    }
