"""
Heat layer construction.
Turns a clustering result into layer descriptions for a map frontend: one
base layer over every point and one hotter layer per cluster.
"""
from typing import Dict, List, Sequence, Tuple

from crimemap.clustering.clusterer import ClusterResult, dbscan
from crimemap.core.models import HeatLayer, Point
from crimemap.data.store import IncidentStore
from crimemap.utils.logger import logger

BASE_INTENSITY = 0.5
BASE_RADIUS = 25
BASE_BLUR = 15

CLUSTER_INTENSITY = 1.0
CLUSTER_RADIUS = 30
CLUSTER_BLUR = 20
CLUSTER_GRADIENT: Dict[float, str] = {0.4: "blue", 0.6: "lime", 0.8: "red"}

MAX_ZOOM = 17


def _weighted(points: Sequence[Sequence[float]], intensity: float) -> List[Tuple[float, float, float]]:
    return [(float(lat), float(lng), intensity) for lat, lng in points]


def build_heat_layers(points: Sequence[Sequence[float]], result: ClusterResult) -> List[HeatLayer]:
    """
    Build the base layer followed by one layer per cluster.

    Args:
        points: Every point that was clustered
        result: Clustering result for those points

    Returns:
        List of HeatLayer, base layer first
    """
    layers = [
        HeatLayer(
            name="base",
            points=_weighted(points, BASE_INTENSITY),
            radius=BASE_RADIUS,
            blur=BASE_BLUR,
            max_zoom=MAX_ZOOM,
        )
    ]

    for cluster_id, cluster in enumerate(result.clusters):
        layers.append(
            HeatLayer(
                name=f"cluster-{cluster_id}",
                points=_weighted(cluster, CLUSTER_INTENSITY),
                radius=CLUSTER_RADIUS,
                blur=CLUSTER_BLUR,
                max_zoom=MAX_ZOOM,
                gradient=dict(CLUSTER_GRADIENT),
                cluster_id=cluster_id,
            )
        )

    return layers


def heatmap_for_store(
    store: IncidentStore,
    epsilon: float,
    min_points: int,
) -> Tuple[Point, ClusterResult, List[HeatLayer]]:
    """
    Cluster a store's incidents and build its heat layers.

    Returns:
        Tuple of (map center, ClusterResult, heat layers)

    Raises:
        InvalidParameterError: If epsilon or min_points is invalid
    """
    points = store.positions()
    result = dbscan(points, epsilon, min_points)
    layers = build_heat_layers(points, result)

    logger.info(
        "Built heat layers",
        num_points=len(points),
        num_layers=len(layers),
        epsilon=epsilon,
        min_points=min_points,
    )
    return store.center(), result, layers
