"""
DBSCAN clustering implementation for incident hotspots.
Groups geographic points into density-connected clusters plus a noise set.
"""
import math
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from numbers import Integral, Real
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from crimemap.core.models import Point
from crimemap.core.exceptions import ClusteringError, InvalidParameterError
from crimemap.utils.logger import logger

NOISE = -1


@dataclass
class ClusterResult:
    """Outcome of one clustering run.

    ``labels`` is aligned with the input points: the cluster index of each
    point, or -1 for noise.
    """

    clusters: List[List[Point]] = field(default_factory=list)
    noise: List[Point] = field(default_factory=list)
    labels: List[int] = field(default_factory=list)
    epsilon: Optional[float] = None
    min_points: Optional[int] = None

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)


@dataclass
class ClusterStats:
    """Statistics about clustering results."""

    num_clusters: int
    num_noise_points: int
    total_points: int
    cluster_sizes: Dict[int, int]
    avg_cluster_size: float
    largest_cluster_size: int
    smallest_cluster_size: int
    noise_fraction: float


def validate_parameters(epsilon: float, min_points: int) -> None:
    """
    Reject non-positive or non-numeric clustering parameters.

    Raises:
        InvalidParameterError: If epsilon is not a finite positive number or
            min_points is not a positive integer
    """
    if isinstance(epsilon, bool) or not isinstance(epsilon, Real):
        raise InvalidParameterError(f"epsilon must be a number, got {epsilon!r}")
    if not math.isfinite(epsilon) or epsilon <= 0:
        raise InvalidParameterError(f"epsilon must be a finite positive number, got {epsilon}")
    if isinstance(min_points, bool) or not isinstance(min_points, Integral):
        raise InvalidParameterError(f"min_points must be an integer, got {min_points!r}")
    if min_points <= 0:
        raise InvalidParameterError(f"min_points must be positive, got {min_points}")


def as_coordinates(points) -> np.ndarray:
    """
    Convert a sequence of (latitude, longitude) pairs to an (n, 2) float array.

    Raises:
        InvalidParameterError: If the points are not pairs or contain NaN/inf
    """
    try:
        coords = np.asarray(points, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"Points must be (latitude, longitude) pairs: {e}")

    if coords.size == 0:
        return coords.reshape(0, 2)
    if coords.ndim != 2 or coords.shape[1] != 2:
        raise InvalidParameterError(
            f"Points must be (latitude, longitude) pairs, got array of shape {coords.shape}"
        )
    if not np.isfinite(coords).all():
        bad = int(np.flatnonzero(~np.isfinite(coords).all(axis=1))[0])
        raise InvalidParameterError(f"Point {bad} has a non-finite coordinate: {tuple(coords[bad])}")
    return coords


def _region_query(coords: np.ndarray, index: int, eps_sq: float) -> np.ndarray:
    """Indices of all points within epsilon of coords[index], itself included."""
    deltas = coords - coords[index]
    return np.flatnonzero((deltas * deltas).sum(axis=1) <= eps_sq)


def _label_points(
    coords: np.ndarray,
    epsilon: float,
    min_points: int,
) -> Tuple[np.ndarray, List[List[int]]]:
    """
    Core DBSCAN pass over an (n, 2) array.

    Returns the per-point labels and, for each cluster, its member indices in
    the order they were claimed (seed first). The first cluster to reach a
    point claims it; provisional noise is claimed by any later expansion that
    reaches it.
    """
    n = coords.shape[0]
    eps_sq = float(epsilon) * float(epsilon)
    labels = np.full(n, NOISE, dtype=int)
    visited = np.zeros(n, dtype=bool)
    members: List[List[int]] = []

    for seed in range(n):
        if visited[seed]:
            continue
        visited[seed] = True

        neighbors = _region_query(coords, seed, eps_sq)
        if len(neighbors) < min_points:
            continue  # provisional noise

        cluster_id = len(members)
        labels[seed] = cluster_id
        cluster = [seed]
        frontier: deque = deque()

        while True:
            for k in neighbors:
                if labels[k] == NOISE:
                    labels[k] = cluster_id
                    cluster.append(int(k))
                    if not visited[k]:
                        frontier.append(k)

            if not frontier:
                break
            current = frontier.popleft()
            visited[current] = True
            neighbors = _region_query(coords, current, eps_sq)
            if len(neighbors) < min_points:
                neighbors = ()  # border point, not expanded

        members.append(cluster)

    return labels, members


def dbscan(
    points: Sequence[Sequence[float]],
    epsilon: float,
    min_points: int,
    deduplicate: bool = False,
) -> ClusterResult:
    """
    Cluster geographic points with DBSCAN.

    Distances are plain Euclidean distances over (latitude, longitude)
    degrees; there is no spatial index, so the cost is O(n^2) comparisons.

    Args:
        points: Sequence of (latitude, longitude) pairs, or an (n, 2) array
        epsilon: Neighborhood radius, in the same units as the points
        min_points: Minimum neighborhood size (counting the point itself)
            for a point to be a core point
        deduplicate: Collapse points with identical coordinates before
            clustering. By default duplicates are kept, so each one appears
            in the output.

    Returns:
        ClusterResult with clusters, noise and per-point labels

    Raises:
        InvalidParameterError: On invalid parameters or points
    """
    validate_parameters(epsilon, min_points)
    return _cluster_coordinates(as_coordinates(points), epsilon, min_points, deduplicate)


def _cluster_coordinates(
    coords: np.ndarray,
    epsilon: float,
    min_points: int,
    deduplicate: bool,
) -> ClusterResult:
    """Run DBSCAN over an already validated (n, 2) coordinate array."""
    if coords.shape[0] == 0:
        return ClusterResult(epsilon=epsilon, min_points=min_points)

    keys = [Point(float(lat), float(lng)) for lat, lng in coords]

    if deduplicate:
        unique = list(dict.fromkeys(keys))
        position = {p: i for i, p in enumerate(unique)}
        unique_labels, members = _label_points(
            np.array(unique, dtype=float), epsilon, min_points
        )
        labels = [int(unique_labels[position[p]]) for p in keys]
        clusters = [[unique[i] for i in cluster] for cluster in members]
        noise = [p for p, label in zip(unique, unique_labels) if label == NOISE]
    else:
        point_labels, members = _label_points(coords, epsilon, min_points)
        labels = [int(label) for label in point_labels]
        clusters = [[keys[i] for i in cluster] for cluster in members]
        noise = [p for p, label in zip(keys, labels) if label == NOISE]

    logger.debug(
        "DBSCAN complete",
        num_points=len(keys),
        num_clusters=len(clusters),
        num_noise_points=len(noise),
        epsilon=epsilon,
        min_points=min_points,
    )

    return ClusterResult(
        clusters=clusters,
        noise=noise,
        labels=labels,
        epsilon=epsilon,
        min_points=min_points,
    )


def summarize(result: ClusterResult) -> ClusterStats:
    """Compute statistics for a clustering result."""
    cluster_sizes = {cid: len(cluster) for cid, cluster in enumerate(result.clusters)}
    total_points = sum(cluster_sizes.values()) + len(result.noise)
    num_noise = len(result.noise)

    return ClusterStats(
        num_clusters=len(cluster_sizes),
        num_noise_points=num_noise,
        total_points=total_points,
        cluster_sizes=cluster_sizes,
        avg_cluster_size=float(np.mean(list(cluster_sizes.values()))) if cluster_sizes else 0.0,
        largest_cluster_size=max(cluster_sizes.values()) if cluster_sizes else 0,
        smallest_cluster_size=min(cluster_sizes.values()) if cluster_sizes else 0,
        noise_fraction=num_noise / total_points if total_points > 0 else 0.0,
    )


def cluster_many(
    point_sets: Sequence[Sequence[Sequence[float]]],
    epsilon: float,
    min_points: int,
    deduplicate: bool = False,
    max_workers: int = 4,
) -> List[ClusterResult]:
    """
    Cluster several independent point sets on a thread pool.

    Each run owns its working state, so runs never share anything. Results
    come back in the order of ``point_sets``; the first failure is raised.
    """
    validate_parameters(epsilon, min_points)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(dbscan, points, epsilon, min_points, deduplicate)
            for points in point_sets
        ]
        return [future.result() for future in futures]


class DBSCANClusterer:
    """
    Density-based clustering of incident coordinates using DBSCAN.

    DBSCAN:
    1. Treats a point with at least ``min_points`` neighbors within
       ``epsilon`` as a core point
    2. Grows clusters from core points through their neighborhoods
    3. Attaches border points to the first cluster that reaches them
    4. Leaves everything else as noise

    An instance keeps the points and result of its last run; use one
    instance per thread.
    """

    def __init__(
        self,
        epsilon: float = 0.01,
        min_points: int = 3,
        deduplicate: bool = False,
    ):
        """
        Initialize DBSCAN clusterer.

        Args:
            epsilon: Neighborhood radius in degrees.
                Larger = fewer, larger clusters.
            min_points: Minimum neighborhood size, the point included.
                1 makes every point a cluster core.
            deduplicate: Collapse identical coordinates before clustering.

        Raises:
            InvalidParameterError: If epsilon or min_points is invalid
        """
        validate_parameters(epsilon, min_points)

        self.epsilon = epsilon
        self.min_points = min_points
        self.deduplicate = deduplicate

        self.points: Optional[np.ndarray] = None
        self.result: Optional[ClusterResult] = None

        logger.info(
            "Initialized DBSCANClusterer",
            epsilon=epsilon,
            min_points=min_points,
            deduplicate=deduplicate,
        )

    def cluster(self, points: Sequence[Sequence[float]]) -> ClusterResult:
        """
        Cluster points and remember the result.

        Args:
            points: Sequence of (latitude, longitude) pairs

        Returns:
            ClusterResult for the points
        """
        coords = as_coordinates(points)
        logger.info("Starting DBSCAN clustering", num_points=coords.shape[0])

        result = _cluster_coordinates(coords, self.epsilon, self.min_points, self.deduplicate)
        self.points = coords
        self.result = result

        logger.info(
            "DBSCAN clustering complete",
            num_clusters=result.num_clusters,
            num_noise_points=len(result.noise),
            total_points=len(result.labels),
        )
        return result

    def get_stats(self) -> ClusterStats:
        """
        Get clustering statistics.

        Raises:
            ClusteringError: If clustering hasn't been run yet
        """
        if self.result is None:
            raise ClusteringError("Clustering hasn't been run yet")
        return summarize(self.result)

    def get_cluster_members(self, cluster_id: int) -> np.ndarray:
        """
        Get indices of input points in a cluster.

        Args:
            cluster_id: Cluster index (-1 for noise)

        Returns:
            Array of indices
        """
        if self.result is None:
            raise ClusteringError("Clustering hasn't been run yet")

        return np.flatnonzero(np.asarray(self.result.labels, dtype=int) == cluster_id)

    def get_cluster_center(self, cluster_id: int) -> Point:
        """
        Get the mean coordinate of a cluster's input points.

        Raises:
            ClusteringError: If the cluster doesn't exist or is noise
        """
        if cluster_id == NOISE:
            raise ClusteringError("Cannot get center of noise (-1)")

        if self.points is None or self.result is None:
            raise ClusteringError("Clustering hasn't been run yet")

        members = self.get_cluster_members(cluster_id)
        if len(members) == 0:
            raise ClusteringError(f"Cluster {cluster_id} has no members")

        lat, lng = self.points[members].mean(axis=0)
        return Point(float(lat), float(lng))
