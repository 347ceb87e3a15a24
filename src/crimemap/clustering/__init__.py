"""
Clustering module for incident hotspots using DBSCAN.
Provides density-based clustering of geographic points with a noise set.
"""

from crimemap.clustering.clusterer import (
    ClusterResult,
    ClusterStats,
    DBSCANClusterer,
    cluster_many,
    dbscan,
    summarize,
)

__all__ = [
    "ClusterResult",
    "ClusterStats",
    "DBSCANClusterer",
    "cluster_many",
    "dbscan",
    "summarize",
]
