"""
CrimeMap - density clustering and heatmap data for crime incident maps.

This package loads incident records, groups their coordinates with a
DBSCAN-style clusterer and describes the heat layers a map frontend draws.
"""

__version__ = "0.1.0"

from crimemap.config import settings

__all__ = [
    "settings",
    "__version__",
]
