"""
Custom exceptions for the CrimeMap application.
"""


class CrimeMapError(Exception):
    """Base exception for all CrimeMap errors."""
    pass


class DataValidationError(CrimeMapError):
    """Raised when an incident record fails validation."""
    pass


class DataLoadError(CrimeMapError):
    """Raised when data loading fails."""
    pass


class ClusteringError(CrimeMapError):
    """Raised when clustering operations fail."""
    pass


class InvalidParameterError(ClusteringError):
    """Raised when clustering parameters or input points are invalid."""
    pass
