"""
Pydantic models for type-safe data handling.
Defines the contract for crime incident data and internal representations.
"""
from datetime import datetime
from typing import Optional, List, Dict, NamedTuple, Tuple
from pydantic import BaseModel, Field, field_validator, ConfigDict


class Point(NamedTuple):
    """A (latitude, longitude) coordinate pair, compared and hashed by value."""

    lat: float
    lng: float


class IncidentRecord(BaseModel):
    """
    Schema for a single crime incident.
    Mirrors one row of the incidents CSV (id, Latitude, Longitude, DateOfReport,
    CrimeDateTime, Crime, Location).
    """

    # Required fields
    id: str = Field(..., min_length=1, description="Unique identifier for the incident")
    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")

    # Optional metadata
    crime: str = Field(default="", description="Crime category")
    date_of_report: Optional[datetime] = Field(None, description="When the incident was reported")
    crime_datetime: Optional[datetime] = Field(None, description="When the incident happened")
    location: str = Field(default="", description="Address or free-text location")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure the id is not blank."""
        if not v.strip():
            raise ValueError("Incident id cannot be empty")
        return v.strip()

    @property
    def position(self) -> Point:
        """Coordinates of the incident as a Point."""
        return Point(self.latitude, self.longitude)


class NewIncident(BaseModel):
    """
    Payload for appending an incident at a map coordinate.
    The id is assigned by the store.
    """

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    crime: str = Field(default="", description="Crime category")
    crime_datetime: Optional[datetime] = None
    date_of_report: Optional[datetime] = None
    location: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class HeatLayer(BaseModel):
    """
    Description of one heatmap layer for a map frontend.
    Points are [latitude, longitude, intensity] triples.
    """

    name: str = Field(..., description="Layer name (base or cluster-N)")
    points: List[Tuple[float, float, float]] = Field(default_factory=list)
    radius: int = Field(..., ge=1, description="Point radius in pixels")
    blur: int = Field(..., ge=0, description="Blur amount in pixels")
    max_zoom: int = Field(17, ge=0, description="Zoom level of maximum intensity")
    gradient: Optional[Dict[float, str]] = Field(None, description="Gradient stop -> colour")
    cluster_id: Optional[int] = Field(None, ge=0, description="Cluster index, None for the base layer")

    model_config = ConfigDict(validate_assignment=True)

    @property
    def is_cluster_layer(self) -> bool:
        """Check if this layer highlights a cluster."""
        return self.cluster_id is not None
