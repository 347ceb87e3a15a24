"""
In-memory incident dataset.
Holds loaded records, appends new incidents and re-exports the data as CSV.
"""
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from crimemap.config import settings
from crimemap.core.models import IncidentRecord, Point
from crimemap.data.loader import CSV_COLUMNS, IncidentLoader
from crimemap.utils.logger import logger

EXPORT_COLUMNS = ["id", "Latitude", "Longitude"]


def _record_row(record: IncidentRecord) -> dict:
    return {
        "id": record.id,
        "Latitude": repr(record.latitude),
        "Longitude": repr(record.longitude),
        "DateOfReport": record.date_of_report.isoformat() if record.date_of_report else "",
        "CrimeDateTime": record.crime_datetime.isoformat() if record.crime_datetime else "",
        "Crime": record.crime,
        "Location": record.location,
    }


class IncidentStore:
    """
    Thread-safe, insertion-ordered collection of incidents.

    New incidents get the next numeric id (one above the highest numeric
    id present, "0" when the store is empty).
    """

    def __init__(self, records: Optional[Iterable[IncidentRecord]] = None):
        self._records: List[IncidentRecord] = list(records or [])
        self._lock = threading.Lock()

    @classmethod
    def from_csv(cls, path: Path, limit: Optional[int] = None) -> "IncidentStore":
        """Create a store from an incidents CSV file."""
        return cls(IncidentLoader(path).load(limit=limit))

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[IncidentRecord]:
        """Snapshot of the records."""
        with self._lock:
            return list(self._records)

    def get(self, incident_id: str) -> Optional[IncidentRecord]:
        """Find an incident by id."""
        with self._lock:
            for record in self._records:
                if record.id == incident_id:
                    return record
        return None

    def _next_id(self) -> str:
        numeric = [int(r.id) for r in self._records if r.id.lstrip("-").isdigit()]
        return str(max(numeric) + 1) if numeric else "0"

    def add_incident(
        self,
        latitude: float,
        longitude: float,
        crime: str = "",
        crime_datetime: Optional[datetime] = None,
        date_of_report: Optional[datetime] = None,
        location: Optional[str] = None,
    ) -> IncidentRecord:
        """
        Append an incident at a coordinate.

        Dates default to now and the location to "<lat>, <lng>".

        Raises:
            pydantic.ValidationError: If the coordinates are out of range
        """
        now = datetime.now()
        with self._lock:
            record = IncidentRecord(
                id=self._next_id(),
                latitude=latitude,
                longitude=longitude,
                crime=crime,
                crime_datetime=crime_datetime or now,
                date_of_report=date_of_report or now,
                location=location or f"{latitude}, {longitude}",
            )
            self._records.append(record)

        logger.info("Added incident", id=record.id, latitude=latitude, longitude=longitude)
        return record

    def positions(self) -> List[Point]:
        """Coordinates of every incident, in insertion order."""
        return [r.position for r in self.records]

    def center(self) -> Point:
        """Mean coordinate of the incidents, or the configured default center."""
        positions = self.positions()
        if not positions:
            return Point(settings.DEFAULT_CENTER_LAT, settings.DEFAULT_CENTER_LNG)
        lat, lng = np.asarray(positions, dtype=float).mean(axis=0)
        return Point(float(lat), float(lng))

    def to_csv(self, columns: Sequence[str] = EXPORT_COLUMNS) -> str:
        """
        Serialize incidents as CSV text.

        Args:
            columns: Columns to write; defaults to id, Latitude, Longitude.
                Use CSV_COLUMNS for every field.
        """
        unknown = [c for c in columns if c not in CSV_COLUMNS]
        if unknown:
            raise ValueError(f"Unknown export columns: {unknown}")

        return self._frame(columns).to_csv(index=False)

    def _frame(self, columns: Sequence[str]) -> pd.DataFrame:
        return pd.DataFrame([_record_row(r) for r in self.records], columns=list(columns))

    def export_csv(self, path: Path, full: bool = False) -> Path:
        """Write incidents to a CSV file and return its path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._frame(CSV_COLUMNS if full else EXPORT_COLUMNS).to_csv(path, index=False, encoding="utf-8")

        logger.info("Exported incidents", path=str(path), total=len(self), full=full)
        return path
