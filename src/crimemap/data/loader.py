"""
Incident CSV loader.
Reads incident rows (id, Latitude, Longitude, DateOfReport, CrimeDateTime,
Crime, Location) into validated IncidentRecord objects.
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pydantic import ValidationError

from crimemap.core.models import IncidentRecord
from crimemap.core.exceptions import DataLoadError, DataValidationError
from crimemap.utils.logger import logger

CSV_COLUMNS = ["id", "Latitude", "Longitude", "DateOfReport", "CrimeDateTime", "Crime", "Location"]
REQUIRED_COLUMNS = ["id", "Latitude", "Longitude"]


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse a date/time cell, returning None when it is empty or unreadable.

    Ranges written as "start - end" keep the start. Timestamps with a UTC
    offset are converted to naive UTC.
    """
    if value is None or isinstance(value, datetime):
        return value

    text = value.strip().split(" - ")[0].strip()
    if not text:
        return None

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        logger.debug("Unparseable date", value=value)
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed.to_pydatetime()


def parse_row(row: Dict[str, Any]) -> IncidentRecord:
    """
    Convert one CSV row to an IncidentRecord.

    Raises:
        DataValidationError: If required columns are missing or invalid
    """
    incident_id = str(row.get("id") or "").strip()
    latitude = str(row.get("Latitude") or "").strip()
    longitude = str(row.get("Longitude") or "").strip()

    if not incident_id or not latitude or not longitude:
        raise DataValidationError("Row is missing id, Latitude or Longitude")

    try:
        return IncidentRecord(
            id=incident_id,
            latitude=float(latitude),
            longitude=float(longitude),
            crime=row.get("Crime") or "",
            date_of_report=parse_datetime(row.get("DateOfReport")),
            crime_datetime=parse_datetime(row.get("CrimeDateTime")),
            location=row.get("Location") or "",
        )
    except (ValueError, ValidationError) as e:
        raise DataValidationError(f"Invalid incident {incident_id}: {e}")


class IncidentLoader:
    """Loads incident records from a CSV file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.skipped = 0

    def _read_frame(self) -> pd.DataFrame:
        try:
            df = pd.read_csv(self.path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except pd.errors.EmptyDataError:
            raise DataLoadError(f"Incidents file has no header: {self.path}")
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise DataLoadError(f"Failed to read {self.path}: {e}")

        # Absent columns and short rows come back as NaN
        return df.reindex(columns=CSV_COLUMNS).fillna("").astype(str)

    def load(self, limit: Optional[int] = None) -> List[IncidentRecord]:
        """
        Load incidents, skipping rows without usable coordinates.

        Args:
            limit: Maximum number of records to return (None for all)

        Returns:
            List of IncidentRecord objects in file order

        Raises:
            DataLoadError: If the file can't be read or has no header
        """
        if not self.path.exists():
            raise DataLoadError(f"Incidents file not found: {self.path}")

        logger.info("Loading incidents", path=str(self.path), limit=limit)

        df = self._read_frame()
        present = pd.Series(True, index=df.index)
        for column in REQUIRED_COLUMNS:
            present &= df[column].str.strip() != ""
        self.skipped = int((~present).sum())
        df = df[present]

        records: List[IncidentRecord] = []
        for index, row in zip(df.index, df.to_dict("records")):
            if limit is not None and len(records) >= limit:
                break
            try:
                records.append(parse_row(row))
            except DataValidationError as e:
                self.skipped += 1
                logger.debug("Skipping row", line=int(index) + 2, reason=str(e))

        if self.skipped:
            logger.warning("Skipped invalid rows", path=str(self.path), skipped=self.skipped)

        logger.info("Loaded incidents", path=str(self.path), total=len(records))
        return records
