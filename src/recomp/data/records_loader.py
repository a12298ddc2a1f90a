"""Load and validate daily records from CSV files."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from recomp.db.queries import DailyRecordQueries
from recomp.errors import MissingUnitError, ValidationError
from recomp.tracking.models import DailyDataPoint, MassUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedRecord:
    """A validated CSV row, mass kept in the unit it was entered in."""

    row_number: int
    point: DailyDataPoint
    body_mass: Optional[float]
    unit: Optional[MassUnit]


def _optional(value: object) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _is_complete(value: object) -> bool:
    if value is None or pd.isna(value):
        return True
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


class RecordsLoader:
    """Handles importing daily records from CSV files."""

    REQUIRED_COLUMNS = ["date", "unit"]
    OPTIONAL_COLUMNS = [
        "body_mass",
        "calories",
        "is_complete",
        "steps",
        "exercise_calories",
        "activity_class",
    ]

    def __init__(self, conn: sqlite3.Connection):
        """Initialize the records loader.

        Args:
            conn: SQLite database connection
        """
        self.conn = conn

    @classmethod
    def parse_frame(cls, df: pd.DataFrame) -> list[ParsedRecord]:
        """Validate every row before anything is written.

        Row numbers are 1-based data rows (the header is not counted).

        Raises:
            MissingUnitError: If any row has a mass but no unit; lists all such rows
            ValidationError: If required columns are missing or a value is invalid
        """
        missing = set(cls.REQUIRED_COLUMNS) - set(df.columns)
        if missing:
            raise ValidationError(
                f"Missing required columns: {sorted(missing)}. "
                f"Required columns are: {cls.REQUIRED_COLUMNS}"
            )

        no_unit = []
        for i, row in enumerate(df.itertuples(index=False), start=1):
            mass = _optional(getattr(row, "body_mass", None))
            unit = getattr(row, "unit")
            if mass is not None and (unit is None or pd.isna(unit) or str(unit).strip() == ""):
                no_unit.append(f"row {i}")
        if no_unit:
            raise MissingUnitError(no_unit)

        records = []
        for i, row in enumerate(df.to_dict("records"), start=1):
            mass = _optional(row.get("body_mass"))
            activity = row.get("activity_class")
            try:
                unit = MassUnit.parse(row["unit"]) if mass is not None else None
                point = DailyDataPoint.create(
                    date.fromisoformat(str(row["date"]).strip()),
                    mass,
                    unit,
                    _optional(row.get("calories")),
                    _is_complete(row.get("is_complete")),
                    _optional(row.get("steps")),
                    _optional(row.get("exercise_calories")),
                    None if activity is None or pd.isna(activity) else str(activity).strip(),
                )
            except ValueError as e:
                raise ValidationError(f"row {i}: {e}", getattr(e, "field", None)) from e
            records.append(ParsedRecord(i, point, mass, unit))
        return records

    def load_from_csv(self, csv_path: Path, user_id: int) -> dict[str, int]:
        """Load daily records from a CSV file.

        CSV format:
            date,body_mass,unit,calories,is_complete,steps,exercise_calories
            2025-01-15,81.2,kg,2350,true,8500,300

        A record for a date that already exists replaces it.

        Args:
            csv_path: Path to the CSV file
            user_id: Owner of the records

        Returns:
            Dict with counts: {'loaded': n, 'with_mass': m, 'with_calories': k}

        Raises:
            MissingUnitError: If any row has a mass without a unit
            ValidationError: If the file is malformed
        """
        df = pd.read_csv(csv_path)
        records = self.parse_frame(df)

        for record in records:
            p = record.point
            DailyRecordQueries.upsert_record(
                self.conn,
                user_id,
                p.date,
                record.body_mass,
                record.unit,
                p.calories,
                p.is_complete,
                p.steps,
                p.exercise_calories,
                p.activity_class.value if p.activity_class else None,
            )

        logger.info("Imported %d record(s) from %s", len(records), csv_path)
        return {
            "loaded": len(records),
            "with_mass": sum(1 for r in records if r.body_mass is not None),
            "with_calories": sum(1 for r in records if r.point.calories is not None),
        }

    def export_template(self, output_path: Path) -> None:
        """Write an empty CSV with all supported columns."""
        columns = ["date", "body_mass", "unit", "calories", "is_complete", "steps",
                   "exercise_calories", "activity_class"]
        pd.DataFrame(columns=columns).to_csv(output_path, index=False)
