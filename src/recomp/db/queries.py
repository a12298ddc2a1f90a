"""Database queries for users, daily records, estimates, targets and scans."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import replace
from datetime import date
from typing import Any, Optional, Sequence

from recomp.bodycomp.models import (
    CalibrationTier,
    DEXAScan,
    ScanConditions,
    ScanConfidence,
    TrainingAge,
)
from recomp.bodycomp.profile import UserBodyCompProfile
from recomp.db.connection import DatabaseConnection
from recomp.errors import MissingUnitError
from recomp.tracking.formula import ActivityConfig
from recomp.tracking.models import (
    DailyDataPoint,
    MassUnit,
    NutritionTarget,
    TDEEEstimate,
    UserProfile,
)
from recomp.tracking.serialization import deserialize_estimate, serialize_estimate


class UserQueries:
    """Database queries for user profiles."""

    @staticmethod
    def create_user(
        conn: sqlite3.Connection,
        profile: UserProfile,
        activity: Optional[ActivityConfig] = None,
    ) -> int:
        """Create a new user profile and return the user_id."""
        activity = activity or ActivityConfig()
        cursor = conn.execute(
            """
            INSERT INTO user_profiles (name, age, sex, height_cm, body_fat_percent,
                                       display_unit, activity_level, workouts_per_week,
                                       avg_workout_minutes, workout_intensity)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                profile.name,
                profile.age,
                profile.sex,
                profile.height_cm,
                profile.body_fat_percent,
                profile.display_unit.value,
                activity.activity_level.value,
                activity.workouts_per_week,
                activity.avg_workout_minutes,
                activity.intensity.value,
            ),
        )
        conn.commit()
        return cursor.lastrowid or 0

    @staticmethod
    def get_user(conn: sqlite3.Connection, user_id: int) -> Optional[UserProfile]:
        """Get user profile by ID."""
        row = conn.execute(
            """
            SELECT user_id, age, sex, height_cm, body_fat_percent, name, display_unit
            FROM user_profiles WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()

        if row is None:
            return None

        return UserProfile(
            user_id=row[0],
            age=row[1],
            sex=row[2],
            height_cm=row[3],
            body_fat_percent=row[4],
            name=row[5],
            display_unit=MassUnit(row[6]),
        )

    @staticmethod
    def get_default_user_id(conn: sqlite3.Connection) -> Optional[int]:
        """Get the first user's ID."""
        row = conn.execute("SELECT user_id FROM user_profiles ORDER BY user_id LIMIT 1").fetchone()
        return row[0] if row else None

    @staticmethod
    def get_activity(conn: sqlite3.Connection, user_id: int) -> ActivityConfig:
        """Declared activity pattern (moderate when the user is unknown)."""
        row = conn.execute(
            """
            SELECT activity_level, workouts_per_week, avg_workout_minutes, workout_intensity
            FROM user_profiles WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        if row is None:
            return ActivityConfig()
        return ActivityConfig(
            activity_level=row[0],
            workouts_per_week=row[1],
            avg_workout_minutes=row[2],
            intensity=row[3],
        )


class DailyRecordQueries:
    """Database queries for daily source records."""

    @staticmethod
    def upsert_record(
        conn: sqlite3.Connection,
        user_id: int,
        day: date,
        body_mass: Optional[float],
        unit: Optional[MassUnit | str],
        calories: Optional[float],
        is_complete: bool = True,
        steps: Optional[float] = None,
        exercise_calories: Optional[float] = None,
        activity_class: Optional[str] = None,
    ) -> DailyDataPoint:
        """
        Insert or replace the record for a date.

        The mass is stored as entered along with its unit. Validation runs
        before anything is written.

        Raises:
            MissingUnitError: If a mass is given without a unit
            ValidationError: If any value is out of range
        """
        point = DailyDataPoint.create(
            day, body_mass, unit, calories, is_complete, steps, exercise_calories, activity_class
        )
        unit_value = MassUnit.parse(unit).value if body_mass is not None else None
        conn.execute(
            """
            INSERT OR REPLACE INTO daily_records
            (user_id, date, body_mass, unit, calories, is_complete, steps,
             exercise_calories, activity_class)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                day.isoformat(),
                body_mass,
                unit_value,
                calories,
                is_complete,
                steps,
                exercise_calories,
                point.activity_class.value if point.activity_class else None,
            ),
        )
        conn.commit()
        return point

    @staticmethod
    def upsert_points(
        conn: sqlite3.Connection,
        user_id: int,
        points: Sequence[DailyDataPoint],
    ) -> int:
        """Store already-validated points (masses in kg). Returns the count."""
        conn.executemany(
            """
            INSERT OR REPLACE INTO daily_records
            (user_id, date, body_mass, unit, calories, is_complete, steps,
             exercise_calories, activity_class)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    user_id,
                    p.date.isoformat(),
                    p.body_mass_kg,
                    MassUnit.KG.value if p.body_mass_kg is not None else None,
                    p.calories,
                    p.is_complete,
                    p.steps,
                    p.exercise_calories,
                    p.activity_class.value if p.activity_class else None,
                )
                for p in points
            ],
        )
        conn.commit()
        return len(points)

    @staticmethod
    def find_missing_units(conn: sqlite3.Connection, user_id: int) -> list[int]:
        """IDs of legacy records that have a mass but no unit."""
        rows = conn.execute(
            """
            SELECT record_id FROM daily_records
            WHERE user_id = ? AND body_mass IS NOT NULL AND unit IS NULL
            ORDER BY date
            """,
            (user_id,),
        ).fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def migrate_units(
        conn: sqlite3.Connection,
        record_ids: Sequence[int],
        unit: MassUnit | str,
    ) -> int:
        """One-time migration: tag legacy records with a unit confirmed by the user."""
        unit_value = MassUnit.parse(unit).value
        cursor = conn.executemany(
            "UPDATE daily_records SET unit = ? WHERE record_id = ? AND unit IS NULL",
            [(unit_value, record_id) for record_id in record_ids],
        )
        conn.commit()
        return cursor.rowcount

    @staticmethod
    def get_points(
        conn: sqlite3.Connection,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[DailyDataPoint]:
        """
        Get daily records as points in kg, in chronological order.

        Raises:
            MissingUnitError: If any record in range has a mass without a unit
        """
        query = """
            SELECT record_id, date, body_mass, unit, calories, is_complete, steps,
                   exercise_calories, activity_class
            FROM daily_records
            WHERE user_id = ?
        """
        params: list = [user_id]

        if start_date:
            query += " AND date >= ?"
            params.append(start_date.isoformat())
        if end_date:
            query += " AND date <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY date"
        rows = conn.execute(query, params).fetchall()

        missing = [str(row[0]) for row in rows if row[2] is not None and row[3] is None]
        if missing:
            raise MissingUnitError(missing)

        return [
            DailyDataPoint.create(
                date.fromisoformat(row[1]),
                row[2],
                row[3],
                row[4],
                bool(row[5]),
                row[6],
                row[7],
                row[8],
            )
            for row in rows
        ]

    @staticmethod
    def delete_record(conn: sqlite3.Connection, user_id: int, day: date) -> bool:
        cursor = conn.execute(
            "DELETE FROM daily_records WHERE user_id = ? AND date = ?",
            (user_id, day.isoformat()),
        )
        conn.commit()
        return cursor.rowcount > 0


class EstimateQueries:
    """Database queries for the current TDEE estimate."""

    @staticmethod
    def save_estimate(
        conn: sqlite3.Connection,
        user_id: int,
        estimate: TDEEEstimate,
        estimated_at: date,
    ) -> None:
        """Save the user's current estimate (insert or replace)."""
        conn.execute(
            """
            INSERT OR REPLACE INTO tdee_estimates (user_id, estimated_at, payload_json)
            VALUES (?, ?, ?)
            """,
            (user_id, estimated_at.isoformat(), json.dumps(serialize_estimate(estimate))),
        )
        conn.commit()

    @staticmethod
    def get_estimate(conn: sqlite3.Connection, user_id: int) -> Optional[TDEEEstimate]:
        row = conn.execute(
            "SELECT payload_json FROM tdee_estimates WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return deserialize_estimate(json.loads(row[0]))


class SqliteEstimateRepository:
    """EstimateRepository backed by the tdee_estimates table."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def load_estimate(self, user_id: int) -> Optional[TDEEEstimate]:
        with self.db.get_connection() as conn:
            return EstimateQueries.get_estimate(conn, user_id)

    def save_estimate(self, user_id: int, estimate: TDEEEstimate) -> None:
        history = estimate.estimate_history
        estimated_at = history[-1].date if history else date.today()
        with self.db.get_connection() as conn:
            EstimateQueries.save_estimate(conn, user_id, estimate, estimated_at)


class TargetQueries:
    """Database queries for the active calorie target."""

    @staticmethod
    def set_target(
        conn: sqlite3.Connection,
        user_id: int,
        calories: float,
        goal_offset: float = 0.0,
        updated_at: Optional[date] = None,
    ) -> NutritionTarget:
        updated_at = updated_at or date.today()
        conn.execute(
            """
            INSERT OR REPLACE INTO nutrition_targets (user_id, calories, goal_offset, updated_at)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, calories, goal_offset, updated_at.isoformat()),
        )
        conn.commit()
        return NutritionTarget(user_id, calories, goal_offset, updated_at)

    @staticmethod
    def get_target(conn: sqlite3.Connection, user_id: int) -> Optional[NutritionTarget]:
        row = conn.execute(
            """
            SELECT user_id, calories, goal_offset, updated_at
            FROM nutrition_targets WHERE user_id = ?
            """,
            (user_id,),
        ).fetchone()
        if row is None:
            return None
        return NutritionTarget(row[0], row[1], row[2], date.fromisoformat(row[3]))


def _row_to_scan(row: sqlite3.Row) -> DEXAScan:
    return DEXAScan(
        scan_id=row["scan_id"],
        scan_date=date.fromisoformat(row["scan_date"]),
        total_mass_kg=row["total_mass_kg"],
        fat_mass_kg=row["fat_mass_kg"],
        lean_mass_kg=row["lean_mass_kg"],
        bone_mineral_kg=row["bone_mineral_kg"],
        body_fat_percent=row["body_fat_percent"],
        conditions=ScanConditions(
            time_of_day=row["time_of_day"],
            hydration=row["hydration"],
            recent_workout=bool(row["recent_workout"]),
            same_provider_as_previous=(
                None if row["same_provider"] is None else bool(row["same_provider"])
            ),
        ),
        provider=row["provider"],
        is_baseline=bool(row["is_baseline"]),
        confidence=ScanConfidence(row["confidence"]),
        notes=row["notes"],
    )


class ScanQueries:
    """Database queries for body composition scans."""

    @staticmethod
    def list_scans(conn: sqlite3.Connection, user_id: int) -> list[DEXAScan]:
        """All scans for a user, oldest first."""
        rows = conn.execute(
            "SELECT * FROM dexa_scans WHERE user_id = ? ORDER BY scan_date",
            (user_id,),
        ).fetchall()
        return [_row_to_scan(row) for row in rows]

    @staticmethod
    def replace_scans(
        conn: sqlite3.Connection,
        user_id: int,
        scans: Sequence[DEXAScan],
    ) -> list[DEXAScan]:
        """
        Make the stored scans match ``scans`` exactly.

        Scans with an ID keep it; new scans get one assigned. Used after every
        profile change since rescoring can touch every scan's confidence.

        Returns:
            The scans with their database IDs
        """
        conn.execute("DELETE FROM dexa_scans WHERE user_id = ?", (user_id,))
        stored = []
        for scan in scans:
            c = scan.conditions
            cursor = conn.execute(
                """
                INSERT INTO dexa_scans
                (scan_id, user_id, scan_date, total_mass_kg, fat_mass_kg, lean_mass_kg,
                 bone_mineral_kg, body_fat_percent, time_of_day, hydration, recent_workout,
                 same_provider, provider, is_baseline, confidence, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    scan.scan_id,
                    user_id,
                    scan.scan_date.isoformat(),
                    scan.total_mass_kg,
                    scan.fat_mass_kg,
                    scan.lean_mass_kg,
                    scan.bone_mineral_kg,
                    scan.body_fat_percent,
                    c.time_of_day.value,
                    c.hydration.value,
                    c.recent_workout,
                    c.same_provider_as_previous,
                    scan.provider,
                    scan.is_baseline,
                    scan.confidence.value,
                    scan.notes,
                ),
            )
            stored.append(scan if scan.scan_id is not None else replace(scan, scan_id=cursor.lastrowid))
        conn.commit()
        return stored


class BodyCompQueries:
    """Database queries for calibration state and the active prediction."""

    @staticmethod
    def load_profile(conn: sqlite3.Connection, user_id: int) -> UserBodyCompProfile:
        """Profile with its scans; defaults when nothing is stored yet."""
        scans = tuple(ScanQueries.list_scans(conn, user_id))
        row = conn.execute(
            "SELECT * FROM body_comp_profiles WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return UserBodyCompProfile(user_id=user_id, scans=scans)
        return UserBodyCompProfile(
            user_id=user_id,
            scans=scans,
            learned_p_ratio=row["learned_p_ratio"],
            p_ratio_confidence=row["p_ratio_confidence"],
            p_ratio_tier=CalibrationTier(row["p_ratio_tier"]),
            p_ratio_data_points=row["p_ratio_data_points"],
            modifiers={
                "protein": row["protein_modifier"],
                "training": row["training_modifier"],
                "deficit": row["deficit_modifier"],
            },
            training_age=TrainingAge(row["training_age"]),
            is_enhanced=bool(row["is_enhanced"]),
        )

    @staticmethod
    def save_profile(conn: sqlite3.Connection, profile: UserBodyCompProfile) -> UserBodyCompProfile:
        """Persist calibration state and scans; returns the profile with scan IDs."""
        scans = ScanQueries.replace_scans(conn, profile.user_id, profile.scans)
        conn.execute(
            """
            INSERT OR REPLACE INTO body_comp_profiles
            (user_id, learned_p_ratio, p_ratio_confidence, p_ratio_tier, p_ratio_data_points,
             protein_modifier, training_modifier, deficit_modifier, training_age, is_enhanced)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                profile.user_id,
                profile.learned_p_ratio,
                profile.p_ratio_confidence,
                profile.p_ratio_tier.value,
                profile.p_ratio_data_points,
                profile.modifiers.get("protein", 1.0),
                profile.modifiers.get("training", 1.0),
                profile.modifiers.get("deficit", 1.0),
                profile.training_age.value,
                profile.is_enhanced,
            ),
        )
        conn.commit()
        return replace(profile, scans=tuple(scans))

    @staticmethod
    def save_prediction(
        conn: sqlite3.Connection,
        user_id: int,
        payload: dict[str, Any],
        created_on: date,
        start_scan_id: Optional[int] = None,
    ) -> None:
        """Store the active prediction, replacing any previous one."""
        conn.execute(
            """
            INSERT OR REPLACE INTO body_comp_predictions
            (user_id, created_on, start_scan_id, payload_json)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, created_on.isoformat(), start_scan_id, json.dumps(payload)),
        )
        conn.commit()

    @staticmethod
    def get_prediction(conn: sqlite3.Connection, user_id: int) -> Optional[dict[str, Any]]:
        row = conn.execute(
            "SELECT payload_json FROM body_comp_predictions WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        return json.loads(row[0]) if row else None
