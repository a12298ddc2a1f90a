"""Pytest fixtures for recomp tests."""

from __future__ import annotations

import tempfile
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pytest

from recomp.db import set_db
from recomp.db.connection import DatabaseConnection
from recomp.tracking.models import ENERGY_PER_KG, DailyDataPoint, UserProfile

START = date(2025, 1, 1)


def energy_balance_series(
    days: int = 35,
    tdee: float = 2500.0,
    start_mass: float = 80.0,
    seed: int = 7,
    start: date = START,
    noise: float = 0.0,
) -> list[DailyDataPoint]:
    """Daily records whose mass follows intake: Δm = (c - tdee) / E.

    With ``noise`` > 0 each day's mass change gets Gaussian noise of that
    standard deviation (kg), so the fit no longer lies on an exact line.
    """
    rng = np.random.default_rng(seed)
    calories = rng.uniform(1900, 3100, size=days)
    jitter = rng.normal(0.0, noise, size=days) if noise > 0 else np.zeros(days)
    points = []
    mass = start_mass
    for i in range(days):
        points.append(DailyDataPoint(start + timedelta(days=i), mass, float(calories[i])))
        mass += (calories[i] - tdee) / ENERGY_PER_KG + float(jitter[i])
    return points


def activity_series(
    days: int = 35,
    alpha: float = 32.0,
    beta: float = 0.05,
    gamma: float = 0.8,
    start_mass: float = 85.0,
    seed: int = 11,
    start: date = START,
) -> list[DailyDataPoint]:
    """Records generated by the activity model with block-patterned activity."""
    rng = np.random.default_rng(seed)
    calories = rng.uniform(2200, 3600, size=days)
    points = []
    mass = start_mass
    for i in range(days):
        steps = 4000.0 if (i // 7) % 2 == 0 else 12000.0
        workout = 0.0 if (i // 5) % 2 == 0 else 500.0
        points.append(
            DailyDataPoint(
                start + timedelta(days=i),
                mass,
                float(calories[i]),
                steps=steps,
                exercise_calories=workout,
            )
        )
        expenditure = alpha * mass + beta * steps + gamma * workout
        mass += (calories[i] - expenditure) / ENERGY_PER_KG
    return points


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(user_id=1, age=35, sex="male", height_cm=180.0)


@pytest.fixture
def balance_points() -> list[DailyDataPoint]:
    return energy_balance_series()


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def cli_db(temp_db):
    """Route CLI commands to the temporary database."""
    set_db(temp_db)
    yield temp_db
    set_db(None)
