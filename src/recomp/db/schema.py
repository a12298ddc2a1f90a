"""SQLite database schema definitions."""

SCHEMA_SQL = """
-- User profiles (anthropometrics and declared activity)
CREATE TABLE IF NOT EXISTS user_profiles (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    age INTEGER NOT NULL,
    sex TEXT NOT NULL CHECK(sex IN ('male', 'female')),
    height_cm REAL NOT NULL,
    body_fat_percent REAL,
    display_unit TEXT NOT NULL DEFAULT 'kg' CHECK(display_unit IN ('kg', 'lb')),
    activity_level TEXT NOT NULL DEFAULT 'moderate'
        CHECK(activity_level IN ('sedentary', 'light', 'moderate', 'active', 'very_active')),
    workouts_per_week INTEGER NOT NULL DEFAULT 0,
    avg_workout_minutes REAL NOT NULL DEFAULT 0,
    workout_intensity TEXT NOT NULL DEFAULT 'moderate'
        CHECK(workout_intensity IN ('light', 'moderate', 'intense')),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Daily source records; mass is stored as entered together with its unit.
-- Legacy rows may have a NULL unit and must be migrated before use.
CREATE TABLE IF NOT EXISTS daily_records (
    record_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    date DATE NOT NULL,
    body_mass REAL,
    unit TEXT CHECK(unit IN ('kg', 'lb') OR unit IS NULL),
    calories REAL,
    is_complete BOOLEAN NOT NULL DEFAULT TRUE,
    steps REAL,
    exercise_calories REAL,
    activity_class TEXT,
    UNIQUE(user_id, date),
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);

CREATE INDEX IF NOT EXISTS idx_daily_records_user_date ON daily_records(user_id, date);

-- Current TDEE estimate per user; history is kept inline in the payload
CREATE TABLE IF NOT EXISTS tdee_estimates (
    user_id INTEGER PRIMARY KEY,
    estimated_at DATE NOT NULL,
    payload_json TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);

-- Current daily calorie target per user
CREATE TABLE IF NOT EXISTS nutrition_targets (
    user_id INTEGER PRIMARY KEY,
    calories REAL NOT NULL,
    goal_offset REAL NOT NULL DEFAULT 0,
    updated_at DATE NOT NULL,
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);

-- Body composition scans (masses in kg)
CREATE TABLE IF NOT EXISTS dexa_scans (
    scan_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    scan_date DATE NOT NULL,
    total_mass_kg REAL NOT NULL,
    fat_mass_kg REAL NOT NULL,
    lean_mass_kg REAL NOT NULL,
    bone_mineral_kg REAL NOT NULL,
    body_fat_percent REAL NOT NULL,
    time_of_day TEXT NOT NULL DEFAULT 'morning_fasted',
    hydration TEXT NOT NULL DEFAULT 'unknown',
    recent_workout BOOLEAN NOT NULL DEFAULT FALSE,
    same_provider BOOLEAN,
    provider TEXT,
    is_baseline BOOLEAN NOT NULL DEFAULT FALSE,
    confidence TEXT NOT NULL DEFAULT 'medium' CHECK(confidence IN ('low', 'medium', 'high')),
    notes TEXT,
    UNIQUE(user_id, scan_date),
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);

CREATE INDEX IF NOT EXISTS idx_dexa_scans_user_date ON dexa_scans(user_id, scan_date);

-- Learned partitioning state per user
CREATE TABLE IF NOT EXISTS body_comp_profiles (
    user_id INTEGER PRIMARY KEY,
    learned_p_ratio REAL,
    p_ratio_confidence REAL NOT NULL DEFAULT 0,
    p_ratio_tier TEXT NOT NULL DEFAULT 'none',
    p_ratio_data_points INTEGER NOT NULL DEFAULT 0,
    protein_modifier REAL NOT NULL DEFAULT 1.0,
    training_modifier REAL NOT NULL DEFAULT 1.0,
    deficit_modifier REAL NOT NULL DEFAULT 1.0,
    training_age TEXT NOT NULL DEFAULT 'intermediate',
    is_enhanced BOOLEAN NOT NULL DEFAULT FALSE,
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);

-- Active body composition prediction (one per user)
CREATE TABLE IF NOT EXISTS body_comp_predictions (
    user_id INTEGER PRIMARY KEY,
    created_on DATE NOT NULL,
    start_scan_id INTEGER,
    payload_json TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES user_profiles(user_id)
);
"""


def get_schema_sql() -> str:
    """Return the complete schema SQL."""
    return SCHEMA_SQL
