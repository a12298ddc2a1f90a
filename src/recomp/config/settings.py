"""Application settings and configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

import yaml


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".recomp"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "recomp.db"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)


@dataclass
class QualityConfig:
    """Thresholds for the data quality gate."""

    window_days: int = 35
    min_points: int = 7
    min_coverage: float = 0.5
    min_calorie_std: float = 50.0


@dataclass
class ConditioningConfig:
    """Series conditioning parameters."""

    trend_smoothing: float = 0.1  # Hacker's Diet trend for display / current weight
    smoothing: float = 0.25  # EWMA applied to regression samples
    max_daily_change_fraction: float = 0.02
    low_intake_floor: float = 500.0
    low_intake_sd: float = 2.5


@dataclass
class RegressionConfig:
    """Baseline regression and confidence classification thresholds."""

    outlier_sd: float = 2.5
    min_tdee: float = 800.0
    max_tdee: float = 6000.0
    stable_r_squared: float = 0.30
    stabilizing_r_squared: float = 0.10
    stable_se_kg_per_week: float = 0.25
    stabilizing_se_kg_per_week: float = 0.50
    stable_points: int = 18
    stabilizing_points: int = 10


@dataclass
class EnhancedConfig:
    """Activity-augmented gradient descent settings."""

    min_points: int = 10
    learning_rate: float = 0.15
    max_iterations: int = 20000
    tolerance: float = 1e-6
    outlier_sd: float = 2.0
    base_burn_bounds: tuple[float, float] = (20.0, 45.0)  # kcal per kg
    step_burn_bounds: tuple[float, float] = (0.02, 0.08)  # kcal per step
    workout_multiplier_bounds: tuple[float, float] = (0.5, 1.5)


@dataclass
class SelectorConfig:
    """Estimate selection, history and target sync settings."""

    divergence_threshold: float = 0.20
    max_history: int = 90
    min_target_change: float = 50.0


@dataclass
class EngineConfig:
    """All tunables of the estimation engine."""

    quality: QualityConfig = field(default_factory=QualityConfig)
    conditioning: ConditioningConfig = field(default_factory=ConditioningConfig)
    regression: RegressionConfig = field(default_factory=RegressionConfig)
    enhanced: EnhancedConfig = field(default_factory=EnhancedConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)


@dataclass
class DefaultsConfig:
    """Default values for various operations."""

    display_unit: str = "kg"  # "kg" or "lb"
    horizons: list[int] = field(default_factory=lambda: [7, 14, 28, 56])
    log_level: str = "WARNING"


def _apply_section(target: Any, data: dict) -> None:
    """Copy known keys from a YAML mapping onto a config dataclass."""
    for f in fields(target):
        if f.name not in data:
            continue
        current = getattr(target, f.name)
        value = data[f.name]
        if is_dataclass(current) and isinstance(value, dict):
            _apply_section(current, value)
        elif isinstance(current, tuple) and isinstance(value, (list, tuple)):
            setattr(target, f.name, tuple(float(v) for v in value))
        elif isinstance(current, bool):
            setattr(target, f.name, bool(value))
        elif isinstance(current, int) and not isinstance(current, bool):
            setattr(target, f.name, int(value))
        elif isinstance(current, float):
            setattr(target, f.name, float(value))
        else:
            setattr(target, f.name, value)


def _section_to_dict(section: Any) -> dict:
    data = {}
    for f in fields(section):
        value = getattr(section, f.name)
        if is_dataclass(value):
            data[f.name] = _section_to_dict(value)
        elif isinstance(value, tuple):
            data[f.name] = list(value)
        else:
            data[f.name] = value
    return data


@dataclass
class Settings:
    """Main application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.recomp/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        settings = cls()

        # Parse database config
        if "database" in data:
            db_data = data["database"] or {}
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()

        # Engine tunables are nested one level per component
        if "engine" in data:
            _apply_section(settings.engine, data["engine"] or {})

        # Parse defaults
        if "defaults" in data:
            def_data = data["defaults"] or {}
            if "display_unit" in def_data:
                settings.defaults.display_unit = def_data["display_unit"]
            if "horizons" in def_data:
                settings.defaults.horizons = [int(h) for h in def_data["horizons"]]
            if "log_level" in def_data:
                settings.defaults.log_level = str(def_data["log_level"])

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.recomp/config.yaml
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "database": {
                "path": str(self.database.path),
            },
            "engine": _section_to_dict(self.engine),
            "defaults": {
                "display_unit": self.defaults.display_unit,
                "horizons": list(self.defaults.horizons),
                "log_level": self.defaults.log_level,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load()
    return _settings
