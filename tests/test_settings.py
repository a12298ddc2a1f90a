"""Tests for YAML settings."""

from __future__ import annotations

from pathlib import Path

from recomp.config.settings import EngineConfig, Settings


class TestSettingsLoad:
    """Tests for Settings.load."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = Settings.load(tmp_path / "absent.yaml")
        assert settings.engine == EngineConfig()
        assert settings.defaults.horizons == [7, 14, 28, 56]
        assert settings.defaults.display_unit == "kg"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert Settings.load(path).engine == EngineConfig()

    def test_engine_overrides(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            """
database:
  path: /tmp/recomp-test.db
engine:
  quality:
    window_days: 28
    min_points: 10
  regression:
    max_tdee: 5000
  enhanced:
    base_burn_bounds: [22, 40]
  selector:
    divergence_threshold: 0.15
defaults:
  display_unit: lb
  horizons: [7, 30]
  log_level: INFO
"""
        )
        settings = Settings.load(path)

        assert settings.database.path == Path("/tmp/recomp-test.db")
        assert settings.engine.quality.window_days == 28
        assert settings.engine.quality.min_points == 10
        assert settings.engine.quality.min_coverage == 0.5
        assert settings.engine.regression.max_tdee == 5000.0
        assert isinstance(settings.engine.regression.max_tdee, float)
        assert settings.engine.enhanced.base_burn_bounds == (22.0, 40.0)
        assert settings.engine.selector.divergence_threshold == 0.15
        assert settings.defaults.display_unit == "lb"
        assert settings.defaults.horizons == [7, 30]
        assert settings.defaults.log_level == "INFO"

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  quality:\n    bogus: 3\n")
        assert Settings.load(path).engine.quality.window_days == 35


class TestSettingsSave:
    def test_round_trip(self, tmp_path: Path) -> None:
        settings = Settings()
        settings.database.path = tmp_path / "data.db"
        settings.engine.conditioning.smoothing = 0.3
        settings.engine.enhanced.step_burn_bounds = (0.03, 0.07)
        settings.defaults.horizons = [14]

        path = tmp_path / "nested" / "config.yaml"
        settings.save(path)
        loaded = Settings.load(path)

        assert loaded.database.path == tmp_path / "data.db"
        assert loaded.engine == settings.engine
        assert loaded.defaults.horizons == [14]
