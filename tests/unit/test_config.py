"""Unit tests for core configuration module."""
from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from simtrader.core.config import (
    EnvironmentConfig,
    PortfolioConfig,
    PositioningConfig,
    RiskConfig,
    Settings,
    SimulationConfig,
    load_settings,
)


def test_load_config_from_yaml(tmp_path):
    """Test loading configuration from YAML file."""
    yaml_content = """
system:
  name: "TestSim"
  log_level: "DEBUG"
portfolio:
  initial_cash: 50000.0
  direction: "long_only"
  margin_type: "cash"
risk:
  max_open_positions: 5
positioning:
  method: "swing_point"
strategy:
  name: "all_time_breakout"
  params:
    minimum_period: 120
simulation:
  start_date: 2020-01-02
  end_date: 2020-06-30
symbols:
  - "AAPL"
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml_content)

    settings = load_settings(config_file)
    assert settings.system.name == "TestSim"
    assert settings.portfolio.initial_cash == 50000.0
    assert settings.portfolio.direction == "long_only"
    assert settings.portfolio.margin_type == "cash"
    assert settings.risk.max_open_positions == 5
    assert settings.positioning.method == "swing_point"
    assert settings.strategy.params == {"minimum_period": 120}
    assert settings.simulation.start_date == date(2020, 1, 2)
    assert settings.symbols == ["AAPL"]


def test_load_empty_file_gives_defaults(tmp_path):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")
    assert load_settings(config_file) == Settings()


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")


def test_repository_default_config_loads():
    path = Path(__file__).resolve().parents[2] / "config" / "default.yaml"
    settings = load_settings(path)
    assert settings.portfolio.margin_type == "reg_t"
    assert settings.positioning.atr_multiple == 8.0
    assert settings.strategy.name == "trailing_breakout"


class TestDefaults:
    def test_settings_defaults(self):
        settings = Settings()
        assert settings.system.log_level == "INFO"
        assert settings.portfolio.initial_cash == 100_000.0
        assert settings.risk.max_open_positions == 25
        assert settings.risk.position_scaling_enabled is True
        assert settings.simulation.max_workers == 1

    def test_environment_defaults(self):
        env = EnvironmentConfig()
        assert env.commission_per_share == 0.005
        assert env.reg_t_initial_pct == 0.50
        assert env.long_maintenance_pct == 0.25


class TestValidation:
    def test_initial_cash_must_be_positive(self):
        with pytest.raises(ValidationError):
            PortfolioConfig(initial_cash=0)

    def test_unknown_direction_rejected(self):
        with pytest.raises(ValidationError):
            PortfolioConfig(direction="sideways")

    def test_margin_pct_range(self):
        with pytest.raises(ValidationError):
            EnvironmentConfig(reg_t_initial_pct=1.5)

    def test_negative_commission_rejected(self):
        with pytest.raises(ValidationError):
            EnvironmentConfig(commission_per_share=-0.01)

    def test_risk_percentages(self):
        with pytest.raises(ValidationError):
            RiskConfig(initial_position_risk_pct=1.2)

    def test_max_open_positions_positive(self):
        with pytest.raises(ValidationError):
            RiskConfig(max_open_positions=0)

    def test_positioning_periods(self):
        with pytest.raises(ValidationError):
            PositioningConfig(atr_period=0)
        with pytest.raises(ValidationError):
            PositioningConfig(atr_multiple=0)

    def test_simulation_range(self):
        with pytest.raises(ValidationError):
            SimulationConfig(start_date=date(2020, 1, 2), end_date=date(2020, 1, 2))

    def test_simulation_workers(self):
        with pytest.raises(ValidationError):
            SimulationConfig(max_workers=0)

    def test_blank_symbol_rejected(self):
        with pytest.raises(ValidationError):
            Settings(symbols=["AAPL", " "])
