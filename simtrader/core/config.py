"""Core configuration management module."""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class SystemConfig(BaseModel):
    """System-level configuration."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = "simtrader"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str | None = None


class PortfolioConfig(BaseModel):
    """Initial portfolio setup."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = "Default Portfolio"
    initial_cash: float = 100_000.0
    inception_date: date | None = None
    direction: Literal["long_only", "short_only", "long_short"] = "long_short"
    margin_type: Literal["cash", "reg_t"] = "reg_t"

    @field_validator("initial_cash")
    @classmethod
    def validate_cash(cls, v: float) -> float:
        """Validate that the starting balance is positive."""
        if v <= 0:
            raise ValueError("initial_cash must be positive")
        return v


class EnvironmentConfig(BaseModel):
    """Broker commission, margin and slippage schedule.

    Defaults follow the Interactive Brokers fixed-rate commission plan and
    Reg-T margin for US equities.
    """

    model_config = ConfigDict(use_enum_values=True)

    commission_enabled: bool = True
    commission_per_share: float = 0.005
    commission_minimum: float = 1.00
    commission_maximum_pct: float = 0.01
    long_maintenance_pct: float = 0.25
    short_maintenance_pct: float = 0.30
    reg_t_initial_pct: float = 0.50
    reg_t_maintenance_pct: float = 0.50
    slippage_pct: float = 0.0
    minimum_equity_with_loan_new_position: float = 2_000.0

    @field_validator(
        "long_maintenance_pct", "short_maintenance_pct",
        "reg_t_initial_pct", "reg_t_maintenance_pct",
    )
    @classmethod
    def validate_margin_pct(cls, v: float) -> float:
        """Validate that margin percentages are between 0 and 1."""
        if not 0 < v <= 1:
            raise ValueError("Margin percentages must be between 0 and 1")
        return v

    @field_validator("commission_per_share", "commission_minimum", "commission_maximum_pct", "slippage_pct")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Validate that commission and slippage terms are not negative."""
        if v < 0:
            raise ValueError("Commission and slippage values must not be negative")
        return v


class RiskConfig(BaseModel):
    """Risk management and trade approval configuration."""

    model_config = ConfigDict(use_enum_values=True)

    initial_position_risk_pct: float = 0.02
    limit_price_tolerance_pct: float = 0.01
    max_open_positions: int = 25
    min_available_funds_pct: float = 0.05
    max_gross_position_multiple: float = 30.0
    position_scaling_enabled: bool = True
    position_scaling_trigger: float = 0.15
    position_scaling_pct: float = 0.25
    minimum_security_price: float = 5.00
    maximum_security_price: float = 250.00
    minimum_average_volume: float = 25_000.0

    @field_validator(
        "initial_position_risk_pct", "limit_price_tolerance_pct",
        "min_available_funds_pct", "position_scaling_trigger", "position_scaling_pct",
    )
    @classmethod
    def validate_percentages(cls, v: float) -> float:
        """Validate that percentages are between 0 and 1."""
        if not 0 <= v < 1:
            raise ValueError("Percentage values must be between 0 and 1")
        return v

    @field_validator("max_open_positions")
    @classmethod
    def validate_positions(cls, v: int) -> int:
        """Validate that max_open_positions is positive."""
        if v <= 0:
            raise ValueError("max_open_positions must be positive")
        return v


class PositioningConfig(BaseModel):
    """Position sizing and stoploss policy configuration."""

    model_config = ConfigDict(use_enum_values=True)

    method: Literal["atr", "swing_point"] = "atr"
    atr_period: int = 14
    atr_multiple: float = 8.0
    stoploss_creep_pct: float = 0.0
    swing_point_bar_count: int = 6
    initial_buffer_pct: float = 0.01

    @field_validator("atr_period", "swing_point_bar_count")
    @classmethod
    def validate_periods(cls, v: int) -> int:
        """Validate that lookback periods are positive."""
        if v <= 0:
            raise ValueError("Lookback periods must be positive")
        return v

    @field_validator("atr_multiple")
    @classmethod
    def validate_multiple(cls, v: float) -> float:
        """Validate that the ATR multiple is positive."""
        if v <= 0:
            raise ValueError("atr_multiple must be positive")
        return v


class StrategyConfig(BaseModel):
    """Active signal strategy and its parameters."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = "trailing_breakout"
    params: dict[str, Any] = {}


class SimulationConfig(BaseModel):
    """Simulation date range and data location."""

    model_config = ConfigDict(use_enum_values=True)

    start_date: date = date(2019, 1, 2)
    end_date: date = date(2019, 12, 31)
    data_dir: str = "data"
    max_workers: int = 1

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Validate that at least one worker is used."""
        if v <= 0:
            raise ValueError("max_workers must be positive")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> SimulationConfig:
        """Validate that the simulation ends after it starts."""
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class Settings(BaseModel):
    """Root settings configuration."""

    model_config = ConfigDict(use_enum_values=True)

    system: SystemConfig = SystemConfig()
    portfolio: PortfolioConfig = PortfolioConfig()
    environment: EnvironmentConfig = EnvironmentConfig()
    risk: RiskConfig = RiskConfig()
    positioning: PositioningConfig = PositioningConfig()
    strategy: StrategyConfig = StrategyConfig()
    simulation: SimulationConfig = SimulationConfig()
    symbols: list[str] = []

    @field_validator("symbols")
    @classmethod
    def validate_symbols(cls, v: list[str]) -> list[str]:
        """Validate symbols list."""
        for symbol in v:
            if not isinstance(symbol, str) or not symbol.strip():
                raise ValueError("Each symbol must be a non-empty string")
        return v


def load_settings(path: Path | str) -> Settings:
    """Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        FileNotFoundError: If configuration file does not exist.
        yaml.YAMLError: If YAML is invalid.
        ValueError: If configuration is invalid.
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    return Settings.model_validate(raw_config)
