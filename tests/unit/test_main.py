from datetime import date

import pandas as pd
import pytest
import yaml

from simtrader.core import calendar
from simtrader.main import build_parser, main

START = date(2019, 1, 2)
END = date(2019, 3, 29)


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "prices"
    path.mkdir()
    days = calendar.trading_days(START, END)
    closes = [50.0 + 0.2 * i for i in range(len(days))]
    pd.DataFrame({
        "date": days,
        "open": closes,
        "high": [c + 0.5 for c in closes],
        "low": [c - 0.5 for c in closes],
        "close": closes,
        "volume": [100_000] * len(days),
    }).to_csv(path / "UP.csv", index=False)
    return path


@pytest.fixture
def config_file(tmp_path, data_dir):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "system": {"log_level": "WARNING"},
        "strategy": {"name": "trailing_breakout", "params": {"entry_period": 5}},
        "simulation": {"start_date": START.isoformat(), "end_date": END.isoformat(), "data_dir": str(data_dir)},
    }))
    return path


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.config == "config/default.yaml"
        assert args.data_dir is None
        assert args.log_level is None

    def test_options(self):
        args = build_parser().parse_args(["-c", "x.yaml", "--symbols", "AAA", "BBB", "--log-level", "DEBUG"])
        assert args.config == "x.yaml"
        assert args.symbols == ["AAA", "BBB"]
        assert args.log_level == "DEBUG"


class TestMain:
    def test_runs_simulation(self, config_file):
        assert main(["-c", str(config_file)]) == 0

    def test_symbols_override(self, config_file):
        assert main(["-c", str(config_file), "--symbols", "UP"]) == 0

    def test_missing_data(self, config_file, tmp_path):
        assert main(["-c", str(config_file), "--data-dir", str(tmp_path / "missing")]) == 1
