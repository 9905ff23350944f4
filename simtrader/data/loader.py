"""Build securities from tabular daily price history.

CSV files are named ``<TICKER>.csv`` with a header row containing
``date, open, high, low, close, volume`` (case-insensitive).
"""
from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from simtrader.core import calendar
from simtrader.core.exceptions import DataError
from simtrader.data.security import Security

logger = logging.getLogger("simtrader.data.loader")

_COLUMNS = ("date", "open", "high", "low", "close", "volume")


def security_from_frame(ticker: str, df: pd.DataFrame) -> Security:
    """Create a ``Security`` from a frame of daily bars.

    Rows dated on non-trading days are dropped with a warning; duplicate
    dates keep the last row.
    """
    frame = df.rename(columns=str.lower)
    if "date" not in frame.columns and frame.index.name and frame.index.name.lower() == "date":
        frame = frame.reset_index().rename(columns=str.lower)
    missing = [c for c in _COLUMNS if c not in frame.columns]
    if missing:
        raise DataError(f"{ticker}: missing price columns {missing}")

    frame = frame.loc[:, list(_COLUMNS)].copy()
    frame["date"] = pd.to_datetime(frame["date"]).dt.date
    frame = frame.dropna(subset=["open", "high", "low", "close"])
    frame["volume"] = frame["volume"].fillna(0.0)
    frame = frame.drop_duplicates(subset="date", keep="last").sort_values("date")

    trading = frame["date"].map(calendar.is_trading_day)
    if not trading.all():
        logger.warning("%s: dropping %d rows on non-trading days", ticker, int((~trading).sum()))
        frame = frame[trading]

    security = Security(ticker)
    count = security.add_bars(
        (row.date, float(row.open), float(row.high), float(row.low), float(row.close), float(row.volume))
        for row in frame.itertuples(index=False)
    )
    logger.debug("Loaded %d bars for %s", count, security.ticker)
    return security


def load_universe(data_dir: Path | str, symbols: list[str] | None = None) -> list[Security]:
    """Load one security per CSV file in ``data_dir``.

    With ``symbols`` only those tickers are loaded and a missing file raises
    ``DataError``.
    """
    path = Path(data_dir)
    if not path.is_dir():
        raise DataError(f"Price data directory not found: {path}")

    if symbols:
        files = []
        for symbol in symbols:
            file = path / f"{symbol.strip().upper()}.csv"
            if not file.exists():
                raise DataError(f"No price file for {symbol} in {path}")
            files.append(file)
    else:
        files = sorted(path.glob("*.csv"))

    universe = [security_from_frame(file.stem, pd.read_csv(file)) for file in files]
    logger.info("Loaded %d securities from %s", len(universe), path)
    return universe
