"""Logging setup for simulation runs."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping


_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def setup_logging(
    name: str = "simtrader",
    level: str = "INFO",
    log_dir: str | None = None,
    run_name: str | None = None,
) -> logging.Logger:
    """Configure the ``name`` logger tree.

    Modules log through children of ``name`` (``simtrader.ledger.portfolio``
    and so on). Handlers are attached on the first call only; later calls
    just change the level. With ``log_dir`` each run writes a fresh
    ``<run_name>.log``.
    """
    root = logging.getLogger(name)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if root.handlers:
        return root

    formatter = logging.Formatter(_LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        run_file = logging.FileHandler(log_path / f"{run_name or name}.log", mode="w", encoding="utf-8")
        run_file.setFormatter(formatter)
        root.addHandler(run_file)

    return root


class SimulationLogAdapter(logging.LoggerAdapter):
    """Prefixes each message with the simulation it belongs to."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['simulation']}] {msg}", kwargs


def simulation_logger(logger: logging.Logger, simulation_name: str) -> SimulationLogAdapter:
    return SimulationLogAdapter(logger, {"simulation": simulation_name})
