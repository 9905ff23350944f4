"""Simulation runs over a date range."""
from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date

from simtrader.broker.ibkr import IbkrEnvironment
from simtrader.core import calendar
from simtrader.core.config import Settings
from simtrader.core.exceptions import SimTraderError, SimulationError
from simtrader.core.logger import simulation_logger
from simtrader.core.types import MarginType, PortfolioDirection, SimulationStatus
from simtrader.data.security import Security
from simtrader.backtest.portfolio_manager import PortfolioManager
from simtrader.backtest.results import SimulationResults
from simtrader.ledger.portfolio import Portfolio, PortfolioSetup
from simtrader.risk.manager import RiskManager
from simtrader.risk.positioning import create_positioning
from simtrader.risk.rules import default_rule_pipeline
from simtrader.strategy.manager import StrategyManager

logger = logging.getLogger("simtrader.backtest.simulation")


class Simulation:
    """Drives one portfolio manager from ``start`` through ``end``.

    Status moves NOT_STARTED -> RUNNING -> COMPLETE, or to ERROR when a
    simulation error aborts the run. A simulation runs at most once.
    """

    def __init__(self, portfolio_manager: PortfolioManager, start: date, end: date, name: str = "Simulation") -> None:
        if end <= start:
            raise SimulationError("Simulation end must be after its start")
        self.portfolio_manager = portfolio_manager
        self.start = start
        self.end = end
        self.name = name
        self.status = SimulationStatus.NOT_STARTED
        self.error: SimTraderError | None = None
        self._results: SimulationResults | None = None
        self.log = simulation_logger(logger, name)

    @classmethod
    def from_settings(cls, settings: Settings, universe: list[Security]) -> Simulation:
        start = settings.simulation.start_date
        setup = PortfolioSetup(
            initial_cash=settings.portfolio.initial_cash,
            inception_date=settings.portfolio.inception_date or start,
            direction=PortfolioDirection(settings.portfolio.direction),
            margin_type=MarginType(settings.portfolio.margin_type),
        )
        environment = IbkrEnvironment(settings.environment)
        portfolio = Portfolio(setup, environment, settings.portfolio.name)
        risk_manager = RiskManager(
            settings.risk,
            create_positioning(settings.positioning),
            default_rule_pipeline(settings.risk, settings.positioning),
        )
        strategy_manager = StrategyManager.from_config(settings.strategy, settings.simulation.max_workers)
        manager = PortfolioManager(portfolio, risk_manager, strategy_manager, universe)
        return cls(manager, start, settings.simulation.end_date, settings.system.name)

    @property
    def last_day(self) -> date:
        return self.end if calendar.is_trading_day(self.end) else calendar.prior_trading_day(self.end)

    def run(self) -> bool:
        if self.status != SimulationStatus.NOT_STARTED:
            raise SimulationError(f"Simulation {self.name} has already been run")

        self.status = SimulationStatus.RUNNING
        manager = self.portfolio_manager
        self.log.info("Starting run: %s to %s", self.start, self.end)
        try:
            manager.set_start_date(self.start)
            while manager.current_date < self.last_day:
                manager.execute_next_day()
        except SimTraderError as exc:
            self.error = exc
            self.status = SimulationStatus.ERROR
            self.log.exception("Aborted on %s", manager.current_date)
            return False

        self.status = SimulationStatus.COMPLETE
        self._results = SimulationResults(manager.portfolio, self.start, self.last_day)
        self.log.info("Completed")
        return True

    @property
    def results(self) -> SimulationResults:
        if self.status != SimulationStatus.COMPLETE or self._results is None:
            raise SimulationError(f"Simulation {self.name} is {self.status.value}, results unavailable")
        return self._results

    def copy(self, name: str | None = None) -> Simulation:
        """Unrun simulation with the same configuration."""
        return Simulation(self.portfolio_manager.copy(), self.start, self.end, name or self.name)


def run_simulations(simulations: list[Simulation], max_workers: int = 4) -> dict[str, bool]:
    """Run independent simulations concurrently; returns success by simulation name.

    Simulations may share securities but nothing else.

    Raises:
        SimulationError: If two simulations share a name.
    """
    if not simulations:
        return {}
    counts = Counter(sim.name for sim in simulations)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise SimulationError(f"Simulation names must be unique, duplicated: {', '.join(duplicates)}")
    outcomes: dict[str, bool] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(simulations))) as executor:
        futures = {executor.submit(sim.run): sim for sim in simulations}
        for future in as_completed(futures):
            sim = futures[future]
            outcomes[sim.name] = future.result()
            logger.info("%s finished: %s", sim.name, sim.status.value)
    return outcomes
