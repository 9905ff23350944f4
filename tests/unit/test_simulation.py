from datetime import date

import pytest

from simtrader.backtest import PortfolioManager, Simulation, run_simulations
from simtrader.core import calendar
from simtrader.core.config import Settings, SimulationConfig, StrategyConfig
from simtrader.core.exceptions import SimulationError, TradeQueueError
from simtrader.core.types import SimulationStatus, TradeAction, TradeType
from simtrader.ledger.trade import Trade

START = date(2019, 1, 2)
END = date(2019, 4, 30)


@pytest.fixture
def universe(make_security):
    days = len(calendar.trading_days(START, END))
    up = make_security("UP", [50.0 + 0.2 * i for i in range(days)], start=START)
    down = make_security("DOWN", [60.0 - 0.2 * i for i in range(days)], start=START)
    return [up, down]


@pytest.fixture
def settings():
    return Settings(
        simulation=SimulationConfig(start_date=START, end_date=END),
        strategy=StrategyConfig(name="trailing_breakout", params={"entry_period": 5}),
    )


@pytest.fixture
def simulation(settings, universe):
    return Simulation.from_settings(settings, universe)


class TestFromSettings:
    def test_components(self, simulation):
        manager = simulation.portfolio_manager
        assert isinstance(manager, PortfolioManager)
        assert manager.portfolio.setup.inception_date == START
        assert manager.strategy_manager.active_strategy.entry_period == 5
        assert manager.risk_manager.trade_manager is manager.trade_manager
        assert simulation.status == SimulationStatus.NOT_STARTED

    def test_end_before_start(self, simulation):
        with pytest.raises(SimulationError):
            Simulation(simulation.portfolio_manager, END, START)


class TestRun:
    def test_trending_universe_is_profitable(self, simulation):
        assert simulation.run()
        assert simulation.status == SimulationStatus.COMPLETE
        results = simulation.results
        assert results.total_trades >= 2
        assert results.total_return_percent > 0
        assert results.max_open_positions == 2

    def test_every_open_position_has_one_stop(self, simulation):
        simulation.run()
        manager = simulation.portfolio_manager
        for position in manager.portfolio.get_positions():
            if position.is_open(END):
                stop = manager.trade_manager.get_stoploss(position.security)
                assert stop.quantity == abs(position.size(END))
                assert int(stop.action) == -int(position.direction)

    def test_daily_snapshots(self, simulation):
        simulation.run()
        snapshots = simulation.portfolio_manager.daily_snapshots()
        assert len(snapshots) == len(calendar.trading_days(START, END))
        assert snapshots.index[0].date() == START
        assert snapshots["open_positions"].max() == 2
        assert (snapshots["net_liquidation_value"] > 0).all()

    def test_runs_once(self, simulation):
        simulation.run()
        with pytest.raises(SimulationError, match="already been run"):
            simulation.run()

    def test_results_require_completion(self, simulation):
        with pytest.raises(SimulationError):
            simulation.results

    def test_fatal_error_stops_run(self, simulation, monkeypatch):
        def fail(as_of):
            raise TradeQueueError(f"{as_of}: forced")

        monkeypatch.setattr(simulation.portfolio_manager.trade_manager, "end_of_day_check", fail)
        assert not simulation.run()
        assert simulation.status == SimulationStatus.ERROR
        assert isinstance(simulation.error, TradeQueueError)
        assert simulation.portfolio_manager.current_date == START
        with pytest.raises(SimulationError):
            simulation.results

    def test_weekend_end_date_stops_on_prior_trading_day(self, settings, universe):
        sim = Simulation.from_settings(settings, universe)
        sim.end = date(2019, 4, 28)
        assert sim.last_day == date(2019, 4, 26)
        assert sim.run()
        assert sim.portfolio_manager.current_date == date(2019, 4, 26)


class TestPortfolioManager:
    def test_start_date_rolls_to_trading_day(self, simulation):
        manager = simulation.portfolio_manager
        manager.set_start_date(date(2019, 1, 5))
        assert manager.portfolio.setup.inception_date == date(2019, 1, 7)
        assert manager.current_date == date(2019, 1, 4)

    def test_start_date_fixed_once_trading(self, simulation, universe):
        manager = simulation.portfolio_manager
        trade = Trade(universe[0], TradeAction.BUY, 10, TradeType.MARKET)
        trade.mark_executed(START, 50.0)
        manager.portfolio.add_executed_trade(trade)
        with pytest.raises(SimulationError):
            manager.set_start_date(START)

    def test_step_requires_start(self, simulation):
        with pytest.raises(SimulationError):
            simulation.portfolio_manager.execute_next_day()

    def test_no_snapshots_before_running(self, simulation):
        assert simulation.portfolio_manager.daily_snapshots().empty


class TestCopies:
    def test_copy_is_independent(self, simulation):
        clone = simulation.copy("Clone")
        assert clone.name == "Clone"
        assert clone.status == SimulationStatus.NOT_STARTED
        assert clone.portfolio_manager.portfolio is not simulation.portfolio_manager.portfolio
        assert clone.portfolio_manager.universe is simulation.portfolio_manager.universe
        simulation.run()
        assert clone.portfolio_manager.portfolio.positions == []

    def test_run_simulations_concurrently(self, simulation):
        sims = [simulation.copy(f"Run {i}") for i in range(3)]
        outcomes = run_simulations(sims, max_workers=3)
        assert outcomes == {"Run 0": True, "Run 1": True, "Run 2": True}
        returns = {round(s.results.total_return_percent, 10) for s in sims}
        assert len(returns) == 1

    def test_run_simulations_empty(self):
        assert run_simulations([]) == {}

    def test_run_simulations_rejects_shared_names(self, simulation):
        sims = [simulation, simulation.copy(), simulation.copy()]
        with pytest.raises(SimulationError, match="must be unique"):
            run_simulations(sims)
        assert all(s.status == SimulationStatus.NOT_STARTED for s in sims)
