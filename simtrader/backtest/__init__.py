from simtrader.backtest.portfolio_manager import PortfolioManager
from simtrader.backtest.results import SimulationResults
from simtrader.backtest.simulation import Simulation, run_simulations

__all__ = ["PortfolioManager", "SimulationResults", "Simulation", "run_simulations"]
