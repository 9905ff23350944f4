"""Accounting model: trades, positions and the portfolio ledger."""
from simtrader.ledger.trade import Trade
from simtrader.ledger.position import IdArena, Position
from simtrader.ledger.portfolio import Portfolio, PortfolioSetup, PositionEvent

__all__ = ["Trade", "IdArena", "Position", "Portfolio", "PortfolioSetup", "PositionEvent"]
