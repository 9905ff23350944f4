from simtrader.broker.base import Environment
from simtrader.broker.ibkr import IbkrEnvironment

__all__ = ["Environment", "IbkrEnvironment"]
