"""Order queue and fill simulation against daily price bars."""
from simtrader.execution.trade_manager import TradeManager, priority_order

__all__ = ["TradeManager", "priority_order"]
