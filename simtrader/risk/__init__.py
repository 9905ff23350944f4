from simtrader.risk.manager import RiskManager
from simtrader.risk.positioning import (
    POSITIONING_STRATEGIES,
    AtrSizingAndStoploss,
    PositioningStrategy,
    SwingPointSizingAndStoploss,
    create_positioning,
)
from simtrader.risk.rules import TradeApprovalPipeline, TradeApprovalRule, default_rule_pipeline

__all__ = [
    "RiskManager",
    "PositioningStrategy",
    "AtrSizingAndStoploss",
    "SwingPointSizingAndStoploss",
    "POSITIONING_STRATEGIES",
    "create_positioning",
    "TradeApprovalRule",
    "TradeApprovalPipeline",
    "default_rule_pipeline",
]
