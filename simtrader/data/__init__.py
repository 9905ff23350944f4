from simtrader.data.security import PriceBar, Security
from simtrader.data.loader import load_universe, security_from_frame

__all__ = ["PriceBar", "Security", "load_universe", "security_from_frame"]
