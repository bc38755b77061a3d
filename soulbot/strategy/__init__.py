from .features import engineer_features
from .prediction_service import Scorer
from .scorer import AdaptiveScorer
from .tradeability import TradeabilityChecker, TradeabilityReason, TradeabilityResult

__all__ = [
    "AdaptiveScorer",
    "Scorer",
    "TradeabilityChecker",
    "TradeabilityReason",
    "TradeabilityResult",
    "engineer_features",
]
