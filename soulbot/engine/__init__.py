from .ingestor import PreparedTrade, TradeIngestor
from .session_controller import SessionController
from .synthesizer import TradeCandidate, TradeSynthesizer

__all__ = ["PreparedTrade", "SessionController", "TradeCandidate", "TradeIngestor", "TradeSynthesizer"]
