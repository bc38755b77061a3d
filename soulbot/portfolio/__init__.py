from .history import HistoryPoint, PortfolioHistory
from .ledger import LockEntry, PortfolioLedger, PortfolioState, ProfitLockConfig
from .performance import TokenPerformanceBook, TokenStats

__all__ = [
    "HistoryPoint",
    "LockEntry",
    "PortfolioHistory",
    "PortfolioLedger",
    "PortfolioState",
    "ProfitLockConfig",
    "TokenPerformanceBook",
    "TokenStats",
]
