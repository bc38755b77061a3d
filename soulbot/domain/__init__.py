from .errors import (
    InvalidStateTransition,
    PersistenceFailure,
    SessionError,
    UpstreamUnavailable,
    ValidationError,
)
from .models import (
    Asset,
    ExecutionOutcome,
    FeatureContribution,
    PredictionRecord,
    PriceCacheEntry,
    Quote,
    Session,
    SessionMode,
    Trade,
)

__all__ = [
    "Asset",
    "ExecutionOutcome",
    "FeatureContribution",
    "InvalidStateTransition",
    "PersistenceFailure",
    "PredictionRecord",
    "PriceCacheEntry",
    "Quote",
    "Session",
    "SessionError",
    "SessionMode",
    "Trade",
    "UpstreamUnavailable",
    "ValidationError",
]
