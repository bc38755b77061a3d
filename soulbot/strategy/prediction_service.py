from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from soulbot.domain.models import PredictionRecord, Trade


class Scorer(Protocol):
    """What SessionController needs from a trade scorer."""

    enabled: bool

    def predict(self, features: Mapping[str, Any]) -> PredictionRecord: ...

    def learn(self, trade: Trade) -> bool: ...

    def learn_batch(self, trades: Iterable[Trade]) -> bool: ...

    def set_enabled(self, enabled: bool) -> bool: ...

    def stats(self) -> dict[str, Any]: ...

    def report(self) -> dict[str, Any]: ...

    def to_dict(self) -> dict[str, Any]: ...

    def load_stats(self, row: Mapping[str, Any] | None) -> None: ...
