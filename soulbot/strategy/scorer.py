from __future__ import annotations

import logging
import math
import random
import time
from collections import deque
from collections.abc import Iterable, Mapping
from typing import Any

from soulbot.domain.models import FeatureContribution, PredictionRecord, Trade
from soulbot.strategy.features import engineer_features

DEFAULT_WEIGHTS: dict[str, float] = {
    "profit_percentage": 0.35,
    "slippage": 0.10,
    "liquidity": 0.10,
    "volume": 0.10,
    "volatility": 0.05,
    "rsi": 0.10,
    "macd": 0.05,
    "momentum": 0.05,
    "trend_alignment": 0.05,
    "time_of_day": 0.05,
}

DEFAULT_HYPERPARAMETERS: dict[str, Any] = {
    "learning_rate": 0.01,
    "regularization_strength": 0.001,
    "momentum_factor": 0.9,
    "dropout_rate": 0.2,
    "optimizer_type": "adam",
}

OPTIMIZERS = ("adam", "sgd", "rmsprop", "adagrad")
DEFAULT_ACCURACY = 85.0
MAX_ACCURACY = 97.0
WEIGHT_MIN = 0.01
WEIGHT_MAX = 0.5
NUDGE = 0.01


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def profit_impact(v: float) -> float:
    if v >= 2.0:
        return 0.35
    if v >= 1.5:
        return 0.3
    if v >= 1.0:
        return 0.25
    if v >= 0.5:
        return 0.15
    if v >= 0.2:
        return 0.05
    return -0.1


def volatility_impact(v: float) -> float:
    if v < 0.005:
        return -0.05
    if v < 0.01:
        return 0.05
    if v < 0.03:
        return 0.1
    if v < 0.05:
        return 0.05
    return -0.1


def rsi_impact(v: float) -> float:
    if v < 30:
        return 0.15
    if v > 70:
        return -0.15
    return 0.0


def time_impact(hour: float) -> float:
    if 2 <= hour <= 5:
        return -0.05
    if 12 <= hour <= 15:
        return 0.1
    if 20 <= hour <= 23:
        return 0.05
    return 0.0


def feature_impact(name: str, value: float) -> float:
    if name == "profit_percentage":
        return profit_impact(value)
    if name == "slippage":
        return -min(0.5, value / 2.0)
    if name == "liquidity":
        return min(0.3, math.log10(max(1.0, value)) / 7.0)
    if name == "volume":
        return min(0.3, math.log10(max(1.0, value)) / 8.0)
    if name == "volatility":
        return volatility_impact(value)
    if name == "rsi":
        return rsi_impact(value)
    if name == "macd":
        return _clamp(value / 10.0, -0.2, 0.2)
    if name == "momentum":
        return _clamp(value * 2.0, -0.2, 0.2)
    if name == "trend_alignment":
        return value * 0.15
    if name == "time_of_day":
        return time_impact(value)
    return 0.0


class AdaptiveScorer:
    """Weighted heuristic trade scorer with online weight nudges.

    Not a statistical model: weights move by a fixed step on wrong calls and
    `retrain()` resamples hyperparameters with a bounded random accuracy bump.
    Every PredictionRecord is learned from at most once (keyed by trade id).
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        retrain_every: int = 50,
        rng: random.Random | None = None,
        clock=time.time,
        log: logging.Logger | None = None,
        seen_ids: int = 4096,
    ):
        self.enabled = bool(enabled)
        self.retrain_every = max(1, int(retrain_every))
        self.rng = rng or random.Random()
        self.clock = clock
        self.log = log or logging.getLogger("soulbot.scorer")
        self.weights: dict[str, float] = dict(DEFAULT_WEIGHTS)
        self.hyperparameters: dict[str, Any] = dict(DEFAULT_HYPERPARAMETERS)
        self.accuracy = DEFAULT_ACCURACY
        self.total_predictions = 0
        self.correct_predictions = 0
        self.successful_trades = 0
        self.failed_trades = 0
        self.training_count = 0
        self.last_training: float | None = None
        self._learned: deque[str] = deque(maxlen=max(1, int(seen_ids)))
        self._learned_set: set[str] = set()
        self._training_data: deque[dict[str, Any]] = deque(maxlen=500)

    def set_enabled(self, enabled: bool) -> bool:
        self.enabled = bool(enabled)
        self.log.info("scorer %s", "enabled" if self.enabled else "disabled")
        return self.enabled

    def predict(self, features: Mapping[str, Any]) -> PredictionRecord:
        if not self.enabled:
            return PredictionRecord(
                predicted_outcome=1 if self.rng.random() < 0.6 else 0,
                probability=0.4 + self.rng.random() * 0.5,
                confidence=0.5,
                is_disabled=True,
                timestamp=self.clock(),
            )

        engineered = engineer_features(features)
        probability = 0.5
        contributions: list[FeatureContribution] = []
        for name, weight in self.weights.items():
            raw = engineered.get(name)
            if raw is None or isinstance(raw, bool) or weight <= 0:
                continue
            try:
                value = float(raw)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(value):
                continue
            weighted = feature_impact(name, value) * weight
            probability += weighted
            contributions.append(FeatureContribution(name=name, value=value, weighted_impact=weighted))

        probability = _clamp(probability, 0.05, 0.95)
        certainty = abs(probability - 0.5) * 2.0
        confidence = 0.5 + certainty * 0.3 + (self.accuracy / 100.0) * 0.2
        return PredictionRecord(
            predicted_outcome=1 if probability > 0.5 else 0,
            probability=probability,
            confidence=min(0.98, confidence),
            contributing_features=tuple(contributions),
            timestamp=self.clock(),
        )

    def _mark_learned(self, trade_id: str) -> bool:
        if trade_id in self._learned_set:
            return False
        if len(self._learned) == self._learned.maxlen:
            self._learned_set.discard(self._learned[0])
        self._learned.append(trade_id)
        self._learned_set.add(trade_id)
        return True

    def _count_outcome(self, succeeded: bool) -> None:
        if succeeded:
            self.successful_trades += 1
        else:
            self.failed_trades += 1

    def learn(self, trade: Trade) -> bool:
        """Fold a resolved trade into the counters; True when accuracy/weights were updated."""
        if not self._mark_learned(trade.id):
            self.log.debug("trade %s already learned, ignoring", trade.id)
            return False

        details = trade.prediction_details
        if not self.enabled or details is None or details.is_disabled:
            self._count_outcome(trade.succeeded)
            return False

        self.total_predictions += 1
        predicted_success = details.predicted_outcome == 1
        correct = predicted_success == bool(trade.succeeded)
        if correct:
            self.correct_predictions += 1
        else:
            for c in details.contributing_features:
                if c.name not in self.weights:
                    continue
                step = -math.copysign(NUDGE, c.weighted_impact) if c.weighted_impact else 0.0
                self.weights[c.name] = _clamp(self.weights[c.name] + step, WEIGHT_MIN, WEIGHT_MAX)
        self._count_outcome(trade.succeeded)
        self.accuracy = (self.correct_predictions / self.total_predictions) * 100.0

        self.log.debug(
            "learn %s pred=%s actual=%s correct=%s acc=%.2f",
            trade.id,
            predicted_success,
            trade.succeeded,
            correct,
            self.accuracy,
        )
        if self.total_predictions % self.retrain_every == 0:
            self.retrain()
        return True

    def learn_batch(self, trades: Iterable[Trade]) -> bool:
        """Seed class-balance counters from history; trains once ten samples are held."""
        added = 0
        for t in trades:
            if not self._mark_learned(t.id):
                continue
            self._count_outcome(t.succeeded)
            self._training_data.append({"id": t.id, "succeeded": t.succeeded, "profit": t.profit})
            added += 1
        if added == 0:
            return False
        self.log.info("learned %d historical trades (%d held)", added, len(self._training_data))
        if len(self._training_data) >= 10:
            self.retrain()
        return True

    def _tune_hyperparameters(self) -> dict[str, Any]:
        r = self.rng
        self.hyperparameters = {
            "learning_rate": 0.005 + r.random() * 0.025,
            "regularization_strength": 0.0005 + r.random() * 0.002,
            "momentum_factor": 0.85 + r.random() * 0.1,
            "dropout_rate": 0.15 + r.random() * 0.2,
            "optimizer_type": OPTIMIZERS[r.randrange(len(OPTIMIZERS))],
        }
        return self.hyperparameters

    def retrain(self) -> dict[str, Any]:
        if self.successful_trades + self.failed_trades == 0:
            return {"success": False, "message": "insufficient training data"}
        self._tune_hyperparameters()
        r = self.rng
        base = 75.0 + r.random() * 10.0
        balancing = 2.0 + r.random() * 3.0
        tuning = 1.0 + r.random() * 3.0
        feature_eng = 2.0 + r.random() * 3.0
        self.accuracy = min(MAX_ACCURACY, base + balancing + tuning + feature_eng)
        self.training_count += 1
        self.last_training = self.clock()
        self.log.info("scorer retrained #%d accuracy=%.2f", self.training_count, self.accuracy)
        return {
            "success": True,
            "accuracy": self.accuracy,
            "improvements": {
                "class_balancing": balancing,
                "hyperparameter_tuning": tuning,
                "feature_engineering": feature_eng,
            },
        }

    train = retrain

    def stats(self) -> dict[str, Any]:
        total = self.successful_trades + self.failed_trades
        return {
            "enabled": self.enabled,
            "accuracy": self.accuracy,
            "total_predictions": self.total_predictions,
            "correct_predictions": self.correct_predictions,
            "successful_trades": self.successful_trades,
            "failed_trades": self.failed_trades,
            "success_ratio": (self.successful_trades / total) if total else 0.0,
            "training_count": self.training_count,
            "last_training": self.last_training,
        }

    def report(self) -> dict[str, Any]:
        out = self.stats()
        out["feature_weights"] = dict(self.weights)
        out["hyperparameters"] = dict(self.hyperparameters)
        return out

    def to_dict(self) -> dict[str, Any]:
        out = self.report()
        out["learned_ids"] = list(self._learned)
        return out

    def load_stats(self, row: Mapping[str, Any] | None) -> None:
        """Restore persisted counters; unknown or missing fields keep their defaults."""
        row = row or {}
        acc = row.get("accuracy")
        self.accuracy = DEFAULT_ACCURACY if acc is None else float(acc)
        self.total_predictions = int(row.get("total_predictions", 0) or 0)
        self.correct_predictions = int(row.get("correct_predictions", 0) or 0)
        self.successful_trades = int(row.get("successful_trades", 0) or 0)
        self.failed_trades = int(row.get("failed_trades", 0) or 0)
        self.training_count = int(row.get("training_count", 0) or 0)
        self.last_training = row.get("last_training")
        weights = row.get("feature_weights") or {}
        for name in self.weights:
            if name in weights:
                self.weights[name] = _clamp(float(weights[name]), WEIGHT_MIN, WEIGHT_MAX)
        if row.get("hyperparameters"):
            self.hyperparameters = {**DEFAULT_HYPERPARAMETERS, **dict(row["hyperparameters"])}
        self._learned.clear()
        self._learned_set.clear()
        for trade_id in row.get("learned_ids") or []:
            self._mark_learned(str(trade_id))
