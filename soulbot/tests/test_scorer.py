import random

import pytest

from soulbot.domain.models import Asset, FeatureContribution, PredictionRecord, Trade
from soulbot.strategy.scorer import DEFAULT_WEIGHTS, AdaptiveScorer

SOL = Asset(symbol="SOL", mint="So11111111111111111111111111111111111111112")
USDC = Asset(symbol="USDC", mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", decimals=6)

GOOD = {"profit_percentage": 2.5, "slippage": 0.1, "liquidity": 1_000_000, "volume": 500_000, "hour_of_day": 13}


def _trade(trade_id: str, succeeded: bool, prediction: PredictionRecord | None = None) -> Trade:
    return Trade(
        id=trade_id,
        timestamp=1.0,
        from_asset=SOL,
        to_asset=USDC,
        input_amount=1.0,
        usd_value=150.0,
        profit=1.0 if succeeded else -1.0,
        profit_percent=0.7 if succeeded else -0.7,
        succeeded=succeeded,
        prediction_details=prediction,
    )


def _record(outcome: int, impact: float) -> PredictionRecord:
    return PredictionRecord(
        predicted_outcome=outcome,
        probability=0.7 if outcome else 0.3,
        confidence=0.8,
        contributing_features=(FeatureContribution(name="profit_percentage", value=2.5, weighted_impact=impact),),
    )


def test_disabled_scorer_never_touches_weights() -> None:
    scorer = AdaptiveScorer(enabled=False, rng=random.Random(1))
    for i in range(5):
        pred = scorer.predict(GOOD)
        assert pred.is_disabled is True
        assert pred.predicted_outcome in (0, 1)
        assert 0.4 <= pred.probability <= 0.9
        assert scorer.learn(_trade(f"t{i}", succeeded=i % 2 == 0, prediction=pred)) is False
    assert scorer.weights == DEFAULT_WEIGHTS
    assert scorer.successful_trades == 3
    assert scorer.failed_trades == 2
    assert scorer.total_predictions == 0
    assert scorer.accuracy == 85.0


def test_disabled_scorer_guesses_mildly_optimistic() -> None:
    scorer = AdaptiveScorer(enabled=False, rng=random.Random(1))
    preds = [scorer.predict({}) for _ in range(400)]
    outcomes = [p.predicted_outcome for p in preds]
    assert set(outcomes) == {0, 1}
    assert 0.5 < sum(outcomes) / len(outcomes) < 0.7
    assert all(0.4 <= p.probability <= 0.9 for p in preds)
    assert all(p.confidence == 0.5 for p in preds)
    assert scorer.weights == DEFAULT_WEIGHTS


def test_enabled_predict_bounds() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    pred = scorer.predict(GOOD)
    assert pred.is_disabled is False
    assert pred.predicted_outcome == 1
    assert 0.5 < pred.probability <= 0.95
    assert pred.confidence <= 0.98
    names = {c.name for c in pred.contributing_features}
    assert "profit_percentage" in names
    assert "time_of_day" in names

    bad = scorer.predict({"profit_percentage": 0.0, "slippage": 5.0, "hour_of_day": 3})
    assert bad.predicted_outcome == 0
    assert bad.probability >= 0.05


def test_wrong_call_nudges_weights() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    assert scorer.learn(_trade("t1", succeeded=False, prediction=_record(1, 0.12)))
    assert scorer.weights["profit_percentage"] == pytest.approx(0.34)
    assert scorer.accuracy == 0.0
    assert scorer.learn(_trade("t2", succeeded=True, prediction=_record(0, -0.05)))
    assert scorer.weights["profit_percentage"] == pytest.approx(0.35)


def test_right_call_keeps_weights_and_updates_accuracy() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    scorer.learn(_trade("t1", succeeded=True, prediction=_record(1, 0.12)))
    scorer.learn(_trade("t2", succeeded=False, prediction=_record(1, 0.12)))
    assert scorer.correct_predictions == 1
    assert scorer.accuracy == pytest.approx(50.0)


def test_weights_stay_in_bounds() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1), retrain_every=1000)
    scorer.weights["profit_percentage"] = 0.015
    for i in range(5):
        scorer.learn(_trade(f"t{i}", succeeded=False, prediction=_record(1, 0.2)))
    assert scorer.weights["profit_percentage"] == 0.01
    scorer.weights["profit_percentage"] = 0.495
    for i in range(5, 10):
        scorer.learn(_trade(f"t{i}", succeeded=True, prediction=_record(0, -0.2)))
    assert scorer.weights["profit_percentage"] == 0.5


def test_prediction_consumed_once() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    trade = _trade("t1", succeeded=True, prediction=_record(1, 0.1))
    assert scorer.learn(trade) is True
    assert scorer.learn(trade) is False
    assert scorer.total_predictions == 1
    assert scorer.successful_trades == 1


def test_missing_prediction_counts_outcome_only() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    assert scorer.learn(_trade("t1", succeeded=False)) is False
    assert scorer.failed_trades == 1
    assert scorer.total_predictions == 0


def test_periodic_retrain() -> None:
    scorer = AdaptiveScorer(rng=random.Random(3), retrain_every=4)
    for i in range(8):
        scorer.learn(_trade(f"t{i}", succeeded=True, prediction=_record(1, 0.1)))
    assert scorer.training_count == 2
    assert 80.0 <= scorer.accuracy <= 97.0
    assert scorer.hyperparameters["optimizer_type"] in {"adam", "sgd", "rmsprop", "adagrad"}


def test_retrain_needs_data() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    assert scorer.retrain()["success"] is False
    assert scorer.training_count == 0


def test_learn_batch_and_report_roundtrip() -> None:
    scorer = AdaptiveScorer(rng=random.Random(1))
    trades = [_trade(f"h{i}", succeeded=i % 3 != 0) for i in range(12)]
    assert scorer.learn_batch(trades) is True
    assert scorer.successful_trades + scorer.failed_trades == 12
    assert scorer.training_count == 1
    assert scorer.learn_batch(trades) is False

    report = scorer.report()
    assert set(report["feature_weights"]) == set(DEFAULT_WEIGHTS)
    restored = AdaptiveScorer(rng=random.Random(2))
    restored.load_stats(scorer.to_dict())
    assert restored.successful_trades == scorer.successful_trades
    assert restored.accuracy == scorer.accuracy
    assert restored.learn(trades[0]) is False
