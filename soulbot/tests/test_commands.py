import asyncio

import pytest

from soulbot.domain.commands import (
    ConfigureProfitLock,
    IngestTradeResult,
    StartSession,
    StopSession,
    ToggleScorer,
    WithdrawLock,
    parse_command,
)
from soulbot.domain.errors import ValidationError
from soulbot.domain.events import TradeCreated
from soulbot.domain.models import SessionMode
from soulbot.infra.broadcast import EventBus


def test_parse_known_commands() -> None:
    start = parse_command({"type": "start", "mode": "LIVE", "identity": "abc"})
    assert start == StartSession(mode=SessionMode.LIVE, identity="abc")
    assert isinstance(parse_command({"type": "stop"}), StopSession)
    assert parse_command({"type": "configure_profit_lock", "percentage": 30}) == ConfigureProfitLock(
        percentage_points=30
    )
    assert parse_command({"type": "withdraw_lock", "amount": "1.5"}) == WithdrawLock(amount=1.5)
    ingest = parse_command({"type": "ingest_trade_result", "trade_id": "t1", "outcome": {"success": True}})
    assert isinstance(ingest, IngestTradeResult)
    assert ingest.outcome.success is True
    assert parse_command({"type": "toggle_scorer", "enabled": False}) == ToggleScorer(enabled=False)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "launch"},
        {"type": "start", "mode": "turbo"},
        {"type": "configure_profit_lock", "percentage_points": 12.5},
        {"type": "withdraw_lock", "amount": "lots"},
        {"type": "ingest_trade_result", "trade_id": "t1"},
        {"type": "toggle_scorer"},
        {"type": "toggle_scorer", "enabled": "false"},
        {"type": "configure_profit_lock", "percentage_points": float("inf")},
        {"type": "configure_profit_lock", "percentage_points": float("nan")},
        {"type": "configure_profit_lock", "enabled": "false"},
        {"type": "withdraw_lock", "amount": "nan"},
        "stop",
    ],
)
def test_parse_rejects_malformed(payload) -> None:
    with pytest.raises(ValidationError):
        parse_command(payload)


def test_event_bus_drops_oldest_for_slow_viewer() -> None:
    async def run():
        bus = EventBus(queue_size=2)
        q = bus.subscribe()
        for i in range(3):
            bus.publish(TradeCreated(trade={"id": f"t{i}"}))
        first = q.get_nowait()
        second = q.get_nowait()
        bus.unsubscribe(q)
        return bus, first, second

    bus, first, second = asyncio.run(run())
    assert first.trade["id"] == "t1"
    assert second.to_dict() == {"type": "trade_created", "trade": {"id": "t2"}}
    assert bus.published == 3
    assert bus.subscriber_count == 0
