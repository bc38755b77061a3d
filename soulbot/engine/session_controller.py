from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
import time
from collections import deque
from typing import Any

from soulbot.data.token_registry import TokenRegistry
from soulbot.data.wallet_store import WalletStateStore
from soulbot.domain.commands import (
    Command,
    ConfigureProfitLock,
    IngestTradeResult,
    PrepareLiveTrade,
    ScanTokens,
    StartSession,
    StopSession,
    ToggleScorer,
    WithdrawLock,
)
from soulbot.domain.errors import InvalidStateTransition, PersistenceFailure, ValidationError
from soulbot.domain.events import PortfolioUpdated, ScorerStatsUpdated, SessionStatusChanged, TradeCreated
from soulbot.domain.models import ExecutionOutcome, Session, SessionMode, Trade
from soulbot.engine.ingestor import PreparedTrade, TradeIngestor
from soulbot.engine.synthesizer import TradeSynthesizer
from soulbot.execution.manager import ExecutionManager
from soulbot.infra.broadcast import EventBus
from soulbot.infra.telemetry import RuntimeEventLogger
from soulbot.portfolio.history import PortfolioHistory
from soulbot.portfolio.ledger import PortfolioLedger, PortfolioState, ProfitLockConfig
from soulbot.portfolio.performance import TokenPerformanceBook
from soulbot.runtime.supervisor import PeriodicLoop, RuntimeHealth
from soulbot.strategy.features import engineer_features
from soulbot.strategy.prediction_service import Scorer
from soulbot.strategy.tradeability import TradeabilityChecker


class SessionController:
    """Single owner of the trading session.

    Every mutation happens while holding `self._lock`. Network work (prices,
    quotes, discovery) runs before the lock is taken and its result is
    applied in one step afterwards. Each demo tick carries the generation it
    was started under; `stop()` bumps the generation, so a tick that was
    already in flight finds a stale generation and drops its result.
    """

    def __init__(
        self,
        *,
        registry: TokenRegistry,
        scorer: Scorer,
        store: WalletStateStore,
        synthesizer: TradeSynthesizer,
        ingestor: TradeIngestor,
        tradeability: TradeabilityChecker | None = None,
        executor: ExecutionManager | None = None,
        bus: EventBus | None = None,
        journal: RuntimeEventLogger | None = None,
        health: RuntimeHealth | None = None,
        demo_start_balance: float = 50.0,
        max_trades: int = 100,
        trade_interval_sec: float = 30.0,
        lock_config: ProfitLockConfig | None = None,
        auto_execute: bool = False,
        discovery_enabled: bool = True,
        clock=time.time,
        log: logging.Logger | None = None,
    ):
        self.registry = registry
        self.scorer = scorer
        self.store = store
        self.synthesizer = synthesizer
        self.ingestor = ingestor
        self.tradeability = tradeability
        self.executor = executor
        self.bus = bus or EventBus()
        self.journal = journal
        self.health = health or RuntimeHealth()
        self.demo_start_balance = float(demo_start_balance)
        self.trade_interval_sec = float(trade_interval_sec)
        self.auto_execute = bool(auto_execute)
        self.discovery_enabled = bool(discovery_enabled)
        self.clock = clock
        self.log = log or logging.getLogger("soulbot.session")

        self.session = Session()
        self.ledger = PortfolioLedger(starting_balance=0.0, lock=lock_config, clock=clock, log=self.log)
        self.trades: deque[Trade] = deque(maxlen=max(1, int(max_trades)))
        self.history = PortfolioHistory()
        self.performance = TokenPerformanceBook()
        self.pending: dict[str, PreparedTrade] = {}
        self.executing: set[str] = set()
        self.tick_errors = 0
        self.last_scan: list[dict[str, Any]] = []

        self._lock = asyncio.Lock()
        self._generation = 0
        self._tick_loop: PeriodicLoop | None = None
        self._last_identity: str | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def _emit(self, event: str, **fields: Any) -> None:
        if self.journal is not None:
            self.journal.emit(event, **fields)

    def _publish_status(self) -> None:
        self.bus.publish(SessionStatusChanged(session=self.session.to_dict()))

    def _publish_portfolio(self) -> None:
        self.bus.publish(
            PortfolioUpdated(portfolio=self.ledger.snapshot(), profit_lock=self.ledger.lock.to_dict())
        )

    def _publish_scorer(self) -> None:
        self.bus.publish(ScorerStatsUpdated(stats=self.scorer.stats()))

    def _clear_session_data(self, balance: float) -> None:
        self.ledger.reset(balance)
        self.trades.clear()
        self.history.clear()
        self.performance.clear()
        self.pending.clear()

    # -- snapshots -----------------------------------------------------

    def wallet_snapshot(self) -> dict[str, Any]:
        return {
            "portfolio": self.ledger.state.to_dict(),
            "profit_lock": self.ledger.lock.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "scorer_stats": self.scorer.to_dict(),
            "history": self.history.to_list(),
            "token_stats": self.performance.to_dict(),
        }

    def _restore(self, snap: dict[str, Any]) -> None:
        # Parse everything before touching live state so a bad file leaves it intact.
        state = PortfolioState.from_dict(snap.get("portfolio"))
        lock = ProfitLockConfig.from_dict(snap["profit_lock"]) if snap.get("profit_lock") else None
        trades = [Trade.from_dict(t) for t in snap.get("trades") or []]

        self.ledger.restore(state, lock)
        self.trades.clear()
        self.trades.extend(trades)
        self.history.load(snap.get("history"))
        self.performance.load(snap.get("token_stats"))
        self.pending.clear()
        if snap.get("scorer_stats"):
            self.scorer.load_stats(snap["scorer_stats"])

    def snapshot(self) -> dict[str, Any]:
        """Deep-copied view for readers; never aliases live state."""
        return copy.deepcopy(
            {
                "session": self.session.to_dict(),
                "portfolio": self.ledger.state.to_dict(),
                "profit_lock": self.ledger.lock.to_dict(),
                "trades": [t.to_dict() for t in self.trades],
                "scorer": self.scorer.report(),
                "history": self.history.to_list(),
                "token_stats": self.performance.to_dict(),
                "pending": [p.to_dict() for p in self.pending.values()],
                "tracked_assets": [a.symbol for a in self.synthesizer.tracked],
                "tick_errors": self.tick_errors,
                "generation": self._generation,
            }
        )

    # -- lifecycle -----------------------------------------------------

    async def start(self, mode: SessionMode | str, identity: str | None = None) -> SessionMode:
        mode = SessionMode.parse(mode)
        if mode is SessionMode.IDLE:
            raise InvalidStateTransition("cannot start an idle session; use stop()")
        identity = (identity or "").strip() or None
        if mode is SessionMode.LIVE and identity is None:
            raise InvalidStateTransition("live sessions require a connected identity")

        async with self._lock:
            if self.session.running:
                self.log.info("start(%s) ignored; %s session already running", mode.value, self.session.mode.value)
                return self.session.mode

            if mode is SessionMode.DEMO:
                self._clear_session_data(self.demo_start_balance)
            else:
                self._start_live(identity)

            self._generation += 1
            self.session = Session(mode=mode, started_at=self.clock(), identity=identity, running=True)
            if identity:
                self._last_identity = identity
            if mode is SessionMode.DEMO:
                self._start_ticks(self._generation)

            self.log.info("session started mode=%s generation=%d", mode.value, self._generation)
            self._emit("session.start", mode=mode.value, generation=self._generation)
            self._publish_status()
            self._publish_portfolio()
            self._publish_scorer()
            return mode

    def _start_live(self, identity: str) -> None:
        try:
            snap = self.store.load(identity)
        except PersistenceFailure as exc:
            self.log.error("snapshot read failed, starting fresh: %s", exc)
            self._emit("snapshot.read_error", error=str(exc))
            snap = None

        if snap is not None:
            try:
                self._restore(snap)
                self.log.info("restored live session (%d trades)", len(self.trades))
                return
            except (ValidationError, TypeError, ValueError, AttributeError) as exc:
                self.log.error("snapshot unusable, starting fresh: %s", exc)
                self._emit("snapshot.read_error", error=str(exc))
        self._clear_session_data(0.0)

    def _start_ticks(self, generation: int) -> None:
        async def tick() -> None:
            await self.run_tick(generation)

        self._tick_loop = PeriodicLoop(
            "trade_tick",
            tick,
            self.trade_interval_sec,
            log=self.log,
            health=self.health,
        )
        self._tick_loop.start()

    async def stop(self) -> SessionMode:
        async with self._lock:
            if not self.session.running:
                return self.session.mode

            self._generation += 1
            loop, self._tick_loop = self._tick_loop, None
            if loop is not None:
                await loop.stop()

            prev = self.session
            if self.pending:
                self.log.warning("dropping %d prepared trades without outcome", len(self.pending))
                self.pending.clear()
            self.session = Session()
            self.log.info("session stopped mode=%s", prev.mode.value)
            self._emit("session.stop", mode=prev.mode.value, generation=self._generation)
            self._publish_status()

            if prev.mode is SessionMode.LIVE and prev.identity:
                self._persist_locked(prev.identity)
            return prev.mode

    def _persist_locked(self, identity: str) -> None:
        try:
            path = self.store.save(identity, self.wallet_snapshot())
        except PersistenceFailure as exc:
            self.log.error("snapshot write failed: %s", exc)
            self._emit("snapshot.write_error", error=str(exc))
            raise
        self.log.info("snapshot saved %s", path.name)
        self._emit("snapshot.saved", file=path.name, trades=len(self.trades))

    async def persist(self, identity: str | None = None) -> None:
        """Write the wallet snapshot now; retries a failed write from stop()."""
        identity = identity or self.session.identity or self._last_identity
        if not identity:
            raise InvalidStateTransition("no identity to persist for")
        async with self._lock:
            self._persist_locked(identity)

    async def identity_disconnected(self, identity: str) -> bool:
        async with self._lock:
            if self.session.mode is not SessionMode.LIVE or self.session.identity != identity:
                return False
            self._persist_locked(identity)
            return True

    # -- demo ticks ----------------------------------------------------

    async def run_tick(self, generation: int | None = None) -> Trade | None:
        """Synthesize, score and book one demo trade; errors are contained here."""
        generation = self._generation if generation is None else generation
        if generation != self._generation:
            return None
        try:
            candidate = await self.synthesizer.synthesize()
            features = engineer_features(candidate.features)
            async with self._lock:
                if (
                    generation != self._generation
                    or not self.session.running
                    or self.session.mode is not SessionMode.DEMO
                ):
                    return None
                prediction = self.scorer.predict(features)
                trade = Trade(
                    id=candidate.trade_id,
                    timestamp=candidate.timestamp,
                    from_asset=candidate.from_asset,
                    to_asset=candidate.to_asset,
                    input_amount=candidate.input_amount,
                    usd_value=candidate.usd_value,
                    profit=candidate.profit,
                    profit_percent=candidate.profit_percent,
                    succeeded=candidate.succeeded,
                    prediction_details=prediction,
                    mode=SessionMode.DEMO.value,
                )
                self._book(trade)
                return trade
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.tick_errors += 1
            self.log.exception("trade tick failed: %s", exc)
            self._emit("tick.error", error=str(exc), generation=generation)
            return None

    def _book(self, trade: Trade) -> None:
        self.trades.append(trade)
        self.ledger.apply_trade(trade)
        self.performance.record(trade)
        self.scorer.learn(trade)
        self.log.info(
            "trade %s %s usd=%.2f profit=%.2f balance=%.2f",
            trade.id,
            trade.route,
            trade.usd_value,
            trade.profit,
            self.ledger.state.balance,
        )
        self._emit("trade.created", trade_id=trade.id, mode=trade.mode, profit=trade.profit)
        self.bus.publish(TradeCreated(trade=trade.to_dict()))
        self._publish_portfolio()
        self._publish_scorer()

    async def sample_history(self) -> None:
        async with self._lock:
            if not self.session.running:
                return
            self.history.record(self.clock(), self.ledger.state.balance)

    # -- profit lock and scorer ----------------------------------------

    async def configure_profit_lock(
        self, percentage_points: int | None = None, enabled: bool | None = None
    ) -> ProfitLockConfig:
        async with self._lock:
            cfg = self.ledger.configure(percentage_points=percentage_points, enabled=enabled)
            self._emit("profit_lock.configured", **cfg.to_dict())
            self._publish_portfolio()
            return cfg

    async def withdraw_lock(self, amount: float) -> float:
        async with self._lock:
            moved = self.ledger.withdraw_lock(amount)
            self._emit("profit_lock.withdraw", amount=moved)
            self._publish_portfolio()
            return moved

    async def set_scorer_enabled(self, enabled: bool) -> bool:
        async with self._lock:
            out = self.scorer.set_enabled(enabled)
            self._publish_scorer()
            return out

    # -- discovery -----------------------------------------------------

    async def scan_tokens(self) -> list[dict[str, Any]]:
        if self.tradeability is None or not self.discovery_enabled:
            raise InvalidStateTransition("token discovery is disabled")
        base = self.tradeability.base
        candidates = [a for a in self.registry.all() if a.mint != base.mint]
        results = await asyncio.gather(*(self.tradeability.verify(a) for a in candidates))

        async with self._lock:
            tradeable = [r.asset for r in results if r.tradeable]
            self.synthesizer.track([base, *tradeable] if tradeable else [])
            self.last_scan = [r.to_dict() for r in results]
            self.log.info("token scan: %d/%d tradeable", len(tradeable), len(candidates))
            self._emit("tokens.scanned", tradeable=[a.symbol for a in tradeable])
            return copy.deepcopy(self.last_scan)

    # -- live trades ---------------------------------------------------

    def _require_live(self) -> None:
        if self.session.mode is not SessionMode.LIVE or not self.session.running:
            raise InvalidStateTransition("no live session is running")

    async def prepare_live_trade(self, from_symbol: str, to_symbol: str, usd_amount: float) -> PreparedTrade:
        self._require_live()
        generation = self._generation
        prepared = await self.ingestor.prepare(from_symbol, to_symbol, usd_amount)
        features = engineer_features(prepared.features)

        async with self._lock:
            if generation != self._generation:
                raise InvalidStateTransition("session changed while the trade was being quoted")
            self._require_live()
            prepared = dataclasses.replace(prepared, prediction=self.scorer.predict(features))
            self.pending[prepared.trade_id] = prepared
            self._emit("trade.prepared", trade_id=prepared.trade_id, usd=prepared.usd_value)
            return prepared

    def _take_pending(self, trade_id: str) -> PreparedTrade:
        prepared = self.pending.pop(trade_id, None)
        if prepared is not None:
            return prepared
        if trade_id in self.executing:
            raise ValidationError(f"trade {trade_id} is already being executed")
        if any(t.id == trade_id for t in self.trades):
            raise ValidationError(f"trade {trade_id} was already ingested")
        raise ValidationError(f"unknown prepared trade {trade_id!r}")

    async def execute_prepared(self, trade_id: str) -> Trade:
        """Send a prepared quote through the execution manager and book the outcome.

        The prepared trade leaves `pending` before the gateway is awaited, so a
        concurrent call for the same id fails instead of submitting twice.
        """
        if self.executor is None:
            raise InvalidStateTransition("no execution manager configured")
        async with self._lock:
            self._require_live()
            prepared = self._take_pending(trade_id)
            self.executing.add(trade_id)
            generation = self._generation

        try:
            try:
                outcome = await self.executor.submit(prepared.quote)
            except Exception as exc:
                self.log.exception("execution of %s failed: %s", trade_id, exc)
                outcome = ExecutionOutcome(success=False, error=str(exc))

            async with self._lock:
                if generation != self._generation:
                    self.log.error("session changed while %s was executing (signature=%s)", trade_id, outcome.signature)
                    self._emit("trade.orphaned", trade_id=trade_id, signature=outcome.signature)
                    raise InvalidStateTransition("session changed while the trade was executing")
                trade = self.ingestor.ingest(prepared, outcome)
                self._book(trade)
                return trade
        finally:
            self.executing.discard(trade_id)

    async def ingest_trade_result(self, trade_id: str, outcome: ExecutionOutcome) -> Trade:
        async with self._lock:
            self._require_live()
            trade = self.ingestor.ingest(self._take_pending(trade_id), outcome)
            self._book(trade)
            return trade

    # -- command surface -----------------------------------------------

    async def handle(self, command: Command) -> dict[str, Any]:
        if isinstance(command, StartSession):
            mode = await self.start(command.mode, command.identity)
            return {"mode": mode.value, "session": self.session.to_dict()}
        if isinstance(command, StopSession):
            mode = await self.stop()
            return {"stopped": mode.value, "session": self.session.to_dict()}
        if isinstance(command, ConfigureProfitLock):
            cfg = await self.configure_profit_lock(command.percentage_points, command.enabled)
            return {"profit_lock": cfg.to_dict()}
        if isinstance(command, WithdrawLock):
            moved = await self.withdraw_lock(command.amount)
            return {"withdrawn": moved, "portfolio": self.ledger.snapshot()}
        if isinstance(command, IngestTradeResult):
            trade = await self.ingest_trade_result(command.trade_id, command.outcome)
            return {"trade": trade.to_dict()}
        if isinstance(command, ToggleScorer):
            enabled = await self.set_scorer_enabled(command.enabled)
            return {"enabled": enabled}
        if isinstance(command, ScanTokens):
            return {"results": await self.scan_tokens()}
        if isinstance(command, PrepareLiveTrade):
            prepared = await self.prepare_live_trade(command.from_symbol, command.to_symbol, command.usd_amount)
            if self.auto_execute and self.executor is not None:
                trade = await self.execute_prepared(prepared.trade_id)
                return {"prepared": prepared.to_dict(), "trade": trade.to_dict()}
            return {"prepared": prepared.to_dict()}
        raise ValidationError(f"unsupported command {command!r}")
