from __future__ import annotations

import asyncio
import random

from soulbot.config import Settings, load_settings
from soulbot.dashboard import run_dashboard
from soulbot.data import (
    HeliusOracle,
    HttpService,
    JupiterAggregator,
    PriceResolver,
    StaticPriceTable,
    TokenRegistry,
    WalletStateStore,
)
from soulbot.domain.errors import PersistenceFailure
from soulbot.engine import SessionController, TradeIngestor, TradeSynthesizer
from soulbot.execution import ExecutionManager
from soulbot.infra import EventBus, RuntimeEventLogger, get_logger
from soulbot.portfolio import ProfitLockConfig
from soulbot.runtime.supervisor import PeriodicLoop, RuntimeHealth
from soulbot.strategy import AdaptiveScorer, TradeabilityChecker


class App:
    """Top-level orchestrator: wires the session core, its loops and the push channel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.log = get_logger("soulbot", settings.log_level)
        self.health = RuntimeHealth()
        self.http: HttpService | None = None
        self.controller: SessionController | None = None

    def build(self) -> SessionController:
        s = self.settings
        rng = random.Random()
        self.http = HttpService(default_timeout=s.http_timeout_sec, log=self.log)
        registry = TokenRegistry()
        jupiter = JupiterAggregator(
            self.http,
            api_base=s.jupiter_api_base,
            usdc_mint=registry.base.mint,
            timeout=s.http_timeout_sec,
        )
        resolver = PriceResolver(
            [
                HeliusOracle(self.http, rpc_url=s.helius_rpc_url, api_key=s.helius_api_key, timeout=s.http_timeout_sec),
                jupiter,
                StaticPriceTable(registry.static_prices),
            ],
            jupiter,
            ttl_sec=s.price_cache_ttl_sec,
            timeout=s.http_timeout_sec,
            default_slippage_bps=s.slippage_bps,
            log=self.log,
        )
        self.journal = RuntimeEventLogger(s.data_dir)
        self.controller = SessionController(
            registry=registry,
            scorer=AdaptiveScorer(enabled=s.scorer_enabled, retrain_every=s.scorer_retrain_every, rng=rng, log=self.log),
            store=WalletStateStore(s.data_dir),
            synthesizer=TradeSynthesizer(resolver, registry, rng=rng, slippage_bps=s.slippage_bps, log=self.log),
            ingestor=TradeIngestor(resolver, registry, slippage_bps=s.slippage_bps, log=self.log),
            tradeability=TradeabilityChecker(
                resolver, registry.base, max_round_trip_loss=s.max_round_trip_loss, log=self.log
            ),
            executor=ExecutionManager(dry_run=s.dry_run, log=self.log),
            bus=EventBus(),
            journal=self.journal,
            health=self.health,
            demo_start_balance=s.demo_start_balance,
            max_trades=s.max_trades_in_memory,
            trade_interval_sec=s.trade_interval_sec,
            lock_config=ProfitLockConfig(
                enabled=s.profit_lock_enabled, percentage_points=s.profit_lock_percentage
            ),
            auto_execute=s.auto_execute_live,
            discovery_enabled=s.token_discovery_enabled,
            log=self.log,
        )
        return self.controller

    async def run(self) -> None:
        s = self.settings
        controller = self.build()
        self.log.info(
            "starting soulbot dry_run=%s auto_execute=%s discovery=%s",
            s.dry_run,
            s.auto_execute_live,
            s.token_discovery_enabled,
        )
        runner = await run_dashboard(
            controller, host=s.host, port=s.port, journal=self.journal, log_level=s.log_level
        )
        sampler = PeriodicLoop(
            "history_sampler",
            controller.sample_history,
            s.history_interval_sec,
            log=self.log,
            health=self.health,
        )
        sampler.start()
        try:
            while True:
                await asyncio.sleep(3600)
                self.log.info("health %s", self.health.summary())
        finally:
            await sampler.stop()
            try:
                await controller.stop()
            except PersistenceFailure as exc:
                self.log.error("final snapshot not written: %s", exc)
            await runner.cleanup()
            await self.http.close()


def run_main(settings: Settings) -> None:
    try:
        asyncio.run(App(settings).run())
    except KeyboardInterrupt:
        pass


def main() -> None:
    run_main(load_settings())
