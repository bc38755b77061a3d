from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field


@dataclass
class LoopHealth:
    name: str
    iterations: int = 0
    errors: int = 0
    last_error: str = ""
    alive: bool = False


@dataclass
class RuntimeHealth:
    loops: dict[str, LoopHealth] = field(default_factory=dict)

    def get(self, name: str) -> LoopHealth:
        h = self.loops.get(name)
        if h is None:
            h = LoopHealth(name=name)
            self.loops[name] = h
        return h

    def summary(self) -> str:
        if not self.loops:
            return "loops=0"
        up = sum(1 for h in self.loops.values() if h.alive)
        total = len(self.loops)
        errors = sum(int(h.errors) for h in self.loops.values())
        return f"loops={up}/{total} errors={errors}"

    def to_dict(self) -> dict[str, dict]:
        return {name: asdict(h) for name, h in self.loops.items()}


class PeriodicLoop:
    """Runs `fn` every `interval` seconds until stopped.

    A failing iteration is logged and counted; the loop keeps its schedule.
    `stop()` cancels a sleeping or running iteration and waits for it.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[[], Awaitable[None]],
        interval: float,
        *,
        log: logging.Logger | None = None,
        health: RuntimeHealth | None = None,
        run_immediately: bool = False,
    ):
        self.name = name
        self.fn = fn
        self.interval = max(0.0, float(interval))
        self.log = log or logging.getLogger("soulbot.loop")
        self.health = (health or RuntimeHealth()).get(name)
        self.run_immediately = run_immediately
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name=f"loop:{self.name}")
        return self._task

    async def _run(self) -> None:
        self.health.alive = True
        try:
            if not self.run_immediately:
                await asyncio.sleep(self.interval)
            while True:
                try:
                    await self.fn()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self.health.errors += 1
                    self.health.last_error = str(exc)
                    self.log.exception("loop %s iteration failed: %s", self.name, exc)
                self.health.iterations += 1
                await asyncio.sleep(self.interval)
        finally:
            self.health.alive = False

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
