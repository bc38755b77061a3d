from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from aiohttp import WSMsgType, web

from soulbot.domain.commands import parse_command
from soulbot.domain.errors import (
    InvalidStateTransition,
    SessionError,
    UpstreamUnavailable,
    ValidationError,
)
from soulbot.engine.session_controller import SessionController
from soulbot.infra.log import get_logger
from soulbot.infra.telemetry import RuntimeEventLogger

CONTROLLER_KEY = web.AppKey("controller", SessionController)
JOURNAL_KEY = web.AppKey("journal", RuntimeEventLogger)

NO_STORE = {"Cache-Control": "no-store"}


def error_status(exc: SessionError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, InvalidStateTransition):
        return 409
    if isinstance(exc, UpstreamUnavailable):
        return 502
    return 500


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except SessionError as exc:
        return web.json_response(
            {"error": str(exc), "kind": type(exc).__name__},
            status=error_status(exc),
            headers=NO_STORE,
        )


async def _body(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("request body must be JSON") from None
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


async def _dispatch(request: web.Request, payload: dict[str, Any]) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    result = await controller.handle(parse_command(payload))
    return web.json_response({"ok": True, **result}, headers=NO_STORE, dumps=_dumps)


def _dumps(obj: Any) -> str:
    return json.dumps(obj, default=str)


async def handle_state(request: web.Request) -> web.Response:
    return web.json_response(request.app[CONTROLLER_KEY].snapshot(), headers=NO_STORE, dumps=_dumps)


async def handle_trades(request: web.Request) -> web.Response:
    state = request.app[CONTROLLER_KEY].snapshot()
    return web.json_response({"trades": state["trades"]}, headers=NO_STORE, dumps=_dumps)


async def handle_scorer(request: web.Request) -> web.Response:
    return web.json_response(request.app[CONTROLLER_KEY].scorer.report(), headers=NO_STORE, dumps=_dumps)


async def handle_health(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    return web.json_response(
        {
            "session": controller.session.to_dict(),
            "loops": controller.health.to_dict(),
            "viewers": controller.bus.subscriber_count,
            "tick_errors": controller.tick_errors,
        },
        headers=NO_STORE,
    )


async def handle_events(request: web.Request) -> web.Response:
    journal = request.app.get(JOURNAL_KEY)
    try:
        limit = int(request.query.get("limit", "50"))
    except ValueError:
        raise ValidationError("limit must be an integer") from None
    rows = journal.tail(limit) if journal is not None else []
    return web.json_response({"events": rows}, headers=NO_STORE, dumps=_dumps)


async def handle_command(request: web.Request) -> web.Response:
    return await _dispatch(request, await _body(request))


def _typed(kind: str):
    async def handler(request: web.Request) -> web.Response:
        payload = await _body(request) if request.can_read_body else {}
        return await _dispatch(request, {**payload, "type": kind})

    return handler


async def handle_disconnected(request: web.Request) -> web.Response:
    payload = await _body(request)
    identity = str(payload.get("identity") or "")
    if not identity:
        raise ValidationError("identity is required")
    saved = await request.app[CONTROLLER_KEY].identity_disconnected(identity)
    return web.json_response({"ok": True, "saved": saved}, headers=NO_STORE)


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    """Streams session events and accepts JSON commands on the same socket."""
    controller = request.app[CONTROLLER_KEY]
    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    queue = controller.bus.subscribe()
    await ws.send_str(_dumps({"type": "snapshot", "state": controller.snapshot()}))

    async def pump() -> None:
        while True:
            event = await queue.get()
            await ws.send_str(_dumps(event.to_dict()))

    pump_task = asyncio.create_task(pump())
    try:
        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            try:
                payload = json.loads(msg.data)
                result = await controller.handle(parse_command(payload))
                reply = {"type": "command_result", "ok": True, "result": result}
            except json.JSONDecodeError:
                reply = {"type": "error", "status": 400, "error": "message must be JSON"}
            except SessionError as exc:
                reply = {"type": "error", "status": error_status(exc), "error": str(exc)}
            await ws.send_str(_dumps(reply))
    finally:
        pump_task.cancel()
        controller.bus.unsubscribe(queue)
    return ws


def build_app(controller: SessionController, journal: RuntimeEventLogger | None = None) -> web.Application:
    app = web.Application(middlewares=[error_middleware])
    app[CONTROLLER_KEY] = controller
    if journal is not None:
        app[JOURNAL_KEY] = journal
    app.router.add_get("/api/state", handle_state)
    app.router.add_get("/api/trades", handle_trades)
    app.router.add_get("/api/scorer", handle_scorer)
    app.router.add_get("/api/health", handle_health)
    app.router.add_get("/api/events", handle_events)
    app.router.add_post("/api/command", handle_command)
    app.router.add_post("/api/session/start", _typed("start"))
    app.router.add_post("/api/session/stop", _typed("stop"))
    app.router.add_post("/api/profit-lock", _typed("configure_profit_lock"))
    app.router.add_post("/api/profit-lock/withdraw", _typed("withdraw_lock"))
    app.router.add_post("/api/scorer/toggle", _typed("toggle_scorer"))
    app.router.add_post("/api/tokens/scan", _typed("scan_tokens"))
    app.router.add_post("/api/trades/prepare", _typed("prepare_live_trade"))
    app.router.add_post("/api/trades/ingest", _typed("ingest_trade_result"))
    app.router.add_post("/api/wallet/disconnected", handle_disconnected)
    app.router.add_get("/ws", handle_ws)
    return app


async def run_dashboard(
    controller: SessionController,
    *,
    host: str,
    port: int,
    journal: RuntimeEventLogger | None = None,
    log_level: str = "INFO",
) -> web.AppRunner:
    log: logging.Logger = get_logger("soulbot-dashboard", log_level)
    runner = web.AppRunner(build_app(controller, journal))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    log.info("dashboard running on %s:%s", host, port)
    return runner
