from __future__ import annotations

import asyncio
import json
import logging
import random
import time
import urllib.parse
from typing import Any

import aiohttp

from soulbot.domain.errors import UpstreamUnavailable


class HttpService:
    """Shared aiohttp client for upstream price/quote APIs.

    Host pacing, 429/5xx retry with backoff, bounded per-call timeouts.
    Response caching is left to PriceResolver so failures are never cached.
    """

    def __init__(
        self,
        *,
        conn_limit: int = 32,
        conn_per_host: int = 8,
        dns_ttl_sec: int = 300,
        keepalive_sec: float = 30.0,
        min_gap_ms: float = 50.0,
        retries_429: int = 2,
        retries_5xx: int = 1,
        default_timeout: float = 8.0,
        log: logging.Logger | None = None,
    ):
        self._conn_limit = max(1, int(conn_limit))
        self._conn_per_host = max(1, int(conn_per_host))
        self._dns_ttl_sec = max(0, int(dns_ttl_sec))
        self._keepalive_sec = max(5.0, float(keepalive_sec))
        self._min_gap_s = max(0.0, float(min_gap_ms) / 1000.0)
        self._retries_429 = max(0, int(retries_429))
        self._retries_5xx = max(0, int(retries_5xx))
        self._default_timeout = max(0.5, float(default_timeout))
        self.log = log or logging.getLogger("soulbot.http")

        self._session: aiohttp.ClientSession | None = None
        self._host_backoff: dict[str, float] = {}
        self._host_last_ts: dict[str, float] = {}
        self._host_locks: dict[str, asyncio.Lock] = {}
        self.error_counts: dict[str, int] = {}

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session
        connector = aiohttp.TCPConnector(
            limit=self._conn_limit,
            limit_per_host=self._conn_per_host,
            ttl_dns_cache=self._dns_ttl_sec,
            keepalive_timeout=self._keepalive_sec,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": "soulbot/1.0"},
        )
        return self._session

    def _host_lock(self, host: str) -> asyncio.Lock:
        lock = self._host_locks.get(host)
        if lock is None:
            lock = asyncio.Lock()
            self._host_locks[host] = lock
        return lock

    def _count_error(self, host: str, err: Any, every: int = 20) -> None:
        n = self.error_counts.get(host, 0) + 1
        self.error_counts[host] = n
        if n % every == 1:
            self.log.warning("upstream %s failing (%dx) last=%s", host, n, err)

    async def get_json(self, url: str, *, params: dict | None = None, timeout: float | None = None) -> Any:
        return await self._request("GET", url, params=params, timeout=timeout)

    async def post_json(self, url: str, payload: dict, *, timeout: float | None = None) -> Any:
        return await self._request("POST", url, payload=payload, timeout=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        payload: dict | None = None,
        timeout: float | None = None,
    ) -> Any:
        timeout = self._default_timeout if timeout is None else max(0.1, float(timeout))
        host = urllib.parse.urlparse(url).netloc
        session = await self._ensure_session()

        async with self._host_lock(host):
            now = time.time()
            last_ts = float(self._host_last_ts.get(host, 0.0) or 0.0)
            if last_ts > 0 and (now - last_ts) < self._min_gap_s:
                await asyncio.sleep(self._min_gap_s - (now - last_ts))
            self._host_last_ts[host] = time.time()

            bt = float(self._host_backoff.get(host, 0.0) or 0.0)
            if bt > time.time():
                raise UpstreamUnavailable(host, f"429 backoff active ({bt - time.time():.0f}s left)")

            last_err: Any = None
            attempts = max(1, self._retries_429 + 1)
            for i in range(attempts):
                try:
                    async with session.request(
                        method,
                        url,
                        params=params,
                        data=json.dumps(payload) if payload is not None else None,
                        headers={"Content-Type": "application/json"} if payload is not None else None,
                        timeout=aiohttp.ClientTimeout(total=timeout),
                    ) as r:
                        if r.status == 429:
                            retry_after = max(1.0, float(r.headers.get("Retry-After", "2") or 2.0))
                            backoff_s = min(90.0, retry_after + (0.35 * i) + random.uniform(0.05, 0.35))
                            self._host_backoff[host] = max(
                                float(self._host_backoff.get(host, 0.0) or 0.0),
                                time.time() + backoff_s,
                            )
                            last_err = f"http 429 {url}"
                            if i < (attempts - 1):
                                await asyncio.sleep(backoff_s)
                                continue
                            break

                        if r.status >= 500 and i < self._retries_5xx:
                            last_err = f"http {r.status} {url}"
                            await asyncio.sleep(0.25 + (0.25 * i))
                            continue

                        if r.status >= 400:
                            last_err = f"http {r.status} {url}"
                            break

                        return await r.json(content_type=None)
                except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError, ValueError) as e:
                    last_err = e
                    if i < (attempts - 1):
                        await asyncio.sleep(0.20 + (0.15 * i))
                        continue

            self._count_error(host, last_err)
            raise UpstreamUnavailable(host, str(last_err))
