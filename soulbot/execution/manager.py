from __future__ import annotations

import hashlib
import logging
from typing import Protocol

from soulbot.domain.models import ExecutionOutcome, Quote


class SigningGateway(Protocol):
    """Wallet-side collaborator that signs and submits a quoted swap."""

    async def submit(self, quote: Quote) -> ExecutionOutcome: ...


class ExecutionManager:
    """Execution boundary. Keeps signing out of the session core.

    In dry-run mode no gateway is contacted and every submission succeeds
    with a deterministic placeholder signature.
    """

    def __init__(self, *, dry_run: bool = True, gateway: SigningGateway | None = None, log: logging.Logger | None = None):
        self.dry_run = dry_run
        self.gateway = gateway
        self.log = log or logging.getLogger("soulbot.execution")

    async def submit(self, quote: Quote) -> ExecutionOutcome:
        if self.dry_run:
            digest = hashlib.sha256(
                f"{quote.input_mint}:{quote.output_mint}:{quote.input_amount}:{quote.output_amount}".encode()
            ).hexdigest()[:24]
            return ExecutionOutcome(success=True, signature=f"dry-run-{digest}")
        if self.gateway is None:
            return ExecutionOutcome(success=False, error="no signing gateway configured")
        try:
            return await self.gateway.submit(quote)
        except Exception as exc:
            self.log.exception("signing gateway failed: %s", exc)
            return ExecutionOutcome(success=False, error=str(exc))
