from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Any

from soulbot.domain.errors import PersistenceFailure, ValidationError

SNAPSHOT_VERSION = 1


def identity_key(identity: str) -> str:
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]


class WalletStateStore:
    """One JSON snapshot per identity, named only by a hash of the identity."""

    def __init__(self, data_dir: str):
        self.root = Path(data_dir) / "wallets"

    def path_for(self, identity: str) -> Path:
        if not identity:
            raise ValidationError("identity is required")
        return self.root / f"{identity_key(identity)}.json"

    def save(self, identity: str, snapshot: dict[str, Any]) -> Path:
        path = self.path_for(identity)
        payload = {**snapshot, "version": SNAPSHOT_VERSION, "saved_at": time.time()}
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=True, separators=(",", ":")))
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceFailure(f"snapshot write failed for {path.name}: {exc}") from exc
        return path

    def load(self, identity: str) -> dict[str, Any] | None:
        path = self.path_for(identity)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"snapshot read failed for {path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceFailure(f"snapshot {path.name} is not an object")
        return data
