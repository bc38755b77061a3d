from pathlib import Path

import pytest

from soulbot.data.wallet_store import SNAPSHOT_VERSION, WalletStateStore, identity_key
from soulbot.domain.errors import PersistenceFailure, ValidationError


def test_wallet_store_roundtrip(tmp_path: Path) -> None:
    store = WalletStateStore(str(tmp_path))
    store.save("abc", {"portfolio": {"balance": 12.5}, "trades": []})
    out = store.load("abc")
    assert out["portfolio"]["balance"] == 12.5
    assert out["version"] == SNAPSHOT_VERSION
    assert "saved_at" in out


def test_wallet_store_names_file_by_hash_only(tmp_path: Path) -> None:
    store = WalletStateStore(str(tmp_path))
    path = store.save("MyWalletAddress123", {"trades": []})
    assert "MyWalletAddress123" not in path.name
    assert path.name == f"{identity_key('MyWalletAddress123')}.json"
    assert len(identity_key("x")) == 16


def test_wallet_store_missing_and_corrupt(tmp_path: Path) -> None:
    store = WalletStateStore(str(tmp_path))
    assert store.load("nobody") is None
    store.path_for("broken").parent.mkdir(parents=True, exist_ok=True)
    store.path_for("broken").write_text("{not json")
    with pytest.raises(PersistenceFailure):
        store.load("broken")


def test_wallet_store_last_write_wins(tmp_path: Path) -> None:
    store = WalletStateStore(str(tmp_path))
    store.save("abc", {"n": 1})
    store.save("abc", {"n": 2})
    assert store.load("abc")["n"] == 2
    assert not list(store.root.glob("*.tmp"))


def test_wallet_store_requires_identity(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        WalletStateStore(str(tmp_path)).path_for("")
