from pathlib import Path

import pytest

from soulbot.config.settings import load_settings

KEYS = ("PORT", "TRADE_INTERVAL_SEC", "PROFIT_LOCK_PERCENTAGE", "DRY_RUN", "SCORER_RETRAIN_EVERY", "SCORER_ENABLED")


def _clear_env(monkeypatch) -> None:
    # setenv first so teardown also removes whatever load_dotenv writes
    for key in KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_settings_defaults(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    s = load_settings(env_file=str(tmp_path / "missing.env"))
    assert s.port == 3030
    assert s.trade_interval_sec == 30.0
    assert s.profit_lock_percentage == 20
    assert s.scorer_retrain_every == 50
    assert s.dry_run is True


def test_settings_env_file_overrides_and_clamps(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    env = tmp_path / "soulbot.env"
    env.write_text("PORT=4040\nPROFIT_LOCK_PERCENTAGE=250\nSCORER_ENABLED=no\n")
    s = load_settings(env_file=str(env))
    assert s.port == 4040
    assert s.profit_lock_percentage == 100
    assert s.scorer_enabled is False


def test_settings_rejects_garbage_int(tmp_path: Path, monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("PORT", "not-a-port")
    with pytest.raises(ValueError):
        load_settings(env_file=str(tmp_path / "missing.env"))
