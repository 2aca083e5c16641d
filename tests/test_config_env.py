from __future__ import annotations

import logging
import os

import pytest

from meshnode import env as env_mod
from meshnode.config import DEFAULT_RPC_TIMEOUT_MS, load_node_config
from meshnode.net.net_logging import log_event


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("MESHNODE_RPC_TIMEOUT_MS", "MESHNODE_LOG_LEVEL", "MESHNODE_METRICS_ENABLED", "MESHNODE_DOTENV_PATH"):
        monkeypatch.delenv(name, raising=False)
    env_mod._reset_for_tests()
    yield
    env_mod._reset_for_tests()


def test_defaults() -> None:
    cfg = load_node_config()
    assert cfg.rpc_timeout_ms == DEFAULT_RPC_TIMEOUT_MS == 1000
    assert cfg.log_level == "INFO"
    assert cfg.metrics_enabled is False


@pytest.mark.parametrize("raw, expected", [("250", 250), ("0", 1), ("-5", 1), ("abc", 1000)])
def test_rpc_timeout_from_env(monkeypatch, raw: str, expected: int) -> None:
    monkeypatch.setenv("MESHNODE_RPC_TIMEOUT_MS", raw)
    assert load_node_config().rpc_timeout_ms == expected


def test_log_level_and_metrics_flags(monkeypatch) -> None:
    monkeypatch.setenv("MESHNODE_LOG_LEVEL", "debug")
    monkeypatch.setenv("MESHNODE_METRICS_ENABLED", "yes")
    cfg = load_node_config()
    assert cfg.log_level == "DEBUG"
    assert cfg.metrics_enabled is True


def test_dotenv_loaded_once_without_override(monkeypatch, tmp_path) -> None:
    # Register both vars with monkeypatch so whatever dotenv sets is undone.
    monkeypatch.setenv("MESHNODE_RPC_TIMEOUT_MS", "x")
    monkeypatch.delenv("MESHNODE_RPC_TIMEOUT_MS")
    monkeypatch.setenv("MESHNODE_LOG_LEVEL", "WARNING")

    p = tmp_path / ".env"
    p.write_text("MESHNODE_RPC_TIMEOUT_MS=321\nMESHNODE_LOG_LEVEL=DEBUG\n", encoding="utf-8")

    assert env_mod.load_dotenv_if_present(str(p)) is True
    assert os.environ["MESHNODE_RPC_TIMEOUT_MS"] == "321"
    assert os.environ["MESHNODE_LOG_LEVEL"] == "WARNING"
    assert load_node_config().rpc_timeout_ms == 321

    assert env_mod.load_dotenv_if_present(str(p)) is False


def test_missing_dotenv_is_a_noop(tmp_path) -> None:
    assert env_mod.load_dotenv_if_present(str(tmp_path / "nope.env")) is False


def test_log_event_is_single_json_line(caplog) -> None:
    logger = logging.getLogger("meshnode.test")
    with caplog.at_level(logging.INFO, logger="meshnode.test"):
        log_event(logger, "rpc_retry", msg_id=3, dest="n2")
    assert len(caplog.records) == 1
    msg = caplog.records[0].getMessage()
    assert "\n" not in msg
    assert '"event":"rpc_retry"' in msg
    assert '"msg_id":3' in msg


def test_dotenv_path_from_env_var_and_bare_keys_skipped(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MESHNODE_METRICS_ENABLED", "x")
    monkeypatch.delenv("MESHNODE_METRICS_ENABLED")
    monkeypatch.setenv("MESHNODE_LOG_LEVEL", "x")
    monkeypatch.delenv("MESHNODE_LOG_LEVEL")

    p = tmp_path / "node.env"
    p.write_text("MESHNODE_METRICS_ENABLED=true\nMESHNODE_LOG_LEVEL\n", encoding="utf-8")
    monkeypatch.setenv("MESHNODE_DOTENV_PATH", str(p))

    assert env_mod.resolve_dotenv_path() == p
    assert env_mod.load_dotenv_if_present() is True
    assert load_node_config().metrics_enabled is True
    assert "MESHNODE_LOG_LEVEL" not in os.environ
