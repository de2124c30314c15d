import pytest

import config
from config import load_config

ENV_KEYS = (
    "HOST", "PORT", "TEAMS_CLIENT_ID", "TEAMS_CLIENT_SECRET", "TENANT_ID",
    "SECURITY_TEAM_ID", "SECURITY_CHANNEL_ID", "MOCK_MODE", "LOG_LEVEL",
    "SCAN_CHUNK_SIZE", "SCAN_CHUNK_OVERLAP", "ALERT_QUEUE_SIZE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda: False)


def test_defaults():
    cfg = load_config()

    assert cfg.host == "127.0.0.1"
    assert cfg.port == 8080
    assert cfg.mock_mode is True
    assert cfg.security_channel_id == "security-alerts"
    assert (cfg.scan_chunk_size, cfg.scan_chunk_overlap) == (4096, 512)
    assert cfg.alert_queue_size == 256


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("MOCK_MODE", "false")
    monkeypatch.setenv("TEAMS_CLIENT_ID", "real-client")
    monkeypatch.setenv("SCAN_CHUNK_SIZE", "2048")

    cfg = load_config()

    assert cfg.port == 9090
    assert cfg.mock_mode is False
    assert cfg.teams_client_id == "real-client"
    assert cfg.scan_chunk_size == 2048


def test_empty_value_uses_default(monkeypatch):
    monkeypatch.setenv("HOST", "")
    assert load_config().host == "127.0.0.1"


@pytest.mark.parametrize("key,value,attr,default", [
    ("PORT", "eighty", "port", 8080),
    ("ALERT_QUEUE_SIZE", "1.5", "alert_queue_size", 256),
    ("MOCK_MODE", "maybe", "mock_mode", True),
])
def test_invalid_values_fall_back(monkeypatch, caplog, key, value, attr, default):
    monkeypatch.setenv(key, value)

    cfg = load_config()

    assert getattr(cfg, attr) == default
    assert f"Invalid {key}" in caplog.text


def test_config_is_frozen():
    cfg = load_config()
    with pytest.raises(AttributeError):
        cfg.port = 1


def test_invalid_value_logged_with_lazy_arguments(monkeypatch, caplog):
    monkeypatch.setenv("SCAN_CHUNK_SIZE", "big")

    load_config()

    record = next(r for r in caplog.records if r.name == "config" and r.levelname == "WARNING")
    assert record.msg == "Invalid %s env var, using default %s"
    assert record.args == ("SCAN_CHUNK_SIZE", 4096)
