#!/usr/bin/env python3
import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    host: str
    port: int
    teams_client_id: str
    teams_client_secret: str
    tenant_id: str
    security_team_id: str
    security_channel_id: str
    mock_mode: bool
    log_level: str
    scan_chunk_size: int
    scan_chunk_overlap: int
    alert_queue_size: int


def load_config() -> Config:
    if not load_dotenv():
        logger.info("No .env file found, using environment variables")

    return Config(
        host=_get_env("HOST", "127.0.0.1"),
        port=_get_int("PORT", 8080),
        teams_client_id=_get_env("TEAMS_CLIENT_ID", "mock-client-id"),
        teams_client_secret=_get_env("TEAMS_CLIENT_SECRET", "mock-client-secret"),
        tenant_id=_get_env("TENANT_ID", "mock-tenant-id"),
        security_team_id=_get_env("SECURITY_TEAM_ID", "security-team"),
        security_channel_id=_get_env("SECURITY_CHANNEL_ID", "security-alerts"),
        mock_mode=_get_bool("MOCK_MODE", True),
        log_level=_get_env("LOG_LEVEL", "info"),
        scan_chunk_size=_get_int("SCAN_CHUNK_SIZE", 4096),
        scan_chunk_overlap=_get_int("SCAN_CHUNK_OVERLAP", 512),
        alert_queue_size=_get_int("ALERT_QUEUE_SIZE", 256),
    )


def _get_env(key: str, default: str) -> str:
    value = os.getenv(key)
    return value if value else default


def _get_int(key: str, default: int) -> int:
    try:
        return int(_get_env(key, str(default)))
    except ValueError:
        logger.warning("Invalid %s env var, using default %s", key, default)
        return default


def _get_bool(key: str, default: bool) -> bool:
    value = _get_env(key, str(default)).strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning("Invalid %s env var, using default %s", key, default)
    return default
