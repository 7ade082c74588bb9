"""
Runtime settings (environment driven) and logging setup.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

CONNECTOR_MODES = ("mock", "live")

_LOGGER_NAME = "knowreply_mcp"


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _flag(env: Mapping[str, str], key: str) -> bool:
    return (env.get(key) or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    server_name: str = "KnowReply-MCP-Server"
    server_version: str = "1.0.0"
    internal_api_key: Optional[str] = None
    require_api_key: bool = False
    connector_mode: str = "mock"
    upstream_timeout_s: float = 10.0
    endpoint_path: str = "/mcp"
    ws_host: str = "127.0.0.1"
    ws_port: int = 8765
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        mode = (env.get("KNOWREPLY_CONNECTOR_MODE") or "mock").strip().lower()
        if mode not in CONNECTOR_MODES:
            raise ValueError(f"KNOWREPLY_CONNECTOR_MODE must be one of {CONNECTOR_MODES}, got {mode!r}")

        api_key = env.get("MCP_SERVER_INTERNAL_API_KEY") or env.get("MCP_SERVER_INTERNAL_API_KEY_FALLBACK") or None

        path = env.get("KNOWREPLY_ENDPOINT_PATH") or "/mcp"
        if not path.startswith("/"):
            path = "/" + path

        return cls(
            server_name=env.get("KNOWREPLY_SERVER_NAME") or cls.server_name,
            server_version=env.get("KNOWREPLY_SERVER_VERSION") or cls.server_version,
            internal_api_key=api_key,
            require_api_key=_flag(env, "KNOWREPLY_REQUIRE_API_KEY"),
            connector_mode=mode,
            upstream_timeout_s=_float(env, "KNOWREPLY_UPSTREAM_TIMEOUT_S", cls.upstream_timeout_s),
            endpoint_path=path.rstrip("/") or "/mcp",
            ws_host=env.get("KNOWREPLY_WS_HOST") or cls.ws_host,
            ws_port=_int(env, "KNOWREPLY_WS_PORT", cls.ws_port),
            log_level=(env.get("KNOWREPLY_LOG_LEVEL") or cls.log_level).upper(),
        )

    @property
    def api_key_status(self) -> str:
        return "Loaded" if self.internal_api_key else "Not Loaded"


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Route package logs to stderr; stdout stays reserved for protocol traffic.
    Idempotent: a second call only updates the level.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(settings.log_level)
    if not any(getattr(h, "_knowreply", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s"))
        handler._knowreply = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
