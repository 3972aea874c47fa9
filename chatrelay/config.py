from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

from .constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ENV_HOST,
    ENV_LOG_FILE,
    ENV_LOG_LEVEL,
    MAX_HANDSHAKE_ATTEMPTS,
)


@dataclass(frozen=True)
class RelayRuntimeConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    backlog: int = 50
    max_handshake_attempts: int = MAX_HANDSHAKE_ATTEMPTS
    accept_poll_s: float = 0.5
    encoding: str = "utf-8"
    max_line_chars: int = 8192
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


def apply_environment(
    cfg: RelayRuntimeConfig, environ: Mapping[str, str] | None = None
) -> RelayRuntimeConfig:
    """Overlay CHATRELAY_* environment variables onto `cfg`.

    Blank values are ignored, except CHATRELAY_LOG_FILE where an empty
    string explicitly disables file logging.
    """
    env = os.environ if environ is None else environ
    updates: dict[str, object] = {}

    host = env.get(ENV_HOST)
    if host is not None and host.strip():
        updates["host"] = host.strip()

    level = env.get(ENV_LOG_LEVEL)
    if level is not None and level.strip():
        updates["log_level"] = level.strip()

    if ENV_LOG_FILE in env:
        log_file = env[ENV_LOG_FILE].strip()
        updates["log_file"] = log_file or None

    return replace(cfg, **updates) if updates else cfg
