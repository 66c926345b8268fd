from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from .durations import DurationError, parse_duration
from .errors import ConfigError

ENV_PREFIX = "HOUSEKEEPER_"

_TRUE = ("1", "true", "yes", "y", "on")
_FALSE = ("0", "false", "no", "n", "off", "")


def _truthy(name: str, v: str) -> bool:
    s = str(v).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {v!r}")


def _duration(name: str, v: str) -> timedelta:
    try:
        return parse_duration(v)
    except DurationError as e:
        raise ConfigError(f"{name}: {e}") from e


@dataclass(frozen=True)
class Config:
    interval: timedelta = timedelta(seconds=30)
    dry_run: bool = False
    once: bool = False
    debug: bool = False
    # Listing errors kill the process unless this is turned off.
    exit_on_error: bool = True
    tag_prefix: str = "housekeeper/"
    host: str = "0.0.0.0"
    port: int = 8080
    http_timeout: timedelta = timedelta(seconds=10)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Build the config from HOUSEKEEPER_* variables.

        Nomad address and token are not read here; the client picks up the
        standard NOMAD_* variables itself.
        """
        env = os.environ if environ is None else environ

        def get(key: str, default: str) -> str:
            return env.get(ENV_PREFIX + key, default)

        interval = _duration(ENV_PREFIX + "INTERVAL", get("INTERVAL", "30s"))
        if interval <= timedelta(0):
            raise ConfigError(f"{ENV_PREFIX}INTERVAL must be positive, got {get('INTERVAL', '')!r}")

        http_timeout = _duration(ENV_PREFIX + "HTTP_TIMEOUT", get("HTTP_TIMEOUT", "10s"))
        if http_timeout <= timedelta(0):
            raise ConfigError(f"{ENV_PREFIX}HTTP_TIMEOUT must be positive")

        port_raw = get("PORT", "8080")
        try:
            port = int(port_raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}PORT: expected an integer, got {port_raw!r}") from e
        if not 0 < port < 65536:
            raise ConfigError(f"{ENV_PREFIX}PORT out of range: {port}")

        return cls(
            interval=interval,
            dry_run=_truthy(ENV_PREFIX + "DRY_RUN", get("DRY_RUN", "0")),
            once=_truthy(ENV_PREFIX + "ONCE", get("ONCE", "0")),
            debug=_truthy(ENV_PREFIX + "DEBUG", get("DEBUG", "0")),
            exit_on_error=_truthy(ENV_PREFIX + "EXIT_ON_ERROR", get("EXIT_ON_ERROR", "1")),
            tag_prefix=get("TAG_PREFIX", "housekeeper/"),
            host=get("HOST", "0.0.0.0"),
            port=port,
            http_timeout=http_timeout,
        )
