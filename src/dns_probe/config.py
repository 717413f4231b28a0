from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

# Probe settings
PROBE_INTERVAL_SECONDS = 0.05  # pause between two attempts
PROBE_TIMEOUT_SECONDS = 5.0  # resolver gives up after this long
SLOW_THRESHOLD_SECONDS = 5.0  # attempts slower than this are SLOW

# History retention
MAX_HISTORY_WINDOW_SECONDS = 5 * 60
MAX_RECORDS = 10_000  # cap on records kept for percentiles

# Dashboard
TOP_N = 5
RECENT_DURATIONS = 5
PERCENTILES = (50, 75, 90, 95, 99, 99.9)
BAR_WIDTH = 40
BAR_GLYPH = "█"
UI_REFRESH_INTERVAL = 0.25

# Logging
LOG_FILE = "dns_results.log"
LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_AGE_DAYS = 90

# Resolver strategies
RESOLVER_LIBRARY = "library"
RESOLVER_COMMAND = "command"
RESOLVERS = (RESOLVER_LIBRARY, RESOLVER_COMMAND)
LOOKUP_COMMAND = "dig"

# Emoji/status mapping
EMOJI_SUCCESS = "✅"
EMOJI_SLOW = "🐢"
EMOJI_FAILURE = "❌"

ENV_HOSTNAME = "DNS_HOSTNAME"
ENV_RESOLVER = "DNS_PROBE_RESOLVER"
ENV_LOG_FILE = "DNS_PROBE_LOG_FILE"
ENV_INTERVAL = "DNS_PROBE_INTERVAL"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    hostname: str
    resolver: str = RESOLVER_LIBRARY
    log_file: str = LOG_FILE
    interval: float = PROBE_INTERVAL_SECONDS


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    """Build the runtime settings from environment variables.

    Only DNS_HOSTNAME is required; the rest fall back to the constants above.
    """
    hostname = environ.get(ENV_HOSTNAME, "").strip()
    if not hostname:
        raise ConfigError(f"Environment variable {ENV_HOSTNAME} is not set.")

    resolver = environ.get(ENV_RESOLVER, RESOLVER_LIBRARY).strip().lower()
    if resolver not in RESOLVERS:
        raise ConfigError(
            f"{ENV_RESOLVER} must be one of {', '.join(RESOLVERS)} (got {resolver!r})"
        )

    raw_interval = environ.get(ENV_INTERVAL)
    interval = PROBE_INTERVAL_SECONDS
    if raw_interval:
        try:
            interval = float(raw_interval)
        except ValueError:
            raise ConfigError(f"{ENV_INTERVAL} is not a number: {raw_interval!r}")
        if interval < 0:
            raise ConfigError(f"{ENV_INTERVAL} must not be negative")

    return Settings(
        hostname=hostname,
        resolver=resolver,
        log_file=environ.get(ENV_LOG_FILE) or LOG_FILE,
        interval=interval,
    )
