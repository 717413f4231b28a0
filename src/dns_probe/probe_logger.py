from __future__ import annotations

import os
import time
from datetime import datetime
from typing import TextIO

from . import config
from .probe import OutcomeKind, ProbeOutcome
from .ui import format_probe_duration


def format_log_timestamp(ts: float) -> str:
    dt = datetime.fromtimestamp(ts)
    return f"{dt.strftime(config.LOG_TIME_FORMAT)}.{dt.microsecond // 1000:03d}"


def format_log_line(outcome: ProbeOutcome) -> str:
    ts_str = format_log_timestamp(outcome.timestamp)
    took = format_probe_duration(outcome.duration)
    if outcome.kind is OutcomeKind.FAILURE:
        detail = f"Error: {outcome.error}"
    else:
        detail = f"IPs: [{' '.join(outcome.addresses)}]"
    return f"[{ts_str}] {outcome.kind.value} - {detail} - Time: {took}\n"


class ProbeLogger:
    """Append-only audit log, one line per probe attempt."""

    def __init__(self, path: str, max_age_days: float = config.LOG_MAX_AGE_DAYS):
        self.path = path
        self.max_age_days = max_age_days

    def _open(self) -> TextIO:
        self._maybe_rotate_log()
        return open(self.path, "a", encoding="utf-8")

    def ensure_writable(self):
        """Open the log once up front so a bad path fails before the dashboard starts."""
        try:
            with self._open():
                pass
        except OSError as exc:
            raise config.ConfigError(f"Failed to open log file {self.path}: {exc}") from exc

    def log_probe(self, outcome: ProbeOutcome):
        with self._open() as f:
            f.write(format_log_line(outcome))

    def _maybe_rotate_log(self):
        # Rotate if the file was last written more than max_age_days ago
        try:
            last_mod_time = os.path.getmtime(self.path)
        except FileNotFoundError:
            return  # nothing written yet
        if time.time() - last_mod_time > self.max_age_days * 24 * 60 * 60:
            new_name = (
                self.path
                + "."
                + datetime.fromtimestamp(last_mod_time).strftime("%Y%m%d%H%M%S")
            )
            os.rename(self.path, new_name)
