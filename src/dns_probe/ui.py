from __future__ import annotations

import time
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Group
from rich.table import Table
from rich.text import Text

from . import config
from .probe import OutcomeKind, ProbeOutcome
from .stats import ProbeMonitor

RESULT_LABELS = {
    OutcomeKind.SUCCESS: f"{config.EMOJI_SUCCESS} SUCCESS",
    OutcomeKind.SLOW: f"{config.EMOJI_SLOW} SLOW",
    OutcomeKind.FAILURE: f"{config.EMOJI_FAILURE} FAIL",
}


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    elif seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    else:
        return f"{seconds / 86400:.1f}d"


def format_probe_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    return f"{seconds:.3f}s"


def format_clock(ts: float) -> str:
    dt = datetime.fromtimestamp(ts)
    return f"{dt.strftime('%H:%M:%S')}.{dt.microsecond // 1000:03d}"


def describe_result(outcome: ProbeOutcome) -> str:
    label = RESULT_LABELS[outcome.kind]
    if outcome.kind is OutcomeKind.FAILURE:
        return f"{label} ({outcome.error})"
    return label


def _section() -> Table:
    table = Table(
        box=box.SIMPLE,
        show_header=False,
        pad_edge=False,
    )
    table.add_column(style="bold")
    table.add_column()
    return table


def _titled(title: str, table: Table) -> Group:
    # titles live outside the table so narrow tables do not wrap them
    return Group(Text(title, style="bold", no_wrap=True), table)


def build_counters(monitor: ProbeMonitor) -> Group:
    title = "Counters"
    table = _section()
    table.add_row(f"{config.EMOJI_SUCCESS} Successes", str(monitor.success_count))
    table.add_row(f"{config.EMOJI_SLOW} Slow Responses", str(monitor.slow_count))
    table.add_row(f"{config.EMOJI_FAILURE} Failures", str(monitor.failure_count))
    return _titled(title, table)


def build_last_attempt(monitor: ProbeMonitor) -> Group:
    title = "📊 Last Attempt"
    table = _section()
    last = monitor.last_outcome
    if last is None:
        table.add_row("Result", "-")
        return _titled(title, table)
    table.add_row("Result", describe_result(last))
    table.add_row("Duration", format_probe_duration(last.duration))
    if monitor.last_addresses:
        table.add_row("Resolved IPs", ", ".join(monitor.last_addresses))
    return _titled(title, table)


def build_recent_durations(monitor: ProbeMonitor) -> Group:
    title = f"🧮 Last {config.RECENT_DURATIONS} Durations"
    table = _section()
    for i, d in enumerate(monitor.recent_durations, start=1):
        table.add_row(f"{i}.", format_probe_duration(d))
    return _titled(title, table)


def build_top_slowest(monitor: ProbeMonitor) -> Group:
    minutes = monitor.history.max_age / 60
    title = f"⏱️  Top {config.TOP_N} Slowest in Last {minutes:g} Minutes"
    table = _section()
    for i, r in enumerate(monitor.top_slowest(), start=1):
        table.add_row(
            f"{i}.", f"{format_clock(r.timestamp)} - {format_probe_duration(r.duration)}"
        )
    return _titled(title, table)


def build_percentiles(monitor: ProbeMonitor) -> Group:
    title = f"📈 Duration Percentiles (Last {monitor.history.max_records:,} Records)"
    table = _section()
    report = monitor.percentile_report()
    if report.message:
        table.add_row(f"({report.message})", "")
        return _titled(title, table)
    for row in report.rows:
        table.add_row(row.label, f"│ {row.bar} {row.rounded_ms}ms")
    return _titled(title, table)


def build_dashboard(
    monitor: ProbeMonitor, hostname: str, now: Optional[float] = None
) -> Group:
    now = time.time() if now is None else now
    header = Text.assemble(
        ("📡 DNS Monitor\n", "bold"),
        f"🌐 Resolving Hostname: {hostname}\n",
        f"⏱️  Uptime: {format_duration(monitor.uptime(now))}",
    )
    return Group(
        header,
        build_counters(monitor),
        build_last_attempt(monitor),
        build_recent_durations(monitor),
        build_top_slowest(monitor),
        build_percentiles(monitor),
        Text("(Press Ctrl+C to stop)", style="dim"),
    )
