from __future__ import annotations

import asyncio
import signal
import sys
import time

from rich.console import Console
from rich.live import Live

from . import config
from .probe import Resolver, make_resolver, probe_once
from .probe_logger import ProbeLogger
from .stats import ProbeMonitor
from .ui import build_dashboard

console = Console()


async def probe_loop(
    resolver: Resolver,
    hostname: str,
    monitor: ProbeMonitor,
    probe_logger: ProbeLogger,
    live: Live,
    stop_event: asyncio.Event,
    interval: float = config.PROBE_INTERVAL_SECONDS,
):
    """Probe, record, redraw, sleep. Exactly one probe in flight at a time."""
    while not stop_event.is_set():
        outcome = await probe_once(resolver, hostname)
        probe_logger.log_probe(outcome)
        monitor.record(outcome)
        live.update(build_dashboard(monitor, hostname, time.time()))
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def main_async(settings: config.Settings):
    """The main asynchronous entry point of the application."""
    stop_event = asyncio.Event()
    monitor = ProbeMonitor()
    probe_logger = ProbeLogger(settings.log_file)
    probe_logger.ensure_writable()
    resolver = make_resolver(settings.resolver, config.PROBE_TIMEOUT_SECONDS)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:  # Windows
            signal.signal(sig, lambda s, f: _signal_handler())

    console.print(f"🔍 Starting DNS probe for hostname: {settings.hostname}")
    with Live(
        build_dashboard(monitor, settings.hostname),
        refresh_per_second=int(1 / config.UI_REFRESH_INTERVAL),
        console=console,
        screen=False,
    ) as live:
        await probe_loop(
            resolver,
            settings.hostname,
            monitor,
            probe_logger,
            live,
            stop_event,
            settings.interval,
        )

    console.print(
        f"\nSummary: {settings.hostname}: success={monitor.success_count} "
        f"slow={monitor.slow_count} fail={monitor.failure_count}"
    )


def main():
    try:
        settings = config.load_settings()
    except config.ConfigError as exc:
        console.print(f"{config.EMOJI_FAILURE} {exc}")
        sys.exit(1)
    try:
        asyncio.run(main_async(settings))
    except config.ConfigError as exc:
        console.print(f"{config.EMOJI_FAILURE} {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":  # pragma: no cover
    main()
