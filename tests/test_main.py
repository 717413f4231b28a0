import asyncio

import pytest

from dns_probe import config
from dns_probe.main import main, main_async, probe_loop
from dns_probe.probe import OutcomeKind, Resolution
from dns_probe.probe_logger import ProbeLogger
from dns_probe.stats import ProbeMonitor


class CountingResolver:
    """Answers a fixed script, then asks the loop to stop."""

    def __init__(self, script, stop_event):
        self.script = list(script)
        self.stop_event = stop_event
        self.in_flight = 0
        self.max_in_flight = 0

    async def resolve(self, hostname):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        result = self.script.pop(0)
        if not self.script:
            self.stop_event.set()
        return result


class DummyLive:
    def __init__(self):
        self.updates = []

    def update(self, renderable):
        self.updates.append(renderable)


class DummyLogger(ProbeLogger):
    def __init__(self):
        self.logged = []

    def log_probe(self, outcome):  # type: ignore[override]
        self.logged.append(outcome)


def test_probe_loop_records_every_attempt():
    async def run():
        stop_event = asyncio.Event()
        resolver = CountingResolver(
            [
                Resolution(("192.0.2.1",), 0.01),
                Resolution((), 0.02, "NXDOMAIN"),
                Resolution(("192.0.2.1",), 6.0),
            ],
            stop_event,
        )
        monitor = ProbeMonitor()
        logger = DummyLogger()
        live = DummyLive()
        await probe_loop(resolver, "example.com", monitor, logger, live, stop_event, 0)
        return resolver, monitor, logger, live

    resolver, monitor, logger, live = asyncio.run(run())
    assert [o.kind for o in logger.logged] == [
        OutcomeKind.SUCCESS,
        OutcomeKind.FAILURE,
        OutcomeKind.SLOW,
    ]
    assert (monitor.success_count, monitor.slow_count, monitor.failure_count) == (1, 1, 1)
    assert len(live.updates) == 3
    assert resolver.max_in_flight == 1


def test_main_exits_without_hostname(monkeypatch):
    monkeypatch.delenv("DNS_HOSTNAME", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 1


def test_main_exits_when_log_file_cannot_be_opened(monkeypatch, tmp_path):
    monkeypatch.setenv("DNS_HOSTNAME", "example.com")
    monkeypatch.setenv("DNS_PROBE_LOG_FILE", str(tmp_path / "missing-dir" / "dns.log"))

    def fail_make_resolver(*args, **kwargs):
        raise AssertionError("resolver should not be built")

    monkeypatch.setattr("dns_probe.main.make_resolver", fail_make_resolver)
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 1


def test_unwritable_log_fails_before_dashboard(tmp_path):
    settings = config.Settings(
        hostname="example.com", log_file=str(tmp_path / "missing-dir" / "dns.log")
    )
    with pytest.raises(config.ConfigError):
        asyncio.run(main_async(settings))


def test_ensure_writable_creates_log(tmp_path):
    path = tmp_path / "dns.log"
    ProbeLogger(str(path)).ensure_writable()
    assert path.exists()
