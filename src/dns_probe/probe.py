from __future__ import annotations

import asyncio
import contextlib
import enum
import ipaddress
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence, Tuple

import dns.asyncresolver
import dns.exception
import dns.resolver

from . import config

NO_ADDRESSES_ERROR = "no addresses returned"


class OutcomeKind(enum.Enum):
    SUCCESS = "OK"
    SLOW = "SLOW"
    FAILURE = "FAIL"


@dataclass(frozen=True)
class ProbeOutcome:
    """One classified resolution attempt."""

    timestamp: float
    duration: float
    kind: OutcomeKind
    addresses: Tuple[str, ...] = ()
    error: Optional[str] = None

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"duration must not be negative: {self.duration}")
        failed = self.kind is OutcomeKind.FAILURE
        if failed != (self.error is not None) or failed != (not self.addresses):
            raise ValueError(
                f"inconsistent outcome: kind={self.kind.name} "
                f"addresses={self.addresses!r} error={self.error!r}"
            )

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000.0


@dataclass(frozen=True)
class Resolution:
    addresses: Tuple[str, ...]
    duration: float
    error: Optional[str] = None


class Resolver(Protocol):
    async def resolve(self, hostname: str) -> Resolution: ...


def classify(duration: float, error: Optional[str]) -> OutcomeKind:
    if error is not None:
        return OutcomeKind.FAILURE
    if duration > config.SLOW_THRESHOLD_SECONDS:
        return OutcomeKind.SLOW
    return OutcomeKind.SUCCESS


class LibraryResolver:
    """Resolve A and AAAA records with dnspython's async resolver."""

    RDTYPES = ("A", "AAAA")

    def __init__(self, timeout: float = config.PROBE_TIMEOUT_SECONDS, resolver=None):
        self.timeout = timeout
        self._resolver = resolver or dns.asyncresolver.Resolver()

    async def resolve(self, hostname: str) -> Resolution:
        start = time.monotonic()
        deadline = start + self.timeout
        addresses: list[str] = []
        error: Optional[str] = None
        for rdtype in self.RDTYPES:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                error = error or f"timed out after {self.timeout:g}s"
                break
            try:
                answer = await self._resolver.resolve(
                    hostname, rdtype, lifetime=remaining
                )
            except dns.resolver.NXDOMAIN as exc:
                # the name does not exist, AAAA will not help
                error = str(exc)
                break
            except dns.exception.DNSException as exc:
                error = error or str(exc) or type(exc).__name__
                continue
            addresses.extend(rdata.to_text() for rdata in answer)
        duration = time.monotonic() - start
        if addresses:
            return Resolution(tuple(addresses), duration, None)
        return Resolution((), duration, error or NO_ADDRESSES_ERROR)


class CommandResolver:
    """Resolve through an external lookup command (``dig +short``)."""

    def __init__(
        self,
        timeout: float = config.PROBE_TIMEOUT_SECONDS,
        command: str = config.LOOKUP_COMMAND,
    ):
        self.timeout = timeout
        self.command = command

    def build_args(self, hostname: str) -> list[str]:
        return [
            self.command,
            "+short",
            f"+time={max(1, math.ceil(self.timeout))}",
            "+tries=1",
            hostname,
            "A",
            hostname,
            "AAAA",
        ]

    async def resolve(self, hostname: str) -> Resolution:
        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.build_args(hostname),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            return Resolution((), time.monotonic() - start, f"{self.command}: {exc}")
        try:
            out_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout + 0.5
            )
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            return Resolution(
                (), time.monotonic() - start, f"timed out after {self.timeout:g}s"
            )
        duration = time.monotonic() - start

        output = out_bytes[0].decode(errors="replace")
        addresses = parse_addresses(output.splitlines())
        if proc.returncode != 0:
            return Resolution((), duration, _command_error(output, proc.returncode))
        if not addresses:
            return Resolution((), duration, NO_ADDRESSES_ERROR)
        return Resolution(addresses, duration, None)


def parse_addresses(lines: Sequence[str]) -> Tuple[str, ...]:
    """Pick the IP addresses out of ``dig +short`` output, skipping CNAMEs and comments."""
    found = []
    for line in lines:
        candidate = line.strip()
        if not candidate or candidate.startswith(";"):
            continue
        try:
            found.append(str(ipaddress.ip_address(candidate)))
        except ValueError:
            continue
    return tuple(found)


def _command_error(output: str, returncode: Optional[int]) -> str:
    for line in output.splitlines():
        line = line.strip().lstrip(";").strip()
        if line:
            return line
    return f"exit status {returncode}"


def make_resolver(name: str, timeout: float = config.PROBE_TIMEOUT_SECONDS) -> Resolver:
    if name == config.RESOLVER_LIBRARY:
        return LibraryResolver(timeout)
    if name == config.RESOLVER_COMMAND:
        return CommandResolver(timeout)
    raise ValueError(f"unknown resolver strategy: {name!r}")


async def probe_once(
    resolver: Resolver, hostname: str, clock: Callable[[], float] = time.time
) -> ProbeOutcome:
    """Run one resolution and turn it into a classified outcome."""
    result = await resolver.resolve(hostname)
    error = result.error
    addresses: Tuple[str, ...] = tuple(result.addresses)
    if error is not None:
        addresses = ()
    elif not addresses:
        error = NO_ADDRESSES_ERROR
    duration = max(0.0, result.duration)
    return ProbeOutcome(
        timestamp=clock(),
        duration=duration,
        kind=classify(duration, error),
        addresses=addresses,
        error=error,
    )
