from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from . import config
from .probe import OutcomeKind, ProbeOutcome

NO_DATA_MESSAGE = "no data yet"


class HistoryStore:
    """Recent outcomes, oldest first, bounded by count and by age."""

    def __init__(
        self,
        max_records: int = config.MAX_RECORDS,
        max_age: float = config.MAX_HISTORY_WINDOW_SECONDS,
    ):
        self.max_records = max_records
        self.max_age = max_age
        self.last_cleanup: Optional[float] = None
        self._records: Deque[ProbeOutcome] = deque()

    def __len__(self) -> int:
        return len(self._records)

    def append(self, outcome: ProbeOutcome):
        self._records.append(outcome)

    def evict_expired_and_excess(self, now: float):
        # Size first so the age scan never walks more than max_records entries.
        while len(self._records) > self.max_records:
            self._records.popleft()
        cutoff = now - self.max_age
        # Timestamps are not guaranteed to be monotonic, so filter instead of
        # popping from the left only.
        if any(r.timestamp < cutoff for r in self._records):
            self._records = deque(r for r in self._records if r.timestamp >= cutoff)
        self.last_cleanup = now

    def snapshot(self) -> Tuple[ProbeOutcome, ...]:
        return tuple(self._records)


def top_slowest(
    snapshot: Iterable[ProbeOutcome],
    k: int = config.TOP_N,
    now: Optional[float] = None,
    window: float = config.MAX_HISTORY_WINDOW_SECONDS,
) -> List[ProbeOutcome]:
    """Return up to ``k`` outcomes with the longest duration.

    When ``now`` is given only outcomes at most ``window`` seconds old are
    considered. Equal durations keep their chronological order.
    """
    records = list(snapshot)
    if now is not None:
        cutoff = now - window
        records = [r for r in records if r.timestamp >= cutoff]
    records.sort(key=lambda r: r.duration, reverse=True)
    return records[: max(k, 0)]


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of an ascending sequence, 0 when empty."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    rank = p / 100 * (n - 1)
    lo = int(math.floor(rank))
    frac = rank - lo
    if lo + 1 >= n:
        return float(sorted_values[lo])
    a, b = sorted_values[lo], sorted_values[lo + 1]
    # clamp so equal neighbours give back exactly that value
    return float(min(max(a + (b - a) * frac, a), b))


def build_bar(value: float, max_value: float, width: int = config.BAR_WIDTH) -> str:
    if max_value <= 0:
        return ""
    length = int(math.floor(value / max_value * width + 0.5))
    return config.BAR_GLYPH + config.BAR_GLYPH * max(length, 0)


def percentile_label(p: float) -> str:
    return f"P{p:g}"


@dataclass(frozen=True)
class PercentileRow:
    label: str
    percentile: float
    value_ms: float
    bar: str

    @property
    def rounded_ms(self) -> int:
        return int(round(self.value_ms))


@dataclass(frozen=True)
class PercentileReport:
    rows: Tuple[PercentileRow, ...] = ()
    sample_count: int = 0

    @property
    def message(self) -> Optional[str]:
        return None if self.rows else NO_DATA_MESSAGE


def compute_percentile_report(
    snapshot: Iterable[ProbeOutcome],
    percentiles: Sequence[float] = config.PERCENTILES,
) -> PercentileReport:
    durations = sorted(r.duration_ms for r in snapshot)
    if not durations:
        return PercentileReport()
    max_value = durations[-1]
    rows = []
    for p in percentiles:
        value = percentile(durations, p)
        rows.append(
            PercentileRow(
                label=percentile_label(p),
                percentile=p,
                value_ms=value,
                bar=build_bar(value, max_value),
            )
        )
    return PercentileReport(rows=tuple(rows), sample_count=len(durations))


@dataclass
class ProbeMonitor:
    """Everything the dashboard shows for one probed hostname."""

    history: HistoryStore = field(default_factory=HistoryStore)
    success_count: int = 0
    slow_count: int = 0
    failure_count: int = 0
    recent_durations: Deque[float] = field(
        default_factory=lambda: deque(maxlen=config.RECENT_DURATIONS)
    )
    last_outcome: Optional[ProbeOutcome] = None
    last_addresses: Tuple[str, ...] = ()  # survives failures, like the dashboard shows it
    started_at: float = field(default_factory=time.time)

    def record(self, outcome: ProbeOutcome, now: Optional[float] = None):
        if outcome.kind is OutcomeKind.FAILURE:
            self.failure_count += 1
        elif outcome.kind is OutcomeKind.SLOW:
            self.slow_count += 1
        else:
            self.success_count += 1
        if outcome.addresses:
            self.last_addresses = outcome.addresses
        self.last_outcome = outcome

        self.history.append(outcome)
        self.history.evict_expired_and_excess(
            outcome.timestamp if now is None else now
        )
        self.recent_durations.append(outcome.duration)

    @property
    def total_count(self) -> int:
        return self.success_count + self.slow_count + self.failure_count

    def top_slowest(self, k: int = config.TOP_N) -> List[ProbeOutcome]:
        # Same instant the store was last cleaned up with, so both windows agree.
        return top_slowest(
            self.history.snapshot(),
            k,
            now=self.history.last_cleanup,
            window=self.history.max_age,
        )

    def percentile_report(self) -> PercentileReport:
        return compute_percentile_report(self.history.snapshot())

    def uptime(self, now: Optional[float] = None) -> float:
        now = time.time() if now is None else now
        return max(0.0, now - self.started_at)
