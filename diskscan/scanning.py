"""Scan modes, results, latency bookkeeping and the scan verdict."""

from __future__ import annotations

import base64
import enum
import json
import random
import zlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from .sense import SenseInfo

# Latencies are recorded in microseconds; the verdict limits use the same unit.
MAX_LATENCY_USEC = 10_000_000
PERCENTILE_LATENCY_USEC = 8_000_000
LATENCY_PERCENTILE = 99.99

_UINT32_MAX = 0xFFFFFFFF


class ScanMode(enum.Enum):
    """Order in which the disk is read."""

    SEQ = "seq"
    RANDOM = "random"


class Conclusion(enum.Enum):
    """Final verdict of a scan."""

    FAILED_IO_ERRORS = "failed_io_errors"
    FAILED_MAX_LATENCY = "failed_max_latency"
    FAILED_LATENCY_PERCENTILE = "failed_latency_percentile"
    PASSED = "passed"
    SCAN_PROBLEM = "scan_problem"
    ABORTED = "aborted"


_CONCLUSION_TEXT = {
    Conclusion.FAILED_IO_ERRORS: "failed due to IO errors",
    Conclusion.FAILED_MAX_LATENCY: "failed due to a high max latency",
    Conclusion.FAILED_LATENCY_PERCENTILE: "failed to to a high latency in the 99.99%'ile",
    Conclusion.PASSED: "passed",
    Conclusion.SCAN_PROBLEM: "scan_problem",
    Conclusion.ABORTED: "scan_aborted",
}


class ResultData(enum.Enum):
    """How much of the requested data an I/O returned."""

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class ResultError(enum.Enum):
    """Kind of error an I/O reported."""

    NONE = "none"
    CORRECTED = "corrected"
    UNCORRECTED = "uncorrected"
    NEED_RETRY = "need_retry"
    FATAL = "fatal"
    UNKNOWN = "unknown"


@dataclass
class IoResult:
    """Outcome of a single read or write on the device."""

    data: ResultData = ResultData.FULL
    error: ResultError = ResultError.NONE
    info: SenseInfo = field(default_factory=SenseInfo)
    sense: bytes = b""


@dataclass
class LatencyBucket:
    """Latency summary for one stretch of the disk."""

    start_sector: int = 0
    end_sector: int = 0
    latency_min_msec: int = _UINT32_MAX
    latency_max_msec: int = 0
    latency_median_msec: int = 0


class LatencyHistogram:
    """Counts of recorded latency values within a trackable range."""

    def __init__(self, lowest: int = 1, highest: int = 60 * 1000 * 1000, significant_figures: int = 3) -> None:
        if lowest < 1 or highest < 2 * lowest:
            raise ValueError("invalid histogram range")
        if not 1 <= significant_figures <= 5:
            raise ValueError("significant figures must be between 1 and 5")
        self.lowest = lowest
        self.highest = highest
        self.significant_figures = significant_figures
        self._counts: Counter[int] = Counter()
        self._total = 0

    def __len__(self) -> int:
        return self._total

    def record(self, value: int) -> bool:
        """Record one value; return False if it is out of the trackable range."""
        value = int(value)
        if value < 0 or value > self.highest:
            return False
        self._counts[value] += 1
        self._total += 1
        return True

    def max(self) -> int:
        """Largest recorded value, 0 when empty."""
        return max(self._counts, default=0)

    def value_at_percentile(self, percentile: float) -> int:
        """Smallest recorded value at or below which the given percentage lies."""
        if not self._total:
            return 0
        percentile = min(max(percentile, 0.0), 100.0)
        target = max(1, int(percentile / 100.0 * self._total + 0.5))
        cumulative = 0
        for value in sorted(self._counts):
            cumulative += self._counts[value]
            if cumulative >= target:
                return value
        return self.max()

    def encode(self) -> str:
        """Compact base64 text form of the histogram."""
        payload = {
            "lowest": self.lowest,
            "highest": self.highest,
            "significant_figures": self.significant_figures,
            "counts": [[value, self._counts[value]] for value in sorted(self._counts)],
        }
        raw = json.dumps(payload, separators=(",", ":")).encode("ascii")
        return base64.b64encode(zlib.compress(raw)).decode("ascii")


def parse_scan_mode(text: str) -> ScanMode:
    """Scan mode named by ``text``; raise ValueError for an unknown name."""
    name = text.lower()
    if name in ("seq", "sequential"):
        return ScanMode.SEQ
    if name == "random":
        return ScanMode.RANDOM
    raise ValueError(f"unknown scan mode {text!r}")


def conclusion_to_str(conclusion: Conclusion) -> str:
    """Human readable form of a conclusion."""
    return _CONCLUSION_TEXT.get(conclusion, "unknown")


def calc_latency_stride(num_bytes: int, sector_size: int, latency_graph_len: int) -> int:
    """Number of sectors covered by each latency bucket."""
    if sector_size <= 0 or latency_graph_len <= 0:
        raise ValueError("sector size and latency graph length must be positive")
    num_sectors = num_bytes // sector_size
    # One extra sector per bucket absorbs the remainder of the division.
    return num_sectors // latency_graph_len + 1


def calc_scan_order(
    mode: ScanMode,
    stride_size: int,
    read_size: int,
    sector_size: int,
    rng: random.Random | None = None,
) -> list[int]:
    """Byte offsets within a stride in the order they are to be read."""
    if sector_size <= 0:
        raise ValueError("sector size must be positive")
    read_size_sectors = read_size // sector_size
    if read_size_sectors <= 0:
        raise ValueError("read size must be at least one sector")
    if mode not in (ScanMode.SEQ, ScanMode.RANDOM):
        raise ValueError(f"unknown scan mode {mode!r}")

    num_reads = stride_size // read_size_sectors + 1
    step = read_size_sectors * sector_size
    order = [i * step for i in range(num_reads)]
    if mode is ScanMode.RANDOM:
        (rng if rng is not None else random.Random()).shuffle(order)
    return order


def median(values: Iterable[int]) -> int:
    """Median of integer values, 0 for no values."""
    ordered = sorted(values)
    if not ordered:
        return 0
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) // 2


def conclude(num_errors: int, histogram: LatencyHistogram) -> Conclusion:
    """Verdict from the error count and the latency histogram."""
    if num_errors > 0:
        return Conclusion.FAILED_IO_ERRORS
    if histogram.max() > MAX_LATENCY_USEC:
        return Conclusion.FAILED_MAX_LATENCY
    if histogram.value_at_percentile(LATENCY_PERCENTILE) > PERCENTILE_LATENCY_USEC:
        return Conclusion.FAILED_LATENCY_PERCENTILE
    return Conclusion.PASSED