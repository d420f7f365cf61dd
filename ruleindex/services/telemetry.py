from __future__ import annotations

import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque


@dataclass(frozen=True)
class OperationSample:
    ts: float
    index: str
    operation: str
    latency_ms: float
    success: bool


_operation_samples: Deque[OperationSample] = deque(maxlen=10000)
_counters: dict[str, int] = defaultdict(int)


def increment_counter(name: str, value: int = 1) -> None:
    _counters[name] += value


def record_operation(*, index: str, operation: str, latency_ms: float, success: bool) -> None:
    # Track per-operation latency so slow refreshes are visible to operators.
    _operation_samples.append(
        OperationSample(
            ts=time.time(),
            index=index,
            operation=operation,
            latency_ms=latency_ms,
            success=success,
        )
    )


def _percentile(latencies: list[float], pct: float) -> float:
    idx = max(0, math.ceil(pct * len(latencies)) - 1)
    return latencies[idx]


def operation_latency_stats(window_s: int, *, index: str | None = None) -> dict[str, dict[str, float | None]]:
    cutoff = time.time() - window_s
    grouped: dict[str, list[float]] = defaultdict(list)
    for sample in _operation_samples:
        if sample.ts < cutoff:
            continue
        if index is not None and sample.index != index:
            continue
        grouped[sample.operation].append(sample.latency_ms)
    result: dict[str, dict[str, float | None]] = {}
    for operation, values in grouped.items():
        latencies = sorted(values)
        result[operation] = {
            "p50": _percentile(latencies, 0.50),
            "p95": _percentile(latencies, 0.95),
            "max": latencies[-1],
        }
    return result


def counters_snapshot() -> dict[str, int]:
    return dict(_counters)


def reset_telemetry() -> None:
    # Test isolation only.
    _operation_samples.clear()
    _counters.clear()
