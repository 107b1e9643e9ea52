"""Micro-benchmarks for solver calls.

Times repeated calls of a zero-argument function with perf_counter and
reports the same timing summary used elsewhere in run metrics.
"""


from dataclasses import dataclass
import logging
import time
from typing import Callable, Dict, Optional

import numpy as np

from .metrics import timing_summary

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkResult:
    times: np.ndarray
    name: str = "benchmark"

    def summary(self) -> Dict[str, float]:
        out = timing_summary(self.times)
        out["n_samples"] = int(self.times.size)
        return out

    def __str__(self) -> str:
        s = timing_summary(self.times)
        return (
            f"{self.name}: {self.times.size} samples, "
            f"min {s['time_min'] * 1e3:.3f} ms, median {s['time_p50'] * 1e3:.3f} ms, "
            f"mean {s['time_mean'] * 1e3:.3f} ms, max {s['time_max'] * 1e3:.3f} ms"
        )


def benchmark(
    fn: Callable[[], object],
    n_samples: int = 100,
    warmup: int = 1,
    max_seconds: Optional[float] = None,
    name: Optional[str] = None,
) -> BenchmarkResult:
    """Call fn repeatedly and record wall time per call.

    With max_seconds set, sampling stops once the budget is spent (always
    after at least one sample).
    """
    if n_samples < 1:
        raise ValueError("n_samples must be at least 1")
    if warmup < 0:
        raise ValueError("warmup must be non-negative")
    for _ in range(warmup):
        fn()

    times = []
    budget_start = time.perf_counter()
    for _ in range(n_samples):
        start = time.perf_counter()
        fn()
        times.append(time.perf_counter() - start)
        if max_seconds is not None and time.perf_counter() - budget_start >= max_seconds:
            break

    result = BenchmarkResult(times=np.asarray(times), name=name or getattr(fn, "__name__", "benchmark"))
    logger.info("%s", result)
    return result
