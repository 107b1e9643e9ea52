import time

import pytest

from src.epirecipes.benchmark import benchmark


def test_benchmark_counts_calls():
    calls = []

    def work():
        calls.append(1)

    result = benchmark(work, n_samples=5, warmup=2)
    assert len(calls) == 7
    assert result.times.size == 5
    assert result.name == "work"
    summary = result.summary()
    assert summary["n_samples"] == 5
    assert summary["time_min"] <= summary["time_p50"] <= summary["time_max"]
    assert str(result).startswith("work: 5 samples")


def test_benchmark_time_budget():
    result = benchmark(lambda: time.sleep(0.01), n_samples=1000, warmup=0, max_seconds=0.05, name="sleep")
    assert 1 <= result.times.size < 1000
    assert result.name == "sleep"


def test_benchmark_argument_errors():
    with pytest.raises(ValueError):
        benchmark(lambda: None, n_samples=0)
    with pytest.raises(ValueError):
        benchmark(lambda: None, warmup=-1)
