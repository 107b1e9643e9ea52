"""Summary statistics for SIR runs.

Epidemic summaries (peak, final size, duration), posterior summaries for
sampled parameters, ensemble bands for stochastic replicates, and timing
summaries for benchmarks."""


from typing import Dict, Optional, Sequence

import numpy as np
import peakutils as pk


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.mean(np.abs(np.asarray(y_true) - np.asarray(y_pred))))


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.sqrt(np.mean((np.asarray(y_true) - np.asarray(y_pred)) ** 2)))


def epidemic_summary(
    t: np.ndarray, S: np.ndarray, I: np.ndarray, R: np.ndarray
) -> Dict[str, object]:
    """Peak, final size and duration of one trajectory."""
    t = np.asarray(t, dtype=float)
    S, I, R = (np.asarray(x, dtype=float) for x in (S, I, R))
    N = S[0] + I[0] + R[0]
    peak_idx = int(np.argmax(I))
    # peakutils thres is relative to the range of I; monotone curves have no interior peak.
    peaks = pk.indexes(I, thres=0.5) if np.ptp(I) > 0 else np.array([], dtype=int)
    if len(peaks) == 0:
        peaks = np.array([peak_idx])

    # Duration runs until I first drops below 1% of its peak after the peak.
    threshold = 0.01 * I[peak_idx]
    below = np.flatnonzero(I[peak_idx:] < threshold)
    if below.size > 0:
        duration = t[peak_idx + below[0]] - t[0]
    else:
        duration = t[-1] - t[0]

    return {
        "peak_time": float(t[peak_idx]),
        "peak_infected": float(I[peak_idx]),
        "peak_indices": [int(i) for i in peaks],
        "final_size": float(R[-1] / N),
        "attack_rate": float((N - S[-1]) / N),
        "duration": float(duration),
    }


def weighted_quantile(
    x: np.ndarray, q: Sequence[float], weights: Optional[np.ndarray] = None
) -> np.ndarray:
    """Quantiles of x under optional non-negative weights."""
    x = np.asarray(x, dtype=float)
    q = np.asarray(q, dtype=float)
    if weights is None:
        return np.quantile(x, q)
    w = np.asarray(weights, dtype=float)
    if w.shape != x.shape:
        raise ValueError("weights must have the same shape as x")
    order = np.argsort(x)
    x, w = x[order], w[order]
    # Midpoint rule so equal weights reproduce the usual empirical quantiles.
    cw = np.cumsum(w) - 0.5 * w
    cw /= np.sum(w)
    return np.interp(q, cw, x)


def posterior_summary(
    samples: np.ndarray,
    weights: Optional[np.ndarray] = None,
    truth: Optional[float] = None,
) -> Dict[str, float]:
    """Mean, sd and 95% interval of a (possibly weighted) sample."""
    samples = np.asarray(samples, dtype=float)
    if samples.size == 0:
        raise ValueError("samples must not be empty")
    if weights is None:
        w = np.full(samples.shape, 1.0 / samples.size)
    else:
        w = np.asarray(weights, dtype=float)
        w = w / np.sum(w)
    mean = float(np.sum(w * samples))
    sd = float(np.sqrt(np.sum(w * (samples - mean) ** 2)))
    q025, q50, q975 = weighted_quantile(samples, [0.025, 0.5, 0.975], weights)
    out = {"mean": mean, "sd": sd, "q025": float(q025), "median": float(q50), "q975": float(q975)}
    if truth is not None:
        out["truth"] = float(truth)
        out["abs_error"] = abs(mean - float(truth))
        out["covered"] = float(q025 <= truth <= q975)
    return out


def stack_on_grid(solutions: Sequence[object], grid: np.ndarray) -> np.ndarray:
    """Sample each piecewise-constant path at grid; shape (n_rep, T, n_states)."""
    return np.stack([np.asarray(sol.at(grid), dtype=float) for sol in solutions])


def ensemble_summary(
    values: np.ndarray, quantiles: Sequence[float] = (0.05, 0.95)
) -> Dict[str, np.ndarray]:
    """Mean, median and quantile band across replicates (axis 0)."""
    values = np.asarray(values, dtype=float)
    if values.ndim < 2:
        raise ValueError("values must have a replicate axis and a time axis")
    lower, upper = np.quantile(values, quantiles, axis=0)
    return {
        "mean": values.mean(axis=0),
        "median": np.median(values, axis=0),
        "lower": lower,
        "upper": upper,
    }


def timing_summary(times: np.ndarray) -> Dict[str, float]:
    """Summarize timings (seconds)."""
    times = np.asarray(times, dtype=float)
    if times.size == 0:
        # Keep the schema stable when there are no samples.
        return {"time_min": 0.0, "time_p50": 0.0, "time_mean": 0.0, "time_p90": 0.0, "time_max": 0.0}
    return {
        "time_min": float(np.min(times)),
        "time_p50": float(np.percentile(times, 50)),
        "time_mean": float(np.mean(times)),
        "time_p90": float(np.percentile(times, 90)),
        "time_max": float(np.max(times)),
    }
