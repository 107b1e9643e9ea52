"""Maximum likelihood and profile likelihood for the SIR ODE.

Simulates Poisson daily case counts from the ODE with known (i0, beta), fits
both parameters by multi-start optimization, profiles each one for a
chi-square confidence interval and evaluates the log-likelihood on a grid.
Writes config.json, metrics.csv, profiles.csv and figures under runs/.
Typical usage:
  python scripts/ode_likelihood.py --n-starts 10 --profile-points 41 --save-plots
"""


from __future__ import annotations

import argparse
from datetime import datetime
import logging
from pathlib import Path
import time

import numpy as np

from src.epirecipes.config import DEFAULTS, set_global_seed
from src.epirecipes.io import ensure_dir, save_csv, save_json
from src.epirecipes.likelihood import (
    DEFAULT_BOUNDS,
    PARAM_NAMES,
    fit_mle,
    loglik_surface,
    negative_loglik,
    profile_likelihood,
)
from src.epirecipes.logging_utils import log_config, setup_logging
from src.epirecipes.metrics import timing_summary
from src.epirecipes.model import SIRParams
from src.epirecipes.noise import simulate_case_data
from src.epirecipes.ode import daily_cases


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MLE, profile likelihood and likelihood surface for the SIR ODE.")
    parser.add_argument("--l", type=int, default=int(DEFAULTS.tmax), help="Number of daily observations")
    parser.add_argument("--true-beta", type=float, default=DEFAULTS.beta)
    parser.add_argument("--true-i0", type=float, default=DEFAULTS.i0_frac)
    parser.add_argument("--n-starts", type=int, default=5)
    parser.add_argument("--profile-points", type=int, default=41)
    parser.add_argument("--surface-points", type=int, default=30)
    parser.add_argument("--skip-surface", action="store_true")
    parser.add_argument("--seed", type=int, default=DEFAULTS.seed)
    parser.add_argument("--save-plots", action="store_true")
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument("--log-file", type=str, default=None)
    parser.add_argument("--no-log-file", action="store_true")
    parser.add_argument("--no-console-log", action="store_true")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    out_dir = Path(args.out_dir) if args.out_dir else DEFAULTS.runs_dir / f"ode_likelihood_{timestamp}"
    ensure_dir(out_dir)

    log_file = None
    if not args.no_log_file:
        log_file = Path(args.log_file) if args.log_file else out_dir / "run.log"
    setup_logging(level=args.log_level, log_file=log_file, console=not args.no_console_log)
    logger = logging.getLogger(__name__)

    logger.info("ODE likelihood start")
    log_config(logger, vars(args))
    set_global_seed(args.seed)
    rng = np.random.default_rng(args.seed)

    params = SIRParams(beta=args.true_beta, c=DEFAULTS.c, gamma=DEFAULTS.gamma)
    _, cases, y = simulate_case_data(params, N=DEFAULTS.N, i0_frac=args.true_i0, l=args.l, rng=rng)
    truth = np.array([args.true_i0, args.true_beta])
    logger.info("Simulated %d observations (total cases %d)", len(y), int(y.sum()))

    bounds = DEFAULT_BOUNDS
    fit = fit_mle(y, bounds=bounds, n_starts=args.n_starts, rng=rng)
    nll = negative_loglik(y, bounds=bounds)

    results = []
    profiles = []
    for index, name in enumerate(PARAM_NAMES):
        start = time.perf_counter()
        prof = profile_likelihood(nll, fit.params, bounds, index, n_points=args.profile_points)
        elapsed = time.perf_counter() - start
        profiles.append(prof)
        row = {
            "param": name,
            "truth": float(truth[index]),
            "mle": prof.mle_value,
            "ci_lower": prof.ci[0],
            "ci_upper": prof.ci[1],
            "covered": float(prof.ci[0] <= truth[index] <= prof.ci[1]),
            "abs_error": float(abs(fit.params[index] - truth[index])),
            "nll_min": prof.min_nll,
            "profile_time_sec": elapsed,
        }
        row.update(timing_summary(np.asarray(fit.times)))
        results.append(row)

    profile_rows = [
        {"param": prof.name, "value": float(x), "profile_nll": float(v)}
        for prof in profiles
        for x, v in zip(prof.grid, prof.profile_nll)
    ]

    surface = None
    if not args.skip_surface:
        grid_i0 = np.linspace(*bounds[0], args.surface_points)
        grid_beta = np.linspace(*bounds[1], args.surface_points)
        start = time.perf_counter()
        surface = loglik_surface(y, grid_i0, grid_beta)
        logger.info("Likelihood surface %s in %.2fs", surface.shape, time.perf_counter() - start)
        np.savez_compressed(out_dir / "surface.npz", i0=grid_i0, beta=grid_beta, loglik=surface)

    config = vars(args)
    config.update({"timestamp": timestamp, "N": DEFAULTS.N, "c": DEFAULTS.c, "gamma": DEFAULTS.gamma})
    save_json(out_dir / "config.json", config)
    save_csv(out_dir / "metrics.csv", results)
    save_csv(out_dir / "profiles.csv", profile_rows)
    logger.info("Saved outputs to %s", out_dir)

    if args.save_plots:
        from src.visualization import visualize as viz

        plot_dir = ensure_dir(out_dir / "figures")
        t = np.arange(1, args.l + 1) * DEFAULTS.obs_dt
        fitted = daily_cases(fit.params[0], fit.params[1], args.l)
        ax = viz.plot_cases(t, fitted, y, title="MLE fit")
        ax.plot(t, cases, color="gray", linestyle="--", label="True mean")
        ax.legend(fontsize=8)
        viz.save_figure(ax.figure, plot_dir / "fit.png")
        for prof in profiles:
            ax = viz.plot_profile(prof)
            viz.save_figure(ax.figure, plot_dir / f"profile_{prof.name}.png")
        if surface is not None:
            ax = viz.plot_surface(grid_beta, grid_i0, surface)
            ax.scatter([fit.params[1]], [fit.params[0]], color="r", marker="x", label="MLE")
            ax.scatter([truth[1]], [truth[0]], color="w", marker="o", label="Truth")
            ax.legend(fontsize=8)
            viz.save_figure(ax.figure, plot_dir / "surface.png")
        logger.info("Saved figures to %s", plot_dir)


if __name__ == "__main__":
    main()
