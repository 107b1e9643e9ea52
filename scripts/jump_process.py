"""Stochastic SIR as a Markov jump process, simulated with Gillespie's method.

Runs an ensemble of direct-method paths. An optional lockdown lowers the
contact rate at a preset time, and each path stops as soon as no infected
remain. Reports final-size statistics, the fraction of early extinctions and
the ensemble band of the trajectories.
Writes config.json, metrics.csv, ensemble_mean.csv and figures under runs/.
Typical usage:
  python scripts/jump_process.py --n-runs 200 --lockdown-time 10 --lockdown-c 5 --save-plots
"""


from __future__ import annotations

import argparse
from datetime import datetime
import logging
from pathlib import Path
import time

import numpy as np

from src.epirecipes.config import DEFAULTS, set_global_seed
from src.epirecipes.io import ensure_dir, save_csv, save_json, save_trajectory_csv
from src.epirecipes.jump import (
    PresetTimeCallback,
    TerminateWhen,
    ensemble,
    gillespie_direct,
    no_infected,
    sir_vas,
)
from src.epirecipes.logging_utils import log_config, setup_logging
from src.epirecipes.metrics import ensemble_summary, stack_on_grid, timing_summary
from src.epirecipes.model import SIRParams
from src.epirecipes.ode import save_grid, solve_sir_ode


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gillespie ensemble for the SIR jump process.")
    parser.add_argument("--S0", type=int, default=DEFAULTS.u0[0])
    parser.add_argument("--I0", type=int, default=DEFAULTS.u0[1])
    parser.add_argument("--R0", type=int, default=DEFAULTS.u0[2])
    parser.add_argument("--beta", type=float, default=DEFAULTS.beta)
    parser.add_argument("--c", type=float, default=DEFAULTS.c)
    parser.add_argument("--gamma", type=float, default=DEFAULTS.gamma)
    parser.add_argument("--tmax", type=float, default=DEFAULTS.tmax)
    parser.add_argument("--grid-dt", type=float, default=DEFAULTS.dt)
    parser.add_argument("--n-runs", type=int, default=100)
    parser.add_argument("--lockdown-time", type=float, default=None)
    parser.add_argument("--lockdown-c", type=float, default=None, help="Contact rate after lockdown")
    parser.add_argument("--no-terminate", action="store_true", help="Keep simulating after I reaches 0")
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
    out_dir = Path(args.out_dir) if args.out_dir else DEFAULTS.runs_dir / f"jump_process_{timestamp}"
    ensure_dir(out_dir)

    log_file = None
    if not args.no_log_file:
        log_file = Path(args.log_file) if args.log_file else out_dir / "run.log"
    setup_logging(level=args.log_level, log_file=log_file, console=not args.no_console_log)
    logger = logging.getLogger(__name__)

    logger.info("Jump process ensemble start")
    log_config(logger, vars(args))
    set_global_seed(args.seed)

    if (args.lockdown_time is None) != (args.lockdown_c is None):
        raise ValueError("--lockdown-time and --lockdown-c must be given together")

    params = SIRParams(beta=args.beta, c=args.c, gamma=args.gamma)
    u0 = (args.S0, args.I0, args.R0, 0)
    N = args.S0 + args.I0 + args.R0
    tspan = (DEFAULTS.t0, args.tmax)
    vas = sir_vas()

    callbacks = []
    if args.lockdown_time is not None:
        lockdown_c = args.lockdown_c
        callbacks.append(PresetTimeCallback(args.lockdown_time, lambda integ: integ.set_params(c=lockdown_c)))
        logger.info("Lockdown at t=%.2f: c %.2f -> %.2f", args.lockdown_time, args.c, lockdown_c)
    if not args.no_terminate:
        callbacks.append(TerminateWhen(no_infected))

    wall_times = []

    def one_run(rng: np.random.Generator):
        start = time.perf_counter()
        sol = gillespie_direct(vas, u0, params, tspan=tspan, rng=rng, callbacks=callbacks)
        wall_times.append(time.perf_counter() - start)
        return sol

    logger.info("Simulating %d paths (R0=%.2f)", args.n_runs, params.R0)
    paths = ensemble(one_run, args.n_runs, rng=args.seed)

    final = np.vstack([sol.final for sol in paths])
    final_size = (N - final[:, 0]) / N
    extinct_early = float(np.mean(final[:, 3] < 0.1 * N))
    logger.info(
        "Final size mean %.3f (sd %.3f); %.1f%% of runs infected fewer than 10%%",
        final_size.mean(),
        final_size.std(),
        100 * extinct_early,
    )

    grid = save_grid(tspan[0], tspan[1], args.grid_dt)
    band = ensemble_summary(stack_on_grid(paths, grid))
    save_trajectory_csv(out_dir / "ensemble_mean.csv", grid, band["mean"], labels=vas.species)

    row = {
        "n_runs": args.n_runs,
        "R0": params.R0,
        "final_size_mean": float(final_size.mean()),
        "final_size_sd": float(final_size.std()),
        "early_extinction": extinct_early,
        "jumps_mean": float(np.mean([sol.n_jumps for sol in paths])),
        "peak_I_mean": float(band["mean"][:, 1].max()),
    }
    row.update(timing_summary(np.asarray(wall_times)))
    config = vars(args)
    config["timestamp"] = timestamp
    save_json(out_dir / "config.json", config)
    save_csv(out_dir / "metrics.csv", [row])
    logger.info("Saved outputs to %s", out_dir)

    if args.save_plots:
        from src.visualization import visualize as viz

        plot_dir = ensure_dir(out_dir / "figures")
        ax = viz.plot_trajectories(paths[0].t, paths[0].u[:, :3], title="One jump process path", step=True)
        viz.save_figure(ax.figure, plot_dir / "path.png")

        ax = viz.plot_ensemble(grid, {k: v[:, :3] for k, v in band.items()}, title="Jump process ensemble")
        ode = solve_sir_ode(params, u0[:3], tspan=tspan, saveat=args.grid_dt)
        ax.plot(ode.t, ode.I, color="k", linestyle="--", label="ODE I (no lockdown)")
        ax.legend(fontsize=8)
        viz.save_figure(ax.figure, plot_dir / "ensemble.png")
        logger.info("Saved figures to %s", plot_dir)


if __name__ == "__main__":
    main()
