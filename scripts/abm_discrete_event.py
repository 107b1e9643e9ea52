"""Agent-based SIR as a discrete-event simulation.

Each run builds a fresh population of agents, seeds I0 infections and
processes contact and recovery events in time order until tmax. Reports the
ensemble band and final sizes, next to the ODE with the same rates.
Writes config.json, metrics.csv, ensemble_mean.csv and figures under runs/.
Typical usage:
  python scripts/abm_discrete_event.py --n-runs 50 --N 1000 --save-plots
"""


from __future__ import annotations

import argparse
from datetime import datetime
import logging
from pathlib import Path
import time

import numpy as np

from src.epirecipes.abm import AgentBasedSIR
from src.epirecipes.config import DEFAULTS, set_global_seed
from src.epirecipes.io import ensure_dir, save_csv, save_json, save_trajectory_csv
from src.epirecipes.jump import ensemble
from src.epirecipes.logging_utils import log_config, setup_logging
from src.epirecipes.metrics import ensemble_summary, epidemic_summary, stack_on_grid, timing_summary
from src.epirecipes.model import SIRParams
from src.epirecipes.ode import save_grid, solve_sir_ode


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discrete-event agent-based SIR.")
    parser.add_argument("--N", type=int, default=DEFAULTS.N)
    parser.add_argument("--I0", type=int, default=DEFAULTS.u0[1])
    parser.add_argument("--beta", type=float, default=DEFAULTS.beta)
    parser.add_argument("--c", type=float, default=DEFAULTS.c)
    parser.add_argument("--gamma", type=float, default=DEFAULTS.gamma)
    parser.add_argument("--tmax", type=float, default=DEFAULTS.tmax)
    parser.add_argument("--grid-dt", type=float, default=DEFAULTS.dt)
    parser.add_argument("--n-runs", type=int, default=20)
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
    out_dir = Path(args.out_dir) if args.out_dir else DEFAULTS.runs_dir / f"abm_discrete_event_{timestamp}"
    ensure_dir(out_dir)

    log_file = None
    if not args.no_log_file:
        log_file = Path(args.log_file) if args.log_file else out_dir / "run.log"
    setup_logging(level=args.log_level, log_file=log_file, console=not args.no_console_log)
    logger = logging.getLogger(__name__)

    logger.info("Agent-based discrete-event SIR start")
    log_config(logger, vars(args))
    set_global_seed(args.seed)

    params = SIRParams(beta=args.beta, c=args.c, gamma=args.gamma)
    grid = save_grid(DEFAULTS.t0, args.tmax, args.grid_dt)
    wall_times = []

    def one_run(rng: np.random.Generator):
        start = time.perf_counter()
        sol = AgentBasedSIR(args.N, args.I0, params, rng=rng).run(args.tmax)
        wall_times.append(time.perf_counter() - start)
        return sol

    logger.info("Simulating %d agent-based runs with N=%d", args.n_runs, args.N)
    runs = ensemble(one_run, args.n_runs, rng=args.seed)
    band = ensemble_summary(stack_on_grid(runs, grid))
    save_trajectory_csv(out_dir / "ensemble_mean.csv", grid, band["mean"])

    ever_infected = np.array([sol.u[-1, 1] + sol.u[-1, 2] for sol in runs], dtype=float) / args.N
    mean = band["mean"]
    summary = epidemic_summary(grid, mean[:, 0], mean[:, 1], mean[:, 2])
    ode = solve_sir_ode(params, (args.N - args.I0, args.I0, 0), tspan=(DEFAULTS.t0, args.tmax), saveat=grid)
    ode_summary = epidemic_summary(ode.t, ode.S, ode.I, ode.R)
    logger.info(
        "ABM mean peak I=%.1f at t=%.2f (ODE %.1f at t=%.2f)",
        summary["peak_infected"],
        summary["peak_time"],
        ode_summary["peak_infected"],
        ode_summary["peak_time"],
    )

    row = {"n_runs": args.n_runs, "N": args.N, "R0": params.R0}
    row.update({k: v for k, v in summary.items() if k != "peak_indices"})
    row.update(
        {
            "ever_infected_mean": float(ever_infected.mean()),
            "ever_infected_sd": float(ever_infected.std()),
            "ode_peak_infected": ode_summary["peak_infected"],
            "ode_peak_time": ode_summary["peak_time"],
        }
    )
    row.update(timing_summary(np.asarray(wall_times)))

    config = vars(args)
    config["timestamp"] = timestamp
    save_json(out_dir / "config.json", config)
    save_csv(out_dir / "metrics.csv", [row])
    logger.info("Saved outputs to %s", out_dir)

    if args.save_plots:
        from src.visualization import visualize as viz

        plot_dir = ensure_dir(out_dir / "figures")
        ax = viz.plot_trajectories(runs[0].t, runs[0].u, title="One agent-based run", step=True)
        viz.save_figure(ax.figure, plot_dir / "run.png")

        ax = viz.plot_ensemble(grid, band, title="Agent-based ensemble")
        ax.plot(ode.t, ode.I, color="k", linestyle="--", label="ODE I")
        ax.legend(fontsize=8)
        viz.save_figure(ax.figure, plot_dir / "ensemble.png")
        logger.info("Saved figures to %s", plot_dir)


if __name__ == "__main__":
    main()
