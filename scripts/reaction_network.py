"""SIR written once as a reaction network, solved three ways.

The network S + I -> 2I, I -> R is compiled to the mass-action ODE, the
chemical Langevin SDE and the jump process. The ODE is checked against the
summer compartmental model with the same rates.
Writes config.json, metrics.csv, network.tex and figures under runs/.
Typical usage:
  python scripts/reaction_network.py --n-runs 50 --save-plots
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
from src.epirecipes.jump import ensemble
from src.epirecipes.logging_utils import log_config, setup_logging
from src.epirecipes.metrics import ensemble_summary, mae, rmse, stack_on_grid
from src.epirecipes.model import SIRParams
from src.epirecipes.reaction import sir_network


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Solve the SIR reaction network as ODE, SDE and jump process.")
    parser.add_argument("--S0", type=int, default=DEFAULTS.u0[0])
    parser.add_argument("--I0", type=int, default=DEFAULTS.u0[1])
    parser.add_argument("--R0", type=int, default=DEFAULTS.u0[2])
    parser.add_argument("--beta", type=float, default=DEFAULTS.beta)
    parser.add_argument("--c", type=float, default=DEFAULTS.c)
    parser.add_argument("--gamma", type=float, default=DEFAULTS.gamma)
    parser.add_argument("--tmax", type=float, default=DEFAULTS.tmax)
    parser.add_argument("--dt", type=float, default=DEFAULTS.dt)
    parser.add_argument("--n-runs", type=int, default=20, help="Replicates for the SDE and jump ensembles")
    parser.add_argument("--skip-summer", action="store_true")
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
    out_dir = Path(args.out_dir) if args.out_dir else DEFAULTS.runs_dir / f"reaction_network_{timestamp}"
    ensure_dir(out_dir)

    log_file = None
    if not args.no_log_file:
        log_file = Path(args.log_file) if args.log_file else out_dir / "run.log"
    setup_logging(level=args.log_level, log_file=log_file, console=not args.no_console_log)
    logger = logging.getLogger(__name__)

    logger.info("Reaction network start")
    log_config(logger, vars(args))
    set_global_seed(args.seed)

    rn = sir_network()
    logger.info("Network:\n%s", rn)
    (out_dir / "network.tex").write_text(rn.to_latex(), encoding="utf-8")

    N = args.S0 + args.I0 + args.R0
    u0 = rn.state_vector({"S": args.S0, "I": args.I0, "R": args.R0})
    p = {"beta": args.beta, "c": args.c, "gamma": args.gamma, "N": N}
    tspan = (DEFAULTS.t0, args.tmax)
    seeds = np.random.SeedSequence(args.seed).spawn(2)
    results = []

    start = time.perf_counter()
    ode = rn.solve_ode(u0, p, tspan=tspan, saveat=args.dt)
    results.append({"model": "ode", "time_sec": time.perf_counter() - start, "peak_I": float(ode["I"].max())})

    start = time.perf_counter()
    sde_runs = ensemble(
        lambda rng: rn.solve_langevin(u0, p, tspan=tspan, dt=args.dt, rng=rng),
        args.n_runs,
        rng=np.random.default_rng(seeds[0]),
    )
    sde_I = np.stack([sol["I"] for sol in sde_runs])
    results.append(
        {
            "model": "sde",
            "time_sec": time.perf_counter() - start,
            "peak_I": float(sde_I.mean(axis=0).max()),
            "mae_vs_ode": mae(ode["I"], sde_I.mean(axis=0)),
        }
    )

    start = time.perf_counter()
    jump_runs = ensemble(
        lambda rng: rn.solve_jump(u0.astype(np.int64), p, tspan=tspan, rng=rng),
        args.n_runs,
        rng=np.random.default_rng(seeds[1]),
    )
    jump_I = stack_on_grid(jump_runs, ode.t)[:, :, 1]
    results.append(
        {
            "model": "jump",
            "time_sec": time.perf_counter() - start,
            "peak_I": float(jump_I.mean(axis=0).max()),
            "mae_vs_ode": mae(ode["I"], jump_I.mean(axis=0)),
        }
    )

    summer_I = None
    if not args.skip_summer:
        from src.epirecipes.compartmental import simulate_compartmental

        params = SIRParams(beta=args.beta, c=args.c, gamma=args.gamma)
        start = time.perf_counter()
        times, outputs, _ = simulate_compartmental(
            params, (args.S0, args.I0, args.R0), t0=tspan[0], t1=tspan[1], dt=args.dt, return_full=True
        )
        summer_I = outputs[:, 1]
        ode_on_summer = np.interp(times, ode.t, ode["I"])
        results.append(
            {
                "model": "summer",
                "time_sec": time.perf_counter() - start,
                "peak_I": float(summer_I.max()),
                "mae_vs_ode": mae(ode_on_summer, summer_I),
                "rmse_vs_ode": rmse(ode_on_summer, summer_I),
            }
        )
        logger.info("summer vs network ODE: RMSE %.4f", results[-1]["rmse_vs_ode"])

    for row in results:
        logger.info("%s: peak I %.1f (%.3fs)", row["model"], row["peak_I"], row["time_sec"])

    config = vars(args)
    config["timestamp"] = timestamp
    save_json(out_dir / "config.json", config)
    save_csv(out_dir / "metrics.csv", results)
    logger.info("Saved outputs to %s", out_dir)

    if args.save_plots:
        from src.visualization import visualize as viz

        plot_dir = ensure_dir(out_dir / "figures")
        ax = viz.plot_trajectories(ode.t, ode.u, labels=rn.species, title="Reaction network ODE")
        viz.save_figure(ax.figure, plot_dir / "ode.png")

        ax = viz.plot_trajectories(sde_runs[0].t, sde_runs[0].u, labels=rn.species, title="Chemical Langevin SDE")
        viz.save_figure(ax.figure, plot_dir / "sde.png")

        ax = viz.plot_trajectories(
            jump_runs[0].t, jump_runs[0].u, labels=rn.species, title="Jump process", step=True
        )
        viz.save_figure(ax.figure, plot_dir / "jump.png")

        band = ensemble_summary(stack_on_grid(jump_runs, ode.t))
        ax = viz.plot_ensemble(ode.t, band, labels=rn.species, title="Jump ensemble vs ODE")
        ax.plot(ode.t, ode["I"], color="k", linestyle="--", label="ODE I")
        if summer_I is not None:
            ax.plot(times, summer_I, color="m", linestyle=":", label="summer I")
        ax.legend(fontsize=8)
        viz.save_figure(ax.figure, plot_dir / "comparison.png")
        logger.info("Saved figures to %s", plot_dir)


if __name__ == "__main__":
    main()
