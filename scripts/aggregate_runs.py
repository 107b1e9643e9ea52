"""Collect metrics from every recipe run into one table.

Reads runs/*/metrics.csv, tags each row with its run folder and recipe name
(and, on request, the run's config values) and writes a single CSV.
Typical usage:
  python scripts/aggregate_runs.py --include-config --recipe jump_process
"""


from __future__ import annotations

import argparse
import csv
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from src.epirecipes.io import save_csv
from src.epirecipes.logging_utils import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate recipe run metrics into one CSV.")
    parser.add_argument("--runs-dir", type=str, default="runs")
    parser.add_argument("--out", type=str, default="runs/summary.csv")
    parser.add_argument("--recipe", type=str, default=None, help="Only keep runs of this recipe")
    parser.add_argument("--include-config", action="store_true")
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument("--log-file", type=str, default=None)
    parser.add_argument("--no-log-file", action="store_true")
    parser.add_argument("--no-console-log", action="store_true")
    return parser.parse_args()


def _load_config(path: Path) -> Dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def recipe_name(run_dir: Path) -> str:
    """Strip the _YYYYmmdd_HHMMSS suffix, e.g. jump_process_delay_20250101_120000."""
    parts = run_dir.name.rsplit("_", 2)
    if len(parts) == 3 and parts[1].isdigit() and parts[2].isdigit():
        return parts[0]
    return run_dir.name


def collect_rows(runs_dir: Path, recipe: Optional[str] = None, include_config: bool = False) -> List[Dict]:
    rows: List[Dict] = []
    for metrics_path in sorted(runs_dir.glob("*/metrics.csv")):
        run_dir = metrics_path.parent
        name = recipe_name(run_dir)
        if recipe is not None and name != recipe:
            continue
        config = _load_config(run_dir / "config.json") if include_config else {}

        with metrics_path.open("r", newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                row = dict(row)
                row["run_dir"] = str(run_dir)
                row["recipe"] = name
                # Prefix config values to avoid name collisions.
                for k, v in config.items():
                    row[f"cfg_{k}"] = v
                rows.append(row)
    return rows


def main() -> None:
    args = _parse_args()
    runs_dir = Path(args.runs_dir)
    out_path = Path(args.out)

    log_file = None
    if not args.no_log_file:
        log_file = Path(args.log_file) if args.log_file else out_path.with_suffix(".log")
    setup_logging(level=args.log_level, log_file=log_file, console=not args.no_console_log)
    logger = logging.getLogger(__name__)

    logger.info("Aggregating metrics under %s", runs_dir)
    rows = collect_rows(runs_dir, recipe=args.recipe, include_config=args.include_config)
    if not rows:
        logger.warning("No metrics.csv files found under %s", runs_dir)
        return

    out_path.parent.mkdir(parents=True, exist_ok=True)
    save_csv(out_path, rows)
    logger.info("Wrote %d rows to %s", len(rows), out_path)


if __name__ == "__main__":
    main()
