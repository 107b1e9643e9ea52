import csv
import importlib.util
import json
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "aggregate_runs.py"


@pytest.fixture(scope="module")
def aggregate():
    spec = importlib.util.spec_from_file_location("aggregate_runs", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _write_run(runs_dir, name, rows, config):
    run_dir = runs_dir / name
    run_dir.mkdir(parents=True)
    with (run_dir / "metrics.csv").open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)
    (run_dir / "config.json").write_text(json.dumps(config), encoding="utf-8")


def test_recipe_name_strips_timestamp(aggregate):
    assert aggregate.recipe_name(Path("runs/jump_process_delay_20250101_120000")) == "jump_process_delay"
    assert aggregate.recipe_name(Path("runs/ode_gen_20250101_120000")) == "ode_gen"
    assert aggregate.recipe_name(Path("runs/custom")) == "custom"


def test_collect_rows_tags_and_filters(aggregate, tmp_path):
    _write_run(tmp_path, "ode_gen_20250101_120000", [{"method": "mh", "mean": "0.05"}], {"seed": 1})
    _write_run(tmp_path, "jump_process_20250102_090000", [{"n_runs": "10"}], {"seed": 2})

    rows = aggregate.collect_rows(tmp_path)
    assert len(rows) == 2
    assert {row["recipe"] for row in rows} == {"ode_gen", "jump_process"}
    assert all("cfg_seed" not in row for row in rows)

    rows = aggregate.collect_rows(tmp_path, recipe="ode_gen", include_config=True)
    assert len(rows) == 1
    assert rows[0]["method"] == "mh"
    assert rows[0]["cfg_seed"] == 1
