"""Run I/O helpers.

Small utilities to create run folders and persist configs, metrics and
trajectories as JSON and CSV. Used by scripts to standardize artifacts in
runs/.
"""


from pathlib import Path
import csv
import json
from typing import Dict, Iterable, Sequence, Union

import numpy as np


def ensure_dir(path: Union[Path, str]) -> Path:
    path = Path(path)
    # Create output folder if needed.
    path.mkdir(parents=True, exist_ok=True)
    return path


def _to_builtin(value: object) -> object:
    """Convert numpy scalars/arrays and paths into JSON-friendly values."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    return value


def save_json(path: Union[Path, str], payload: Dict) -> None:
    path = Path(path)
    with path.open("w", encoding="utf-8") as f:
        # Stable formatting helps diffs between runs.
        json.dump(_to_builtin(payload), f, indent=2, sort_keys=True)


def save_csv(path: Union[Path, str], rows: Iterable[Dict]) -> None:
    path = Path(path)
    rows = list(rows)
    if not rows:
        return
    with path.open("w", newline="", encoding="utf-8") as f:
        # Column order follows first appearance across all rows.
        fieldnames = []
        seen = set()
        for row in rows:
            for key in row.keys():
                if key not in seen:
                    fieldnames.append(key)
                    seen.add(key)
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows({k: _to_builtin(v) for k, v in row.items()} for row in rows)


def save_trajectory_csv(
    path: Union[Path, str],
    times: np.ndarray,
    states: np.ndarray,
    labels: Sequence[str] = ("S", "I", "R"),
) -> None:
    """Write a trajectory as one CSV row per time point."""
    times = np.asarray(times, dtype=float)
    states = np.asarray(states)
    if states.ndim != 2 or states.shape[0] != times.shape[0]:
        raise ValueError("states must have shape (len(times), n_states)")
    labels = list(labels)[: states.shape[1]]
    rows = []
    for t, u in zip(times, states):
        row = {"t": float(t)}
        row.update({label: u[j].item() for j, label in enumerate(labels)})
        rows.append(row)
    save_csv(path, rows)
