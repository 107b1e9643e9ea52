"""Persist posterior draws and trajectories for later analysis.

Stores named arrays (parameter samples, particle weights, simulated paths)
as NPZ with a JSON sidecar describing them, so a run can be re-plotted or
audited without re-running the samplers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple
import json

import numpy as np

from .io import ensure_dir


def save_samples(
    out_dir: Path | str,
    arrays: Mapping[str, np.ndarray],
    prefix: str = "",
    metadata: Optional[Dict[str, object]] = None,
) -> Tuple[Path, Path]:
    """Save arrays as NPZ + JSON metadata; returns both paths."""
    if not arrays:
        raise ValueError("arrays must not be empty")
    out_dir = ensure_dir(out_dir)

    payload = {name: np.asarray(value) for name, value in arrays.items()}
    npz_path = out_dir / f"{prefix}samples.npz"
    np.savez_compressed(npz_path, **payload)

    meta: Dict[str, object] = {
        "arrays": {name: list(value.shape) for name, value in payload.items()},
    }
    if metadata:
        meta.update(metadata)

    json_path = out_dir / f"{prefix}samples.json"
    json_path.write_text(json.dumps(meta, indent=2, sort_keys=True, default=str), encoding="utf-8")

    return npz_path, json_path


def load_samples(npz_path: Path | str) -> Tuple[Dict[str, np.ndarray], Dict[str, object]]:
    """Load arrays and the JSON sidecar written by save_samples."""
    npz_path = Path(npz_path)
    with np.load(npz_path) as data:
        arrays = {k: data[k] for k in data.files}
    json_path = npz_path.with_suffix(".json")
    meta = json.loads(json_path.read_text(encoding="utf-8")) if json_path.exists() else {}
    return arrays, meta
