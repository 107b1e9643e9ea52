import json

import numpy as np
import pytest

from src.epirecipes.samples import load_samples, save_samples


def test_save_and_load(tmp_path):
    arrays = {"smc_beta": np.array([0.04, 0.05]), "smc_weights": np.array([0.3, 0.7])}
    npz_path, json_path = save_samples(tmp_path / "run", arrays, metadata={"truth": {"beta": 0.05}})
    assert npz_path.name == "samples.npz"
    meta = json.loads(json_path.read_text(encoding="utf-8"))
    assert meta["arrays"] == {"smc_beta": [2], "smc_weights": [2]}

    loaded, loaded_meta = load_samples(npz_path)
    np.testing.assert_array_equal(loaded["smc_beta"], arrays["smc_beta"])
    assert loaded_meta["truth"] == {"beta": 0.05}


def test_prefix_and_missing_sidecar(tmp_path):
    npz_path, json_path = save_samples(tmp_path, {"x": np.zeros(3)}, prefix="mh_")
    assert npz_path.name == "mh_samples.npz"
    json_path.unlink()
    arrays, meta = load_samples(npz_path)
    assert meta == {}
    assert arrays["x"].shape == (3,)


def test_empty_arrays_rejected(tmp_path):
    with pytest.raises(ValueError):
        save_samples(tmp_path, {})
