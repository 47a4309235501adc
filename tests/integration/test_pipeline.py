import json
from pathlib import Path

import pytest

from convstep.reporting.trace import read_trace
from convstep.simulation import presets


def test_builtin_and_file_presets_are_loadable():
    available = presets.presets()
    for name in ("default", "global-average", "padded-stride2", "fashion-softmax"):
        assert "params" in available[name]
    assert "fashion-sigmoid-raw" in available
    with pytest.raises(KeyError, match="Unknown preset"):
        presets.load_preset("missing")


def test_load_config_file_json_and_yaml(tmp_path):
    json_path = tmp_path / "cfg.json"
    json_path.write_text(json.dumps({"params": {"stride": 2}}))
    yaml_path = tmp_path / "cfg.yml"
    yaml_path.write_text("params:\n  stride: 2\n")
    assert presets.load_config_file(json_path) == presets.load_config_file(yaml_path)
    with pytest.raises(ValueError, match="Unsupported"):
        presets.load_config_file(tmp_path / "cfg.toml")
    toml_path = tmp_path / "written.toml"
    toml_path.write_text("[params]\nstride = 2\n")
    with pytest.raises(ValueError, match="Unsupported"):
        presets.load_config_file(toml_path)


def test_run_pipeline_writes_artifacts(tmp_path):
    config = presets.load_preset("padded-stride2")
    config["run"]["run_dir"] = str(tmp_path / "run")
    result = presets.run_pipeline(config)

    records = read_trace(result.trace_path)
    assert len(records) == result.steps
    stages = [record["stage"] for record in records]
    assert stages[0] == "convolution" and stages[-1] == "dense"
    first = records[0]
    assert first["index"] == 0
    assert len(first["multiplications"]) == 3

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["stride"] == 2
    assert manifest["sample"]["name"] == "mnist"
    assert manifest["run_id"] == presets.config_hash({"params": config["params"]})

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["predicted_class"] == result.predicted_class
    assert summary["maps"]["flattened_vector"]["shape"] == [15 * 15]
    assert summary["steps"]["flatten"] == 15
    assert len(summary["outputs"]) == 16
