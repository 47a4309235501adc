from pathlib import Path

from convstep.simulation import presets


def test_summary_outputs_are_deterministic(tmp_path):
    config = {
        "params": {
            "dataset": "fashion",
            "sample_class": 2,
            "padding": 1,
            "stride": 2,
            "pooling_kind": "average",
            "dense_layer_size": 5,
            "dense_activation_kind": "softmax",
            "dense_seed": 55,
        },
        "run": {"run_dir": str(tmp_path / "run_a"), "trace": True},
    }

    first = presets.run_pipeline(config)
    summary_a = Path(first.summary_path).read_bytes()
    trace_a = Path(first.trace_path).read_bytes()

    config["run"]["run_dir"] = str(tmp_path / "run_b")
    second = presets.run_pipeline(config)
    summary_b = Path(second.summary_path).read_bytes()
    trace_b = Path(second.trace_path).read_bytes()

    assert trace_a == trace_b
    assert summary_a == summary_b
    assert first.predicted_class == second.predicted_class
