"""Named simulator configurations and the batch run pipeline."""

from __future__ import annotations

import hashlib
import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping

from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.summary import build_summary, write_summary
from ..reporting.trace import JsonlSink, StepCounter
from .simulator import Simulator

_PRESETS: Dict[str, Mapping[str, object]] = {
    "default": {
        "params": {
            "dataset": "mnist",
            "sample_class": 7,
            "filter_kind": "topEdge",
            "padding": 0,
            "stride": 1,
            "activation_kind": "relu",
            "pooling_kind": "max",
            "pooling_source": "activated",
            "flatten_source": "pooled",
            "dense_layer_size": 10,
            "dense_activation_kind": "softmax",
            "dense_seed": 42,
        },
        "run": {"run_dir": "runs/default", "trace": True},
    },
    "global-average": {
        "params": {
            "dataset": "mnist",
            "sample_class": 3,
            "filter_kind": "leftEdge",
            "activation_kind": "relu",
            "pooling_kind": "globalAverage",
            "flatten_source": "pooled",
            "dense_layer_size": 5,
            "dense_activation_kind": "softmax",
        },
        "run": {"run_dir": "runs/global-average", "trace": True},
    },
    "padded-stride2": {
        "params": {
            "dataset": "mnist",
            "sample_class": 0,
            "filter_kind": "rightEdge",
            "padding": 2,
            "stride": 2,
            "activation_kind": "sigmoid",
            "pooling_kind": "average",
            "pooling_source": "raw",
            "flatten_source": "activated",
            "dense_layer_size": 16,
            "dense_activation_kind": "relu",
        },
        "run": {"run_dir": "runs/padded-stride2", "trace": True},
    },
    "fashion-softmax": {
        "params": {
            "dataset": "fashion",
            "sample_class": 9,
            "filter_kind": "bottomEdge",
            "padding": 1,
            "activation_kind": "softmax",
            "pooling_kind": "min",
            "flatten_source": "pooled",
            "dense_layer_size": 10,
            "dense_activation_kind": "softmax",
        },
        "run": {"run_dir": "runs/fashion-softmax", "trace": True},
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    suffix = path.suffix.lower()
    if suffix not in {".yaml", ".yml", ".json"}:
        raise ValueError(f"Unsupported configuration file type: {path.suffix}")
    text = path.read_text()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - PyYAML is a declared dependency
            raise RuntimeError("PyYAML is required to load configuration files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration {path.name} must decode to a mapping")
    return data


def load_config_file(path: str | Path) -> Mapping[str, object]:
    """Load a JSON or YAML override file into a plain mapping."""

    return json.loads(json.dumps(_read_preset_file(Path(path))))


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                if "params" not in data:
                    raise KeyError(f"Preset {file.name} is missing the 'params' section")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def _normalise(value):
    if isinstance(value, Mapping):
        return {str(k): _normalise(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalise(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    return value


def config_hash(config: Mapping[str, object]) -> str:
    """Return a stable 12-character hash for ``config``."""

    canonical = json.dumps(_normalise(config), sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:12]


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Run every stage to completion and write trace, manifest and summary."""

    params = dict(config.get("params", {}))
    run_cfg = dict(config.get("run", {}))
    run_id = config_hash({"params": params})
    run_dir = _resolve_run_dir(run_cfg, run_id)
    run_dir.mkdir(parents=True, exist_ok=True)

    counter = StepCounter()
    callbacks: List[object] = [counter]
    trace = None
    if run_cfg.get("trace", True):
        trace = JsonlSink(run_dir / "trace.jsonl", run_id=run_id)
        callbacks.append(trace)

    simulator = Simulator.from_mapping(params, callbacks=callbacks)
    try:
        resolved = simulator.store.as_dict()
        sample_set = registry.get_dataset(simulator.config.dataset)
        shapes = simulator.convolution.shapes
        _print_startup_summary(
            dataset_name=sample_set.name,
            sample_label=sample_set.labels[simulator.config.sample_class],
            filter_kind=simulator.config.filter_kind,
            conv_size=shapes.conv_size,
            pool_size=shapes.pool_size,
            dense_input=shapes.dense_input_length,
            dense_size=shapes.dense_layer_size,
            total_steps=shapes.total_steps,
        )

        simulator.run_to_completion()
        predicted = simulator.predicted_class
        label = None
        if predicted is not None and predicted < sample_set.num_classes:
            label = sample_set.labels[predicted]

        manifest = write_manifest(
            run_dir / "manifest.json",
            config=resolved,
            sample_provenance=dict(sample_set.provenance, name=sample_set.name),
            run_id=run_id,
        )
        summary = build_summary(
            config=resolved,
            maps={
                "feature_map": simulator.feature_map,
                "activated_map": simulator.activated_map,
                "pooled_map": simulator.pooled_map,
                "flattened_vector": simulator.flattened_vector,
                "neuron_outputs": simulator.neuron_outputs,
            },
            step_counts=counter.counts,
            activated_outputs=simulator.activated_outputs,
            predicted_class=predicted,
            class_label=label,
        )
        summary_path = write_summary(run_dir / "summary.json", summary)
        (run_dir / "config.json").write_text(json.dumps({"params": resolved, "run": _normalise(run_cfg)}, indent=2))
    finally:
        simulator.close()

    return RunResult(
        steps=counter.total,
        trace_path=str(trace.path) if trace is not None else "",
        manifest_path=manifest,
        summary_path=summary_path,
        predicted_class=predicted,
    )


def _resolve_run_dir(run_cfg: Mapping[str, object], run_id: str) -> Path:
    if "run_dir" in run_cfg:
        return Path(str(run_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / run_id


def _print_startup_summary(
    *,
    dataset_name: str,
    sample_label: str,
    filter_kind: str,
    conv_size: int,
    pool_size: int,
    dense_input: int,
    dense_size: int,
    total_steps: int,
) -> None:
    print("=== convstep run ===")
    print(f"Dataset       : {dataset_name} ({sample_label})")
    print(f"Filter        : {filter_kind}")
    print(f"Feature map   : {conv_size}x{conv_size}")
    print(f"Pooled map    : {pool_size}x{pool_size}")
    print(f"Dense         : {dense_input} -> {dense_size}")
    print(f"Total steps   : {total_steps}")
    print("====================")


__all__ = ["config_hash", "load_config_file", "load_preset", "presets", "run_pipeline"]
