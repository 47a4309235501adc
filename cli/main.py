"""Command line entry point for convstep simulations."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from convstep.core.types import (
    ACTIVATION_KINDS,
    DATASETS,
    DENSE_ACTIVATION_KINDS,
    FILTER_KINDS,
    FLATTEN_SOURCES,
    PADDINGS,
    POOLING_KINDS,
    POOLING_SOURCES,
    STRIDES,
)
from convstep.simulation import presets as pipelines


def _format_result(result, run_id: str | None = None) -> str:
    payload = {
        "steps": result.steps,
        "trace": result.trace_path,
        "manifest": result.manifest_path,
        "predicted_class": result.predicted_class,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    if run_id is not None:
        payload["run_id"] = run_id
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="default",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--dataset", choices=DATASETS, help="Sample family")
    parser.add_argument("--sample-class", type=int, help="Class index of the input sample (0-9)")
    parser.add_argument("--filter", dest="filter_kind", choices=FILTER_KINDS, help="3x3 edge filter")
    parser.add_argument("--padding", type=int, choices=PADDINGS, help="Zero padding")
    parser.add_argument("--stride", type=int, choices=STRIDES, help="Convolution stride")
    parser.add_argument("--activation", choices=ACTIVATION_KINDS, help="Feature-map activation")
    parser.add_argument("--pooling", choices=POOLING_KINDS, help="Pooling kind")
    parser.add_argument("--pooling-source", choices=POOLING_SOURCES, help="Map the pooling stage reads")
    parser.add_argument("--flatten-source", choices=FLATTEN_SOURCES, help="Map the flatten stage reads")
    parser.add_argument("--dense-size", type=int, help="Number of dense neurons (1-64)")
    parser.add_argument(
        "--dense-activation", choices=DENSE_ACTIVATION_KINDS, help="Activation of the dense outputs"
    )
    parser.add_argument("--seed", type=int, help="Seed for the dense weights")
    parser.add_argument(
        "--trace",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write one JSON line per executed step",
    )
    parser.add_argument("--run-dir", type=Path, help="Directory for run artifacts")
    parser.add_argument(
        "--summary", action="store_true", help="Print the run summary JSON after the result line"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


_PARAM_FLAGS = {
    "dataset": "dataset",
    "sample_class": "sample_class",
    "filter_kind": "filter_kind",
    "padding": "padding",
    "stride": "stride",
    "activation": "activation_kind",
    "pooling": "pooling_kind",
    "pooling_source": "pooling_source",
    "flatten_source": "flatten_source",
    "dense_size": "dense_layer_size",
    "dense_activation": "dense_activation_kind",
    "seed": "dense_seed",
}


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        config = _merge(config, dict(pipelines.load_config_file(args.config)))

    params = config.setdefault("params", {})
    for flag, field in _PARAM_FLAGS.items():
        value = getattr(args, flag)
        if value is not None:
            params[field] = value

    run_cfg = config.setdefault("run", {})
    if args.trace is not None:
        run_cfg["trace"] = bool(args.trace)

    run_id = pipelines.config_hash({"params": params})
    if args.run_dir is not None:
        run_cfg["run_dir"] = str(args.run_dir)
    elif args.config or any(getattr(args, flag) is not None for flag in _PARAM_FLAGS):
        run_cfg["run_dir"] = str(Path(".artifacts") / run_id)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result, run_id=run_id))

    if args.summary and result.summary_path:
        print(Path(result.summary_path).read_text())


if __name__ == "__main__":
    main()
