import json
from pathlib import Path

import pytest

from cli import main as cli_main
from convstep.simulation import presets


def _result_line(out: str) -> dict:
    lines = [line for line in out.splitlines() if line.startswith('{"')]
    assert lines, "CLI should emit a JSON result line"
    return json.loads(lines[-1])


def test_cli_basic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    cli_main.main(["--preset", "default"])
    out = capsys.readouterr().out
    assert "=== convstep run ===" in out
    payload = _result_line(out)
    run_dir = Path("runs/default")
    assert (run_dir / "trace.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    assert (run_dir / "summary.json").exists()
    assert payload["steps"] == 26 * 26 * 2 + 13 * 13 + 13 + 169 * 10
    assert payload["predicted_class"] in range(10)


def test_cli_overrides_are_deterministic(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    argv = ["--dataset", "fashion", "--padding", "2", "--stride", "2", "--dense-size", "5", "--seed", "3"]

    cli_main.main(argv)
    first = _result_line(capsys.readouterr().out)
    first_trace = Path(first["trace"]).read_bytes()
    first_summary = Path(first["summary"]).read_bytes()

    cli_main.main(argv)
    second = _result_line(capsys.readouterr().out)

    assert first["run_id"] == second["run_id"]
    assert Path(second["trace"]).read_bytes() == first_trace
    assert Path(second["summary"]).read_bytes() == first_summary
    assert Path(first["trace"]).parent == Path(".artifacts") / first["run_id"]

    summary = json.loads(first_summary)
    assert summary["config"]["padding"] == 2
    assert summary["maps"]["feature_map"]["shape"] == [15, 15]
    assert summary["steps"]["dense"] == 49 * 5


def test_cli_config_override_and_dump(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text("params:\n  pooling_kind: globalAverage\nrun:\n  trace: false\n")
    dump = tmp_path / "resolved.json"

    cli_main.main(["--config", str(override), "--dump-config", str(dump), "--summary"])
    out = capsys.readouterr().out
    payload = _result_line(out)
    resolved = json.loads(dump.read_text())
    assert resolved["params"]["pooling_kind"] == "globalAverage"
    assert resolved["params"]["filter_kind"] == "topEdge"
    assert payload["trace"] == ""
    assert '"predicted_class"' in out
    summary = json.loads(Path(payload["summary"]).read_text())
    assert summary["maps"]["pooled_map"]["shape"] == [1, 1]


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(["--list-presets"])
    assert excinfo.value.code == 0
    listed = capsys.readouterr().out.split()
    assert set(presets.presets()) == set(listed)
    assert "fashion-softmax" in listed
