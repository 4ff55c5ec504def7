"""CLI entrypoint tests for the diagnosis module and the eval script."""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent.parent
EVAL_DIR = ROOT / "eval"


def _run(args):
    return subprocess.run(
        [sys.executable, *args],
        capture_output=True,
        text=True,
        timeout=30,
        cwd=str(ROOT),
    )


def test_diagnose_module_supports_help():
    """Module execution should work for help invocation."""
    result = _run(["-m", "tracking_diagnostics.diagnose", "--help"])
    combined = f"{result.stdout}\n{result.stderr}".lower()
    assert result.returncode == 0, combined
    assert "usage" in combined
    assert "--platform" in combined


def test_diagnose_module_end_to_end(tmp_path):
    payload = tmp_path / "issues.json"
    payload.write_text(json.dumps({
        "platform": "android",
        "issues": [{"kind": "battery-optimization-blocking"}, {"kind": "noRecentData"}],
    }))
    result = _run(["-m", "tracking_diagnostics.diagnose", "--input", str(payload)])
    assert result.returncode == 0, result.stderr
    output = json.loads(result.stdout)
    assert output["report"]["primary_issue"]["kind"] == "battery-optimization-blocking"


def test_eval_script_supports_help():
    result = _run([str(EVAL_DIR / "run_eval.py"), "--help"])
    combined = f"{result.stdout}\n{result.stderr}"
    assert result.returncode == 0, combined
    assert "--case" in combined


def test_eval_script_lists_cases():
    result = _run([str(EVAL_DIR / "run_eval.py"), "--list-cases"])
    assert result.returncode == 0, result.stderr
    assert "S1:" in result.stdout
    assert "S8:" in result.stdout


def test_eval_script_unknown_case_errors():
    result = _run([str(EVAL_DIR / "run_eval.py"), "--case", "S99"])
    assert result.returncode == 1
    assert "error" in json.loads(result.stdout)
