#!/usr/bin/env python3
"""Tests for the scenario eval: scenario file structure + eval runner.

The eval has two parts:
1. Scenarios (YAML): what the signal layer reported and what a correct
   diagnosis looks like
2. Eval runner (Python): loads scenarios, runs the pipeline, checks each
   expectation

These tests verify:
- All scenario files exist, parse, and carry the required fields
- Every scenario passes against the current engine
- A wrong expectation is reported as FAIL, not silently ignored
"""

import sys
import pytest
from pathlib import Path

# ── Paths ──
EVAL_DIR = Path(__file__).parent.parent / "eval"
SCENARIOS_DIR = EVAL_DIR / "scenarios"
sys.path.insert(0, str(EVAL_DIR))

from run_eval import evaluate_scenario, load_scenarios, run_all  # noqa: E402

ALL_SCENARIO_FILES = [
    "s1_battery_blocking_android.yaml",
    "s2_low_power_force_quit_ios.yaml",
    "s3_low_power_force_quit_android.yaml",
    "s4_multiple_sources.yaml",
    "s5_permissions_dominate.yaml",
    "s6_no_issues.yaml",
    "s7_tied_scores.yaml",
    "s8_malformed_signal.yaml",
]


# ──────────────────────────────────────────────────
# Test Group 1: Scenario files
# ──────────────────────────────────────────────────

class TestScenarioFiles:
    """Verify that every scenario file is present and well formed."""

    @pytest.mark.parametrize("scenario_file", ALL_SCENARIO_FILES)
    def test_scenario_exists(self, scenario_file):
        assert (SCENARIOS_DIR / scenario_file).exists(), f"Missing scenario: {scenario_file}"

    def test_loader_sorts_by_filename(self):
        specs = load_scenarios()
        assert [s["_source_file"] for s in specs] == ALL_SCENARIO_FILES

    def test_scenario_ids_unique(self):
        ids = [s["scenario"]["id"] for s in load_scenarios()]
        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize("spec", load_scenarios(), ids=lambda s: s["scenario"]["id"])
    def test_required_fields(self, spec):
        for key in ("id", "name", "purpose"):
            assert key in spec["scenario"]
        assert spec["platform"] in ("ios", "android", None)
        assert isinstance(spec["issues"], list)
        assert "primary" in spec["expect"]


# ──────────────────────────────────────────────────
# Test Group 2: Eval runner
# ──────────────────────────────────────────────────

class TestEvalRunner:

    def test_all_scenarios_pass(self):
        summary = run_all(load_scenarios())
        failures = [
            (r["scenario"], [c for c in r["checks"] if c["status"] == "FAIL"])
            for r in summary["results"] if r["grade"] == "FAIL"
        ]
        assert summary["failed"] == 0, failures
        assert summary["total"] == len(ALL_SCENARIO_FILES)

    def test_no_issue_scenario(self):
        spec = next(s for s in load_scenarios() if s["scenario"]["id"] == "S6")
        result = evaluate_scenario(spec)
        assert result["grade"] == "PASS"
        assert result["report"]["primary_issue"] is None

    def test_wrong_expectation_fails(self):
        spec = {
            "scenario": {"id": "X1", "name": "wrong", "purpose": "negative control"},
            "platform": "android",
            "issues": [{"kind": "permissions-not-granted"}],
            "expect": {
                "primary": "low-power-mode",
                "narrative_contains": ["this phrase never appears"],
            },
        }
        result = evaluate_scenario(spec)
        assert result["grade"] == "FAIL"
        assert [c["status"] for c in result["checks"]] == ["FAIL", "FAIL"]

    def test_missing_issue_in_confidences_fails(self):
        spec = {
            "scenario": {"id": "X2", "name": "absent", "purpose": "negative control"},
            "platform": None,
            "issues": [],
            "expect": {"confidences": {"low-power-mode": {"min": 0.0, "max": 1.0}}},
        }
        result = evaluate_scenario(spec)
        assert result["grade"] == "FAIL"
        assert "not in report" in result["checks"][0]["detail"]
