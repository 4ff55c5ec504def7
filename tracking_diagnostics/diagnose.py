#!/usr/bin/env python3
"""Diagnosis pipeline: turn raw symptom signals into one explainable report.

The signal collection layer runs independent checks (permissions, platform
availability, battery and power state, data sources, staleness of the most
recent activity sample) and reports each failure as an Issue with its own
initial confidence. This module composes the engine:

    raw issues
      -> evidence.update_confidences   (Bayesian revision across correlated issues)
      -> causal.link_issues            (cause -> effect explanations)
      -> ranking.rank_issues           (primary + ordered secondary issues)
      -> narrative.explain             (user-facing justification)
      -> DiagnosticReport              (plus an overall confidence figure)

Every step is a pure function of its inputs: no I/O, no retained state. Many
diagnostic runs can execute in parallel without locking.

Usage (CLI):
    python -m tracking_diagnostics.diagnose --input issues.json --platform ios

Usage (from Python):
    from tracking_diagnostics.diagnose import run_diagnosis
    report = run_diagnosis(issues, platform="android")

Output (CLI): JSON to stdout with "report" and "follow_up_actions" keys.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tracking_diagnostics.causal import CausalLink, link_issues
from tracking_diagnostics.evidence import KNOWN_PLATFORMS, update_confidences
from tracking_diagnostics.issues import (
    Issue,
    action_id_for,
    catalogue_entry,
    issues_from_payload,
)
from tracking_diagnostics.narrative import Narrative, explain
from tracking_diagnostics.ranking import criticality, rank_issues

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Overall confidence
# ──────────────────────────────────────────────────

# With nothing found we are genuinely unsure, not confident all is well.
NO_ISSUE_CONFIDENCE = 0.5

# A moderately certain but blocking issue should still dominate the
# user-visible certainty, so criticality is blended in.
PRIMARY_CONFIDENCE_WEIGHT = 0.7
PRIMARY_CRITICALITY_WEIGHT = 0.3


def compute_overall_confidence(primary: Optional[Issue]) -> float:
    """Overall certainty of the diagnosis, driven by the primary issue."""
    if primary is None:
        return NO_ISSUE_CONFIDENCE
    return (
        primary.confidence * PRIMARY_CONFIDENCE_WEIGHT
        + criticality(primary.kind) * PRIMARY_CRITICALITY_WEIGHT
    )


# ──────────────────────────────────────────────────
# Report
# ──────────────────────────────────────────────────

@dataclass(frozen=True)
class DiagnosticReport:
    """Outcome of one diagnostic run, handed to the chat layer for rendering."""

    primary_issue: Optional[Issue]
    secondary_issues: Tuple[Issue, ...]
    causal_links: Tuple[CausalLink, ...]
    narrative: Narrative
    overall_confidence: float

    @property
    def has_issues(self) -> bool:
        return self.primary_issue is not None

    @property
    def all_issues(self) -> List[Issue]:
        """Primary first, then secondary issues in their original order."""
        if self.primary_issue is None:
            return []
        return [self.primary_issue] + list(self.secondary_issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_issue": self.primary_issue.to_dict() if self.primary_issue else None,
            "secondary_issues": [issue.to_dict() for issue in self.secondary_issues],
            "causal_links": [link.to_dict() for link in self.causal_links],
            "narrative": self.narrative.to_dict(),
            "overall_confidence": self.overall_confidence,
        }


def run_diagnosis(
    raw_issues: Sequence[Issue],
    platform: Optional[str] = None,
) -> DiagnosticReport:
    """Run the full diagnostic pipeline on issues from the signal layer.

    Args:
        raw_issues: Issues as detected, each with its initial confidence.
            Not modified.
        platform: "ios", "android", or None. Gates platform-specific
            correlation rules (Low Power Mode + force-quit is iOS only).

    Returns:
        An immutable DiagnosticReport. Empty input yields the "no issues"
        report with overall_confidence 0.5.
    """
    updated = update_confidences(raw_issues, platform=platform)
    links = link_issues(updated)
    primary, secondary = rank_issues(updated)
    narrative = explain(primary, updated, links)
    overall = compute_overall_confidence(primary)

    logger.info(
        "Diagnosed %d issue(s): primary=%s overall_confidence=%.3f links=%d",
        len(updated),
        primary.tag if primary else None,
        overall,
        len(links),
    )

    return DiagnosticReport(
        primary_issue=primary,
        secondary_issues=tuple(secondary),
        causal_links=tuple(links),
        narrative=narrative,
        overall_confidence=overall,
    )


# ──────────────────────────────────────────────────
# Follow-up actions for the chat layer
# ──────────────────────────────────────────────────

def follow_up_actions(report: DiagnosticReport) -> List[Dict[str, Any]]:
    """One UI action per reported issue that has a suggested fix.

    Issues are visited primary first, then secondary in order. Each action
    carries the catalogue's action id for the issue kind (generic
    "fix_issue" for kinds outside the catalogue).
    """
    actions = []
    for issue in report.all_issues:
        if issue.suggested_fix is None:
            continue
        entry = catalogue_entry(issue.kind) or {}
        actions.append({
            "action_id": action_id_for(issue.kind),
            "label": entry.get("action_label", "Fix This"),
            "issue_kind": issue.tag,
            "suggested_fix": issue.suggested_fix,
        })
    return actions


# ──────────────────────────────────────────────────
# CLI interface
# ──────────────────────────────────────────────────

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for CLI usage."""
    parser = argparse.ArgumentParser(
        description="Diagnose activity tracking issues and explain the result"
    )
    parser.add_argument(
        "--input", required=True,
        help='Path to JSON file: {"platform": ..., "issues": [...]} or a list of issues'
    )
    parser.add_argument(
        "--platform", default=None, choices=KNOWN_PLATFORMS,
        help="Mobile OS variant; overrides the platform in the input file"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log pipeline details to stderr"
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point: load issues JSON, run diagnosis, print JSON to stdout."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(args.input)
    if not input_path.exists():
        print(json.dumps({"error": f"File not found: {args.input}"}))
        sys.exit(1)

    try:
        with open(input_path) as f:
            payload = json.load(f)
    except json.JSONDecodeError as exc:
        print(json.dumps({"error": f"Invalid JSON in {args.input}: {exc}"}))
        sys.exit(1)

    platform = args.platform
    if platform is None and isinstance(payload, dict):
        platform = payload.get("platform")

    report = run_diagnosis(issues_from_payload(payload), platform=platform)

    print(json.dumps({
        "report": report.to_dict(),
        "follow_up_actions": follow_up_actions(report),
    }, indent=2))


if __name__ == "__main__":
    main()
