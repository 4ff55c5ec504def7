"""Shared test fixtures for the activity tracking diagnostics tests."""

import pytest
from pathlib import Path

from tracking_diagnostics.issues import Issue, IssueKind

# Project root
ROOT = Path(__file__).parent.parent

# Path to knowledge files
KNOWLEDGE_DIR = ROOT / "data" / "knowledge"
SCENARIOS_DIR = ROOT / "eval" / "scenarios"


def issue(kind, confidence):
    """Bare Issue with placeholder display strings."""
    tag = kind.value if isinstance(kind, IssueKind) else str(kind)
    return Issue(
        kind=kind,
        title=f"Title {tag}",
        description=f"Description {tag}",
        suggested_fix=f"Fix {tag}",
        confidence=confidence,
    )


@pytest.fixture
def knowledge_dir():
    """Path to the data/knowledge directory."""
    return KNOWLEDGE_DIR


@pytest.fixture
def battery_and_stale_issues():
    """The canonical correlated pair: battery optimization + no recent data.

    Priors chosen so the expected posteriors are easy to verify by hand:
    battery 0.6 -> 0.75 (LR 2.0), no-data 0.5 -> ~0.739 (LR ~2.833).
    """
    return [
        issue(IssueKind.BATTERY_OPTIMIZATION_BLOCKING, 0.6),
        issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.5),
    ]


@pytest.fixture
def everything_failing_issues():
    """Android device where most checks failed at once."""
    return [
        issue(IssueKind.DEVICE_OFFLINE, 1.0),
        issue(IssueKind.SERVICE_UNAVAILABLE, 0.9),
        issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.95),
        issue(IssueKind.PERMISSIONS_NOT_GRANTED, 1.0),
        issue(IssueKind.COUNT_DISCREPANCY, 0.8),
    ]
