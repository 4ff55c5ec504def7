#!/usr/bin/env python3
"""Issue ranker: pick the one issue to lead with, and order the rest.

A user with three detected problems needs to hear about ONE first. The
primary issue balances three objectives that often disagree:

- Criticality: how much of tracking does this block? (permissions: all of it)
- Confidence: how sure are we it's real? (after the evidence update)
- Actionability: can the user fix it themselves in a tap or two?

    score = 0.4 * criticality + 0.4 * confidence + 0.2 * actionability

Example: battery optimization at 90% confidence scores
0.4*0.8 + 0.4*0.9 + 0.2*1.0 = 0.88, well above a count discrepancy at 80%
(0.4*0.2 + 0.4*0.8 + 0.2*0.3 = 0.46).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from tracking_diagnostics.issues import (
    Issue,
    IssueKind,
    KindLike,
    assert_exhaustive,
    clamp_confidence,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Scoring weights
# ──────────────────────────────────────────────────

CRITICALITY_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.4
ACTIONABILITY_WEIGHT = 0.2


# ──────────────────────────────────────────────────
# Per-kind lookup tables
# ──────────────────────────────────────────────────

# How much of tracking does this issue block?
CRITICALITY = {
    # Blocks everything
    IssueKind.PERMISSIONS_NOT_GRANTED: 1.0,
    IssueKind.HEALTH_PLATFORM_NOT_INSTALLED: 1.0,
    IssueKind.PLATFORM_UNAVAILABLE: 1.0,
    # Major functionality broken
    IssueKind.BATTERY_OPTIMIZATION_BLOCKING: 0.8,
    IssueKind.LOW_POWER_MODE: 0.8,
    IssueKind.SERVICE_UNAVAILABLE: 0.8,
    # Tracking possible but limited
    IssueKind.NO_DATA_SOURCES: 0.6,
    IssueKind.BACKGROUND_SYNC_DISABLED: 0.6,
    # Might resolve itself
    IssueKind.NO_RECENT_ACTIVITY_DATA: 0.4,
    IssueKind.APP_FORCE_QUIT: 0.4,
    # Temporary
    IssueKind.DEVICE_OFFLINE: 0.3,
    IssueKind.API_RATE_LIMITED: 0.3,
    # Informational
    IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT: 0.2,
    IssueKind.COUNT_DISCREPANCY: 0.2,
    IssueKind.MANUAL_ENTRIES_DETECTED: 0.2,
}

# How easily can the user resolve it on their own?
ACTIONABILITY = {
    # One tap
    IssueKind.PERMISSIONS_NOT_GRANTED: 1.0,
    IssueKind.BATTERY_OPTIMIZATION_BLOCKING: 1.0,
    IssueKind.LOW_POWER_MODE: 1.0,
    # App install
    IssueKind.HEALTH_PLATFORM_NOT_INSTALLED: 0.8,
    IssueKind.NO_DATA_SOURCES: 0.8,
    # Settings change
    IssueKind.BACKGROUND_SYNC_DISABLED: 0.7,
    IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT: 0.7,
    # Behavioral change
    IssueKind.NO_RECENT_ACTIVITY_DATA: 0.5,
    IssueKind.APP_FORCE_QUIT: 0.5,
    # Informational or self-resolving
    IssueKind.COUNT_DISCREPANCY: 0.3,
    IssueKind.MANUAL_ENTRIES_DETECTED: 0.3,
    IssueKind.DEVICE_OFFLINE: 0.3,
    # Wait or contact support
    IssueKind.PLATFORM_UNAVAILABLE: 0.2,
    IssueKind.SERVICE_UNAVAILABLE: 0.2,
    IssueKind.API_RATE_LIMITED: 0.2,
}

assert_exhaustive(CRITICALITY, "CRITICALITY")
assert_exhaustive(ACTIONABILITY, "ACTIONABILITY")


def criticality(kind: KindLike) -> float:
    """Criticality in [0, 1]; 0.0 for kinds outside the closed set."""
    if not isinstance(kind, IssueKind):
        logger.warning("No criticality for unknown issue kind %r; using 0.0", kind)
        return 0.0
    return CRITICALITY[kind]


def actionability(kind: KindLike) -> float:
    """Actionability in [0, 1]; 0.0 for kinds outside the closed set."""
    if not isinstance(kind, IssueKind):
        logger.warning("No actionability for unknown issue kind %r; using 0.0", kind)
        return 0.0
    return ACTIONABILITY[kind]


# ──────────────────────────────────────────────────
# Ranking
# ──────────────────────────────────────────────────

def score_issue(issue: Issue) -> float:
    """Weighted priority score of a single issue."""
    return (
        CRITICALITY_WEIGHT * criticality(issue.kind)
        + CONFIDENCE_WEIGHT * clamp_confidence(issue.confidence)
        + ACTIONABILITY_WEIGHT * actionability(issue.kind)
    )


def rank_issues(issues: Sequence[Issue]) -> Tuple[Optional[Issue], List[Issue]]:
    """Select the primary issue and keep the rest as secondary.

    Ties go to the issue that appears first in `issues`: the signal layer
    reports checks in a fixed order, so the tie-break is reproducible.

    Args:
        issues: Issues after the evidence update.

    Returns:
        (primary, secondary). `(None, [])` when `issues` is empty. Secondary
        issues keep their original relative order.
    """
    if not issues:
        return None, []

    scores = [score_issue(issue) for issue in issues]
    # max() returns the first maximal index, which gives the stable tie-break.
    primary_index = max(range(len(issues)), key=lambda i: scores[i])
    primary = issues[primary_index]
    secondary = [issue for i, issue in enumerate(issues) if i != primary_index]

    logger.debug(
        "Primary issue %s (score %.3f) over %d secondary",
        primary.tag, scores[primary_index], len(secondary),
    )
    return primary, secondary
