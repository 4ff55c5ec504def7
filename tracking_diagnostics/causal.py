#!/usr/bin/env python3
"""Causal linker: explain which detected issue is causing another.

Some symptoms are consequences of others. "No recent activity data" is
usually an EFFECT, and the interesting thing to tell the user is its CAUSE
(battery optimization, Low Power Mode, no tracking app installed). Links come
from a fixed rule table; a link is emitted only when both its cause and its
effect were detected in the same run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from tracking_diagnostics.issues import Issue, IssueKind, KindLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CausalLink:
    """A rule-derived cause -> effect relationship between two issues."""

    cause: Issue
    effect: Issue
    explanation: str
    confidence: float

    def involves(self, issue: Issue) -> bool:
        return self.cause is issue or self.effect is issue

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cause": self.cause.tag,
            "effect": self.effect.tag,
            "explanation": self.explanation,
            "confidence": self.confidence,
        }


# (cause, effect, explanation). Emission follows table order.
CAUSAL_RULES = (
    (
        IssueKind.BATTERY_OPTIMIZATION_BLOCKING,
        IssueKind.NO_RECENT_ACTIVITY_DATA,
        "Battery optimization prevents background sync, "
        "which stops steps from being recorded when the app is closed",
    ),
    (
        IssueKind.LOW_POWER_MODE,
        IssueKind.NO_RECENT_ACTIVITY_DATA,
        "Low Power Mode disables background app refresh, "
        "preventing steps from syncing automatically",
    ),
    (
        IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT,
        IssueKind.COUNT_DISCREPANCY,
        "Multiple fitness apps use different algorithms and sensors, "
        "naturally causing different step counts",
    ),
    (
        IssueKind.NO_DATA_SOURCES,
        IssueKind.NO_RECENT_ACTIVITY_DATA,
        "Without fitness apps or devices tracking steps, "
        "there's no data to display",
    ),
)


def _first_of_kind(issues: Sequence[Issue], kind: KindLike) -> Optional[Issue]:
    for issue in issues:
        if issue.kind == kind:
            return issue
    return None


def link_issues(issues: Sequence[Issue]) -> List[CausalLink]:
    """Find every rule whose cause and effect were both detected.

    Args:
        issues: Issues AFTER the evidence update, so link confidences use
            the revised values.

    Returns:
        CausalLinks in rule-table order. Each link's confidence is the mean
        of its two issues' confidences.
    """
    links: List[CausalLink] = []
    for cause_kind, effect_kind, explanation in CAUSAL_RULES:
        cause = _first_of_kind(issues, cause_kind)
        effect = _first_of_kind(issues, effect_kind)
        if cause is None or effect is None:
            continue
        links.append(CausalLink(
            cause=cause,
            effect=effect,
            explanation=explanation,
            confidence=(cause.confidence + effect.confidence) / 2.0,
        ))
        logger.debug("Causal link %s -> %s", cause.tag, effect.tag)
    return links
