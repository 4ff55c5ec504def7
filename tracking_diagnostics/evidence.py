#!/usr/bin/env python3
"""Evidence updater: Bayesian confidence revision across correlated issues.

Each check in the signal layer runs independently and assigns its own
initial confidence. But symptoms are not independent: "battery optimization
is on" AND "no activity recorded for a day" together are much stronger
evidence of a battery problem than either alone. This module revises each
issue's confidence when a correlated partner issue is also present.

WHY LIKELIHOOD RATIOS:
The update is the closed-form post-test probability from diagnostic testing:
    LR        = sensitivity / (1 - specificity)
    pre_odds  = prior / (1 - prior)
    post_odds = pre_odds * LR
    posterior = post_odds / (post_odds + 1)
The sensitivity/specificity pairs below are hand-specified from field
experience with mobile power management, not trained.

Only ONE rule fires per issue per run (first match in table order). An
issue correlated with two partners is updated using whichever rule is
checked first. Running the update again on its own output applies one more
bounded step; it never iterates to a fixed point.

Usage (from Python):
    from tracking_diagnostics.evidence import update_confidences
    updated = update_confidences(issues, platform="android")
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Set

from tracking_diagnostics.issues import Issue, IssueKind, KindLike, clamp_confidence

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Platforms
# ──────────────────────────────────────────────────

PLATFORM_IOS = "ios"
PLATFORM_ANDROID = "android"
KNOWN_PLATFORMS = (PLATFORM_IOS, PLATFORM_ANDROID)


# ──────────────────────────────────────────────────
# Correlation rules
# ──────────────────────────────────────────────────

@dataclass(frozen=True)
class CorrelationRule:
    """If `subject` co-occurs with any of `partners`, boost the subject."""

    subject: IssueKind
    partners: FrozenSet[IssueKind]
    sensitivity: float      # P(partner present | subject is the real cause)
    specificity: float      # P(partner absent | subject is not the cause)
    platform: Optional[str] = None   # None = applies on every platform

    def applies_on(self, platform: Optional[str]) -> bool:
        return self.platform is None or self.platform == platform


# Table order matters: the first rule matching an issue is the only one applied.
CORRELATION_RULES = (
    # Battery optimization usually causes missing data (80%), but missing
    # data has plenty of other causes (40% false positive rate).
    CorrelationRule(
        subject=IssueKind.BATTERY_OPTIMIZATION_BLOCKING,
        partners=frozenset({IssueKind.NO_RECENT_ACTIVITY_DATA}),
        sensitivity=0.80,
        specificity=0.60,
    ),
    # A blocking power setting makes "no recent data" a real tracking failure.
    CorrelationRule(
        subject=IssueKind.NO_RECENT_ACTIVITY_DATA,
        partners=frozenset({
            IssueKind.BATTERY_OPTIMIZATION_BLOCKING,
            IssueKind.LOW_POWER_MODE,
        }),
        sensitivity=0.85,
        specificity=0.70,
    ),
    # No sources is neutral evidence (LR = 1.0): the user may simply need an app.
    CorrelationRule(
        subject=IssueKind.NO_RECENT_ACTIVITY_DATA,
        partners=frozenset({IssueKind.NO_DATA_SOURCES}),
        sensitivity=0.50,
        specificity=0.50,
    ),
    # iOS suspends force-quit apps; combined with Low Power Mode, background
    # sync almost never runs.
    CorrelationRule(
        subject=IssueKind.LOW_POWER_MODE,
        partners=frozenset({IssueKind.APP_FORCE_QUIT}),
        sensitivity=0.92,
        specificity=0.80,
        platform=PLATFORM_IOS,
    ),
    # Several trackers using different sensors nearly always disagree.
    CorrelationRule(
        subject=IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT,
        partners=frozenset({IssueKind.COUNT_DISCREPANCY}),
        sensitivity=0.90,
        specificity=0.75,
    ),
)


# ──────────────────────────────────────────────────
# Bayesian update
# ──────────────────────────────────────────────────

def likelihood_ratio(sensitivity: float, specificity: float) -> float:
    """Positive likelihood ratio; infinite when specificity is exactly 1."""
    false_positive_rate = 1.0 - specificity
    if false_positive_rate <= 0.0:
        return math.inf
    return sensitivity / false_positive_rate


def bayesian_update(
    prior: float,
    sensitivity: float,
    specificity: float,
    evidence: bool = True,
) -> float:
    """Revise a probability given that correlated evidence was observed.

    Guard conditions return `prior` unchanged rather than raising:
    - evidence absent
    - prior <= 0 or prior >= 1 (certainty can't be moved by odds)
    - sensitivity or specificity outside (0, 1]
    - any non-finite input

    Args:
        prior: Pre-test probability, the issue's current confidence.
        sensitivity: P(evidence | hypothesis true).
        specificity: P(no evidence | hypothesis false).
        evidence: Whether the correlated partner issue is present.

    Returns:
        Posterior probability clamped to [0.0, 1.0].
    """
    if not evidence:
        return prior
    if any(math.isnan(v) for v in (prior, sensitivity, specificity)):
        return prior
    if prior <= 0.0 or prior >= 1.0:
        return prior
    if not 0.0 < sensitivity <= 1.0:
        return prior
    if not 0.0 < specificity <= 1.0:
        return prior

    lr = likelihood_ratio(sensitivity, specificity)
    if math.isinf(lr):
        # Perfectly specific evidence: the hypothesis is confirmed.
        return 1.0

    pre_odds = prior / (1.0 - prior)
    post_odds = pre_odds * lr
    posterior = post_odds / (post_odds + 1.0)
    return min(1.0, max(0.0, posterior))


# ──────────────────────────────────────────────────
# Rule matching
# ──────────────────────────────────────────────────

def _present_kinds(issues: Sequence[Issue]) -> Set[KindLike]:
    return {issue.kind for issue in issues}


def find_rule(
    kind: KindLike,
    present: Set[KindLike],
    platform: Optional[str] = None,
) -> Optional[CorrelationRule]:
    """Return the first rule for `kind` whose partner evidence is present."""
    for rule in CORRELATION_RULES:
        if rule.subject != kind or not rule.applies_on(platform):
            continue
        if rule.partners & present:
            return rule
    return None


def update_confidences(
    issues: Sequence[Issue],
    platform: Optional[str] = None,
) -> List[Issue]:
    """Apply one correlation-driven Bayesian update to every issue.

    Args:
        issues: Raw issues from the signal layer, in detection order.
        platform: "ios", "android", or None when unknown. Platform-specific
            rules only fire on their platform.

    Returns:
        New list of new Issue values in the same order. Issues without a
        matching rule keep their confidence; every confidence is clamped
        to [0.0, 1.0].
    """
    if platform is not None and platform not in KNOWN_PLATFORMS:
        logger.warning("Unknown platform %r; platform-specific rules disabled", platform)

    present = _present_kinds(issues)
    updated: List[Issue] = []

    for issue in issues:
        prior = clamp_confidence(issue.confidence)
        if prior != issue.confidence:
            logger.warning(
                "Clamped out-of-range confidence %r for %s", issue.confidence, issue.tag
            )

        posterior = prior
        rule = find_rule(issue.kind, present, platform)
        if rule is not None:
            posterior = bayesian_update(prior, rule.sensitivity, rule.specificity)
            logger.debug(
                "Correlation %s <- %s: %.3f -> %.3f",
                issue.tag,
                ",".join(sorted(k.value for k in rule.partners & present)),
                prior,
                posterior,
            )

        updated.append(issue.with_confidence(clamp_confidence(posterior)))

    return updated
