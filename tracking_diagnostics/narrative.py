#!/usr/bin/env python3
"""Narrative builder: explain the diagnosis to a non-technical user.

This is the explainability stage of the pipeline. It takes the ranked result
and the causal links and produces a short justification the chat layer shows
as the assistant's message.

DESIGN PRINCIPLES:
- Lead with the primary issue and how sure we are, as a percentage
- Say WHY: the causal link involving the primary issue, verbatim
- Qualify the confidence with a fixed band, never with hedged prose
- Say what the issue breaks, in plain words
- Mention other significant issues as a count, not a data dump

The builder NEVER recomputes a confidence. Every number it prints is
formatted from the Issue it was given, so the text and the report's
numbers can't disagree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from tracking_diagnostics.causal import CausalLink
from tracking_diagnostics.issues import Issue, IssueKind, KindLike, assert_exhaustive


# ──────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────

# What the signal collection layer inspects on every run. Display only.
CHECKS_PERFORMED = (
    "Device connectivity",
    "Health permissions status",
    "Platform availability (Health Connect/HealthKit)",
    "Recent step data (last 24 hours)",
    "Data sources (fitness apps/devices)",
    "Battery optimization settings",
    "Background sync permissions",
    "Manual vs automatic entries",
    "Multiple source conflicts",
    "Low Power Mode (iOS)",
    "App force-quit detection (iOS)",
)

# (minimum confidence, label, reason). Checked top-down; first match wins.
CONFIDENCE_BANDS = (
    (0.95, "High confidence", "directly verifiable, I can check this setting myself"),
    (0.85, "Good confidence", "based on multiple correlated signals"),
    (0.70, "Moderate confidence", "likely but not certain"),
    (0.0, "Lower confidence", "this is my best estimate from the available data"),
)

# Float slack when truncating to a percentage (0.7499999999999999 shows as 75).
PERCENT_TOLERANCE = 1e-9

# Other issues at or above this confidence are mentioned in the summary line.
SIGNIFICANT_SECONDARY_CONFIDENCE = 0.70

# Completes the sentence "This issue ...".
IMPACT_DESCRIPTIONS = {
    IssueKind.PERMISSIONS_NOT_GRANTED:
        "completely blocks step tracking. Nothing will work without it",
    IssueKind.HEALTH_PLATFORM_NOT_INSTALLED:
        "blocks all health data access on this Android version",
    IssueKind.PLATFORM_UNAVAILABLE:
        "means health tracking isn't supported on this device",
    IssueKind.BATTERY_OPTIMIZATION_BLOCKING:
        "prevents background sync, so steps only update when the app is open",
    IssueKind.LOW_POWER_MODE:
        "pauses background sync to save battery",
    IssueKind.NO_RECENT_ACTIVITY_DATA:
        "means steps aren't being recorded or synced",
    IssueKind.NO_DATA_SOURCES:
        "means no apps are tracking your steps",
    IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT:
        "can cause confusing or duplicate step counts",
    IssueKind.COUNT_DISCREPANCY:
        "explains why different apps show different numbers",
    IssueKind.BACKGROUND_SYNC_DISABLED:
        "prevents automatic step updates",
    IssueKind.APP_FORCE_QUIT:
        "stops iOS from syncing in the background",
    IssueKind.DEVICE_OFFLINE:
        "prevents some features, but local tracking still works",
    IssueKind.API_RATE_LIMITED:
        "temporarily blocks requests. Waiting 60 seconds usually clears it",
    IssueKind.SERVICE_UNAVAILABLE:
        "prevents all health data access temporarily",
    IssueKind.MANUAL_ENTRIES_DETECTED:
        "means manual entries are filtered out to prevent fraud",
}

assert_exhaustive(IMPACT_DESCRIPTIONS, "IMPACT_DESCRIPTIONS")

UNKNOWN_IMPACT = "may affect how your steps are tracked"


# ──────────────────────────────────────────────────
# Narrative record
# ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Narrative:
    """Explainable justification of one diagnostic run."""

    checks_performed: Tuple[str, ...]
    text: str
    primary_issue_name: Optional[str] = None
    primary_issue_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checks_performed": list(self.checks_performed),
            "text": self.text,
            "primary_issue_name": self.primary_issue_name,
            "primary_issue_confidence": self.primary_issue_confidence,
        }


# ──────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────

def percent(confidence: float) -> int:
    """Whole-number percentage shown for a confidence, truncated (0.739 -> 73).

    Truncation keeps the number under the next band threshold: 0.9496 shows
    as 94%, never as a "Good confidence (95%)" that reads like High.
    """
    if math.isnan(confidence):
        return 0
    return int(confidence * 100 + PERCENT_TOLERANCE)


def confidence_band(confidence: float) -> Tuple[str, str]:
    """(label, reason) of the band a confidence falls in.

    Bands are compared on the displayed percentage, so the label and the
    number printed beside it always agree.
    """
    pct = percent(confidence)
    for threshold, label, reason in CONFIDENCE_BANDS:
        if pct >= round(threshold * 100):
            return label, reason
    # Below every threshold only if confidence is negative.
    _, label, reason = CONFIDENCE_BANDS[-1]
    return label, reason


def impact_description(kind: KindLike) -> str:
    if not isinstance(kind, IssueKind):
        return UNKNOWN_IMPACT
    return IMPACT_DESCRIPTIONS[kind]


def _no_issues_text() -> str:
    return (
        f"I checked {len(CHECKS_PERFORMED)} potential issues and found no problems "
        "blocking step tracking. Everything appears to be configured correctly. "
        "If you're still having trouble, it might need more time to sync or "
        "could be a rare edge case."
    )


def _related_link(primary: Issue, causal_links: Sequence[CausalLink]) -> Optional[CausalLink]:
    for link in causal_links:
        if link.involves(primary):
            return link
    return None


# ──────────────────────────────────────────────────
# Narrative builder
# ──────────────────────────────────────────────────

def explain(
    primary: Optional[Issue],
    all_issues: Sequence[Issue],
    causal_links: Sequence[CausalLink],
) -> Narrative:
    """Build the user-facing explanation of a diagnosis.

    Args:
        primary: The ranked primary issue, or None when nothing was found.
        all_issues: Every issue after the evidence update (primary included).
        causal_links: Links from the causal linker.

    Returns:
        Narrative with the fixed checks catalogue and the assembled text.
    """
    checks = CHECKS_PERFORMED
    if primary is None:
        return Narrative(checks_performed=checks, text=_no_issues_text())

    pct = percent(primary.confidence)
    lines = [
        f"I checked {len(CHECKS_PERFORMED)} potential issues and identified "
        f"**{primary.title}** as the primary problem ({pct}% confident).",
        "",
        "**Why I think this is the issue:**",
    ]

    link = _related_link(primary, causal_links)
    if link is not None:
        lines.append(f"• {link.explanation}")

    label, reason = confidence_band(primary.confidence)
    lines.append(f"• {label} ({pct}%): {reason}")
    lines.append(f"• This issue {impact_description(primary.kind)}")

    significant = [
        issue for issue in all_issues
        if issue is not primary and issue.confidence >= SIGNIFICANT_SECONDARY_CONFIDENCE
    ]
    if significant:
        lines.append("")
        lines.append(
            f"**Also detected {len(significant)} other issue(s)** "
            "that may be contributing."
        )

    return Narrative(
        checks_performed=checks,
        text="\n".join(lines),
        primary_issue_name=primary.title,
        primary_issue_confidence=primary.confidence,
    )
