"""Tests for the causal linker."""

import dataclasses

import pytest

from tracking_diagnostics.causal import CAUSAL_RULES, link_issues
from tracking_diagnostics.issues import IssueKind

from conftest import issue


class TestLinkIssues:
    """Links are emitted if and only if both ends were detected."""

    def test_battery_causes_stale_data(self, battery_and_stale_issues):
        links = link_issues(battery_and_stale_issues)
        assert len(links) == 1
        link = links[0]
        assert link.cause is battery_and_stale_issues[0]
        assert link.effect is battery_and_stale_issues[1]
        assert link.explanation.startswith("Battery optimization prevents background sync")

    def test_confidence_is_mean_of_both_ends(self, battery_and_stale_issues):
        link = link_issues(battery_and_stale_issues)[0]
        assert link.confidence == pytest.approx((0.6 + 0.5) / 2)

    def test_cause_alone_yields_nothing(self):
        assert link_issues([issue(IssueKind.LOW_POWER_MODE, 0.95)]) == []

    def test_effect_alone_yields_nothing(self):
        assert link_issues([issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.95)]) == []

    def test_empty_input(self):
        assert link_issues([]) == []

    def test_links_follow_rule_order(self):
        """Effect first in input doesn't change emission order."""
        issues = [
            issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.9),
            issue(IssueKind.NO_DATA_SOURCES, 0.85),
            issue(IssueKind.LOW_POWER_MODE, 0.95),
            issue(IssueKind.BATTERY_OPTIMIZATION_BLOCKING, 0.9),
        ]
        pairs = [(l.cause.kind, l.effect.kind) for l in link_issues(issues)]
        assert pairs == [
            (IssueKind.BATTERY_OPTIMIZATION_BLOCKING, IssueKind.NO_RECENT_ACTIVITY_DATA),
            (IssueKind.LOW_POWER_MODE, IssueKind.NO_RECENT_ACTIVITY_DATA),
            (IssueKind.NO_DATA_SOURCES, IssueKind.NO_RECENT_ACTIVITY_DATA),
        ]

    def test_conflicting_sources_explain_discrepancy(self):
        issues = [
            issue(IssueKind.COUNT_DISCREPANCY, 0.8),
            issue(IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT, 0.85),
        ]
        links = link_issues(issues)
        assert len(links) == 1
        assert "different step counts" in links[0].explanation

    def test_first_issue_of_a_kind_is_linked(self):
        first = issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.9)
        second = issue(IssueKind.NO_RECENT_ACTIVITY_DATA, 0.4)
        cause = issue(IssueKind.BATTERY_OPTIMIZATION_BLOCKING, 0.9)
        links = link_issues([first, second, cause])
        assert len(links) == 1
        assert links[0].effect is first

    def test_every_rule_has_explanation(self):
        for cause, effect, explanation in CAUSAL_RULES:
            assert cause != effect
            assert explanation


class TestCausalLink:

    def test_involves_uses_identity(self, battery_and_stale_issues):
        link = link_issues(battery_and_stale_issues)[0]
        cause = battery_and_stale_issues[0]
        lookalike = dataclasses.replace(cause)
        assert lookalike == cause
        assert link.involves(cause)
        assert not link.involves(lookalike)

    def test_to_dict(self, battery_and_stale_issues):
        payload = link_issues(battery_and_stale_issues)[0].to_dict()
        assert payload["cause"] == "battery-optimization-blocking"
        assert payload["effect"] == "no-recent-activity-data"
        assert payload["confidence"] == pytest.approx(0.55)
