"""Tests that the issue catalogue YAML loads correctly and contains required fields."""

import yaml
import pytest
from pathlib import Path

from tracking_diagnostics.issues import REQUIRED_CATALOGUE_FIELDS, IssueKind

ROOT = Path(__file__).parent.parent
KNOWLEDGE_DIR = ROOT / "data" / "knowledge"

# Description placeholders make_issue knows how to fill.
KNOWN_PLACEHOLDERS = {"hours", "source_count", "manual_entry_count", "sources"}


class TestIssueCatalogue:
    """Verify issue_catalogue.yaml has correct structure."""

    @pytest.fixture(autouse=True)
    def load_catalogue(self):
        with open(KNOWLEDGE_DIR / "issue_catalogue.yaml") as f:
            self.doc = yaml.safe_load(f)

    def test_has_version_and_issues(self):
        assert self.doc["version"] == 1
        assert "issues" in self.doc

    def test_one_entry_per_kind(self):
        assert set(self.doc["issues"]) == {kind.value for kind in IssueKind}

    @pytest.mark.parametrize("kind", [k.value for k in IssueKind])
    def test_entry_has_required_fields(self, kind):
        entry = self.doc["issues"][kind]
        for field in REQUIRED_CATALOGUE_FIELDS:
            assert field in entry, f"{kind} missing field: {field}"
        assert entry.get("action_label"), f"{kind} missing action_label"

    @pytest.mark.parametrize("kind", [k.value for k in IssueKind])
    def test_default_confidence_in_range(self, kind):
        entry = self.doc["issues"][kind]
        assert 0.0 <= entry["default_confidence"] <= 1.0

    def test_definitive_checks_are_certain(self):
        issues = self.doc["issues"]
        for kind in ("permissions-not-granted", "device-offline", "api-rate-limited"):
            assert issues[kind]["default_confidence"] == 1.0

    def test_staleness_has_short_gap_override(self):
        entry = self.doc["issues"]["no-recent-activity-data"]
        assert entry["short_gap_hours"] > 0
        assert entry["short_gap_confidence"] < entry["default_confidence"]

    def test_placeholders_are_known(self):
        import string
        formatter = string.Formatter()
        for kind, entry in self.doc["issues"].items():
            names = {name for _, name, _, _ in formatter.parse(entry["description"]) if name}
            assert names <= KNOWN_PLACEHOLDERS, f"{kind} uses unknown placeholder(s): {names}"
