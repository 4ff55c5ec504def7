"""Activity Tracking Diagnostics: explainable diagnosis of a broken tracking pipeline.

The engine takes independently detected symptom issues, revises their
confidences from correlated evidence, links causes to effects, ranks them,
and explains the conclusion in plain language. It is an in-process library:
pure functions, no I/O.
"""

from tracking_diagnostics.diagnose import (
    DiagnosticReport,
    follow_up_actions,
    run_diagnosis,
)
from tracking_diagnostics.issues import Issue, IssueKind, issue_from_dict, make_issue

__version__ = "0.1.0"

__all__ = [
    "DiagnosticReport",
    "Issue",
    "IssueKind",
    "follow_up_actions",
    "issue_from_dict",
    "make_issue",
    "run_diagnosis",
]
