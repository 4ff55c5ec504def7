#!/usr/bin/env python3
"""Issue kinds, the immutable Issue record, and the issue catalogue.

An Issue is one symptom reported by an independent check in the signal
collection layer (permission status, platform availability, battery state,
data sources, staleness of the latest activity sample). The diagnostic
engine never invents issues and never mutates them: every revision of a
confidence produces a new Issue via `with_confidence()`.

The catalogue (data/knowledge/issue_catalogue.yaml) holds the display strings,
default initial confidences and UI action ids for every kind. It is loaded
lazily on first use and cached, so importing this module never touches disk.

Usage (from Python):
    from tracking_diagnostics.issues import IssueKind, make_issue
    issue = make_issue(IssueKind.NO_RECENT_ACTIVITY_DATA, hours=30)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────
# Issue kinds
# ──────────────────────────────────────────────────

class IssueKind(str, Enum):
    """Closed set of symptoms the signal layer can report."""
    PERMISSIONS_NOT_GRANTED = "permissions-not-granted"
    HEALTH_PLATFORM_NOT_INSTALLED = "health-platform-not-installed"
    PLATFORM_UNAVAILABLE = "platform-unavailable"
    BATTERY_OPTIMIZATION_BLOCKING = "battery-optimization-blocking"
    LOW_POWER_MODE = "low-power-mode"
    NO_RECENT_ACTIVITY_DATA = "no-recent-activity-data"
    NO_DATA_SOURCES = "no-data-sources"
    MULTIPLE_DATA_SOURCES_CONFLICT = "multiple-data-sources-conflict"
    COUNT_DISCREPANCY = "count-discrepancy"
    BACKGROUND_SYNC_DISABLED = "background-sync-disabled"
    APP_FORCE_QUIT = "app-force-quit"
    DEVICE_OFFLINE = "device-offline"
    API_RATE_LIMITED = "api-rate-limited"
    SERVICE_UNAVAILABLE = "service-unavailable"
    MANUAL_ENTRIES_DETECTED = "manual-entries-detected"


# A kind outside the closed set survives as its raw string so one malformed
# signal never aborts a diagnostic run.
KindLike = Union[IssueKind, str]

# Legacy spellings emitted by older signal collectors -> canonical kind.
# camelCase names come from the mobile client, snake_case from the web API.
LEGACY_KIND_ALIASES = {
    "permissionsNotGranted": IssueKind.PERMISSIONS_NOT_GRANTED,
    "healthConnectNotInstalled": IssueKind.HEALTH_PLATFORM_NOT_INSTALLED,
    "health-connect-not-installed": IssueKind.HEALTH_PLATFORM_NOT_INSTALLED,
    "platformNotAvailable": IssueKind.PLATFORM_UNAVAILABLE,
    "batteryOptimizationBlocking": IssueKind.BATTERY_OPTIMIZATION_BLOCKING,
    "lowPowerMode": IssueKind.LOW_POWER_MODE,
    "noRecentData": IssueKind.NO_RECENT_ACTIVITY_DATA,
    "no-recent-data": IssueKind.NO_RECENT_ACTIVITY_DATA,
    "noDataSources": IssueKind.NO_DATA_SOURCES,
    "multipleDataSourcesConflict": IssueKind.MULTIPLE_DATA_SOURCES_CONFLICT,
    "stepCountDiscrepancy": IssueKind.COUNT_DISCREPANCY,
    "step-count-discrepancy": IssueKind.COUNT_DISCREPANCY,
    "backgroundSyncDisabled": IssueKind.BACKGROUND_SYNC_DISABLED,
    "appForceQuit": IssueKind.APP_FORCE_QUIT,
    "deviceOffline": IssueKind.DEVICE_OFFLINE,
    "apiRateLimitExceeded": IssueKind.API_RATE_LIMITED,
    "api-rate-limit-exceeded": IssueKind.API_RATE_LIMITED,
    "healthServiceUnavailable": IssueKind.SERVICE_UNAVAILABLE,
    "health-service-unavailable": IssueKind.SERVICE_UNAVAILABLE,
    "manualEntriesDetected": IssueKind.MANUAL_ENTRIES_DETECTED,
}


def normalize_kind(raw_kind: Any) -> KindLike:
    """Return the canonical IssueKind for a tag, alias, or snake_case name.

    Unknown kinds are returned unchanged (as a string) and logged; scoring
    treats them as criticality/actionability 0.0 downstream.
    """
    if isinstance(raw_kind, IssueKind):
        return raw_kind
    text = str(raw_kind).strip()
    try:
        return IssueKind(text)
    except ValueError:
        pass
    if text in LEGACY_KIND_ALIASES:
        return LEGACY_KIND_ALIASES[text]
    hyphenated = text.lower().replace("_", "-")
    try:
        return IssueKind(hyphenated)
    except ValueError:
        pass
    if hyphenated in LEGACY_KIND_ALIASES:
        return LEGACY_KIND_ALIASES[hyphenated]
    logger.warning("Unknown issue kind %r; scoring it as criticality 0.0", text)
    return text


def kind_tag(kind: KindLike) -> str:
    """Wire tag for a kind (IssueKind value or the raw unknown string)."""
    return kind.value if isinstance(kind, IssueKind) else str(kind)


def assert_exhaustive(table: Mapping[Any, Any], table_name: str) -> None:
    """Raise ValueError unless `table` has an entry for every IssueKind.

    Called at import time by the modules that own per-kind lookup tables,
    so adding a kind without updating a table fails at startup instead of
    silently scoring 0.0 in production.
    """
    missing = [kind.value for kind in IssueKind if kind not in table]
    if missing:
        raise ValueError(
            f"{table_name} is missing entries for issue kinds: {', '.join(missing)}"
        )


# ──────────────────────────────────────────────────
# Confidence helpers
# ──────────────────────────────────────────────────

def _to_float(value: Any) -> Optional[float]:
    """Convert values to float safely; return None if unparsable."""
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp_confidence(value: Any) -> float:
    """Clamp a confidence into [0.0, 1.0]; NaN and garbage become 0.0."""
    number = _to_float(value)
    if number is None or math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))


# ──────────────────────────────────────────────────
# Issue record
# ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Issue:
    """A detected symptom with the engine's belief that it is real."""

    kind: KindLike
    title: str
    description: str
    suggested_fix: Optional[str]
    confidence: float

    def __post_init__(self) -> None:
        # Exact tags become IssueKind members so set membership and table
        # lookups agree; anything else stays a raw string.
        if not isinstance(self.kind, IssueKind):
            try:
                object.__setattr__(self, "kind", IssueKind(self.kind))
            except ValueError:
                pass

    @property
    def tag(self) -> str:
        return kind_tag(self.kind)

    @property
    def is_known_kind(self) -> bool:
        return isinstance(self.kind, IssueKind)

    def with_confidence(self, confidence: float) -> "Issue":
        """Return a copy of this issue carrying a revised confidence."""
        return replace(self, confidence=confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.tag,
            "title": self.title,
            "description": self.description,
            "suggested_fix": self.suggested_fix,
            "confidence": self.confidence,
        }


# ──────────────────────────────────────────────────
# Issue catalogue (data/knowledge/issue_catalogue.yaml)
# ──────────────────────────────────────────────────

CATALOGUE_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "knowledge" / "issue_catalogue.yaml"
)

REQUIRED_CATALOGUE_FIELDS = (
    "title", "description", "suggested_fix", "default_confidence", "action_id",
)

# Fallback UI action for kinds without a catalogue entry.
DEFAULT_ACTION_ID = "fix_issue"


def load_catalogue(path: Optional[Path] = None) -> Dict[IssueKind, Dict[str, Any]]:
    """Load and validate the issue catalogue YAML.

    Args:
        path: Alternate catalogue file. Defaults to the packaged catalogue.

    Returns:
        Dict mapping every IssueKind to its catalogue entry.

    Raises:
        FileNotFoundError: If the catalogue file doesn't exist.
        ValueError: If a kind is missing, unknown, or lacks a required field.
    """
    import yaml

    catalogue_path = Path(path) if path is not None else CATALOGUE_PATH
    if not catalogue_path.exists():
        raise FileNotFoundError(f"Issue catalogue not found: {catalogue_path}")

    with open(catalogue_path, "r") as f:
        document = yaml.safe_load(f) or {}

    raw_entries = document.get("issues", {})
    catalogue: Dict[IssueKind, Dict[str, Any]] = {}
    for tag, entry in raw_entries.items():
        try:
            kind = IssueKind(tag)
        except ValueError:
            raise ValueError(f"Issue catalogue has unknown kind: {tag}") from None
        missing = [f for f in REQUIRED_CATALOGUE_FIELDS if f not in (entry or {})]
        if missing:
            raise ValueError(
                f"Issue catalogue entry {tag} missing field(s): {', '.join(missing)}"
            )
        catalogue[kind] = dict(entry)

    assert_exhaustive(catalogue, f"Issue catalogue {catalogue_path.name}")
    return catalogue


@lru_cache(maxsize=1)
def get_catalogue() -> Dict[IssueKind, Dict[str, Any]]:
    """Packaged catalogue, loaded once per process and shared read-only."""
    return load_catalogue()


def catalogue_entry(kind: KindLike) -> Optional[Dict[str, Any]]:
    """Catalogue entry for a kind, or None for unknown kinds."""
    if not isinstance(kind, IssueKind):
        return None
    return get_catalogue()[kind]


def action_id_for(kind: KindLike) -> str:
    entry = catalogue_entry(kind)
    if entry is None:
        return DEFAULT_ACTION_ID
    return entry["action_id"]


class _SafeDetails(dict):
    """format_map helper that leaves unknown placeholders readable."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _default_confidence(entry: Dict[str, Any], details: Dict[str, Any]) -> float:
    """Initial confidence the signal layer assigns to a freshly detected issue.

    Staleness checks are more certain the longer the gap since the last
    recorded sample: a gap under `short_gap_hours` uses `short_gap_confidence`.
    """
    hours = _to_float(details.get("hours"))
    short_gap_hours = entry.get("short_gap_hours")
    if hours is not None and short_gap_hours is not None and hours < short_gap_hours:
        return float(entry["short_gap_confidence"])
    return float(entry["default_confidence"])


def make_issue(
    kind: KindLike,
    confidence: Optional[float] = None,
    details: Optional[Mapping[str, Any]] = None,
    **extra_details: Any,
) -> Issue:
    """Build an Issue from the catalogue.

    Args:
        kind: IssueKind (or any spelling normalize_kind understands).
        confidence: Initial confidence. Defaults to the catalogue's value.
        details: Placeholder values for the description, as one mapping.
            Keys such as "confidence" or "kind" are plain placeholders here.
        **extra_details: Same placeholders as keywords, e.g.
            source_count=3, hours=30, manual_entry_count=2.

    Returns:
        A new Issue with catalogue display strings and a clamped confidence.
    """
    details = {**(details or {}), **extra_details}
    canonical = normalize_kind(kind)
    entry = catalogue_entry(canonical)
    if entry is None:
        tag = kind_tag(canonical)
        return Issue(
            kind=canonical,
            title=tag,
            description=f"Unrecognized issue reported by the signal layer: {tag}",
            suggested_fix=None,
            confidence=clamp_confidence(0.0 if confidence is None else confidence),
        )

    if confidence is None:
        confidence = _default_confidence(entry, details)

    return Issue(
        kind=canonical,
        title=entry["title"],
        description=entry["description"].format_map(_SafeDetails(details)),
        suggested_fix=entry.get("suggested_fix"),
        confidence=clamp_confidence(confidence),
    )


# ──────────────────────────────────────────────────
# Input normalization for JSON payloads
# ──────────────────────────────────────────────────

def issue_from_dict(payload: Mapping[str, Any]) -> Issue:
    """Normalize one JSON issue dict into an Issue.

    Accepts legacy kind spellings (`type` or `kind` key, camelCase or
    snake_case) and the legacy `fix_instructions` field. Missing display
    strings are filled from the catalogue; confidence is clamped.
    """
    raw_kind = payload.get("kind", payload.get("type"))
    raw_details = payload.get("details") or {}
    if not isinstance(raw_details, Mapping):
        logger.warning("Ignoring non-object details %r for issue %r", raw_details, raw_kind)
        raw_details = {}
    template = make_issue(raw_kind, confidence=payload.get("confidence"), details=raw_details)

    raw_confidence = payload.get("confidence")
    parsed = _to_float(raw_confidence)
    if raw_confidence is not None and parsed != template.confidence:
        logger.warning(
            "Clamped confidence %r -> %.3f for issue %s",
            raw_confidence, template.confidence, template.tag,
        )

    suggested_fix = payload.get("suggested_fix", payload.get("fix_instructions"))
    return Issue(
        kind=template.kind,
        title=payload.get("title") or template.title,
        description=payload.get("description") or template.description,
        suggested_fix=suggested_fix if suggested_fix is not None else template.suggested_fix,
        confidence=template.confidence,
    )


def issues_from_payload(payload: Union[Mapping[str, Any], Iterable[Any]]) -> List[Issue]:
    """Normalize `{"issues": [...]}` or a bare list of issue dicts.

    Entries that are not JSON objects are skipped with a warning.
    """
    if isinstance(payload, Mapping):
        entries = payload.get("issues") or []
    else:
        entries = payload
    if not isinstance(entries, (list, tuple)):
        logger.warning("Expected a list of issues, got %s; treating as empty", type(entries).__name__)
        return []

    issues: List[Issue] = []
    for item in entries:
        if not isinstance(item, Mapping):
            logger.warning("Skipping malformed issue entry %r", item)
            continue
        issues.append(issue_from_dict(item))
    return issues
