"""Typed views of Sentinel incidents and of the reopen run results."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union


class IncidentStatus(str, Enum):
    NEW = "New"
    ACTIVE = "Active"
    CLOSED = "Closed"


class IncidentClassification(str, Enum):
    UNDETERMINED = "Undetermined"
    TRUE_POSITIVE = "TruePositive"
    BENIGN_POSITIVE = "BenignPositive"
    FALSE_POSITIVE = "FalsePositive"


class IncidentSeverity(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFORMATIONAL = "Informational"


class Verdict(str, Enum):
    REOPEN = "reopen"
    SKIP = "skip"


E = TypeVar("E", bound=Enum)

# Sentinel emits up to seven fractional digits; datetime accepts six.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def _parse_enum(enum_type: Type[E], value: Any) -> Optional[E]:
    if value is None:
        return None
    try:
        return enum_type(value)
    except ValueError:
        return None


def _parse_enum_or_raw(enum_type: Type[E], value: Any) -> Optional[Union[E, str]]:
    """Like _parse_enum, but keeps unrecognised strings so they survive a full replace."""
    parsed = _parse_enum(enum_type, value)
    if parsed is None and isinstance(value, str) and value:
        return value
    return parsed


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the API into an aware UTC datetime."""
    if not value or not isinstance(value, str):
        return None
    text = _FRACTION_RE.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way the incidents API expects in OData filters."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class IncidentOwner:
    assigned_to: Optional[str] = None
    email: Optional[str] = None
    object_id: Optional[str] = None
    user_principal_name: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> Optional["IncidentOwner"]:
        if not isinstance(data, dict):
            return None
        owner = cls(
            assigned_to=data.get("assignedTo") or None,
            email=data.get("email") or None,
            object_id=data.get("objectId") or None,
            user_principal_name=data.get("userPrincipalName") or None,
        )
        return None if owner.is_empty else owner

    @property
    def is_empty(self) -> bool:
        return not (self.assigned_to or self.email or self.object_id or self.user_principal_name)

    def to_api(self) -> Dict[str, Any]:
        return {
            "assignedTo": self.assigned_to,
            "email": self.email,
            "objectId": self.object_id,
            "userPrincipalName": self.user_principal_name,
        }


@dataclass
class Incident:
    """Snapshot of one Sentinel incident as returned by the list call."""

    id: str
    name: str = ""
    number: int = 0
    title: str = ""
    status: Optional[IncidentStatus] = None
    classification: Optional[IncidentClassification] = None
    owner: Optional[IncidentOwner] = None
    severity: Optional[Union[IncidentSeverity, str]] = None
    last_modified: Optional[datetime] = None
    description: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Incident":
        """
        Decode an incident resource, tolerating absent or unexpected fields.

        Unknown status and classification values decode to None, an unknown
        severity is kept as its raw string, an owner with no populated fields
        decodes to None, and unparsable timestamps decode to None.
        """
        properties = payload.get("properties")
        if not isinstance(properties, dict):
            properties = {}

        try:
            number = int(properties.get("incidentNumber") or 0)
        except (TypeError, ValueError):
            number = 0

        return cls(
            id=payload.get("id") or "",
            name=payload.get("name") or "",
            number=number,
            title=properties.get("title") or "",
            status=_parse_enum(IncidentStatus, properties.get("status")),
            classification=_parse_enum(IncidentClassification, properties.get("classification")),
            owner=IncidentOwner.from_api(properties.get("owner")),
            severity=_parse_enum_or_raw(IncidentSeverity, properties.get("severity")),
            last_modified=parse_timestamp(properties.get("lastModifiedTimeUtc")),
            description=properties.get("description"),
        )


@dataclass
class IncidentPatch:
    """Full properties object sent with an incident PUT."""

    title: str
    severity: Optional[Union[IncidentSeverity, str]]
    status: IncidentStatus
    classification: Optional[IncidentClassification] = None
    description: Optional[str] = None
    owner: Optional[IncidentOwner] = None

    @classmethod
    def reopen(cls, incident: Incident) -> "IncidentPatch":
        """Carry over the current properties, set Active and clear the classification."""
        return cls(
            title=incident.title,
            severity=incident.severity,
            status=IncidentStatus.ACTIVE,
            classification=None,
            description=incident.description,
            owner=incident.owner,
        )

    def to_properties(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {
            "title": self.title,
            "severity": self.severity.value if isinstance(self.severity, IncidentSeverity) else self.severity,
            "status": self.status.value,
            "classification": self.classification.value if self.classification else None,
        }
        if self.description is not None:
            properties["description"] = self.description
        if self.owner is not None:
            properties["owner"] = self.owner.to_api()
        return properties


@dataclass
class IncidentPage:
    incidents: List[Incident]
    next_link: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_link)


@dataclass
class ReopenOutcome:
    """Result of one reopen attempt."""

    reopened: bool
    failed_step: Optional[str] = None
    error: Optional[str] = None
    comment_warning: Optional[str] = None

    @classmethod
    def success(cls, comment_warning: Optional[str] = None) -> "ReopenOutcome":
        return cls(reopened=True, comment_warning=comment_warning)

    @classmethod
    def failed(cls, step: str, error: str) -> "ReopenOutcome":
        return cls(reopened=False, failed_step=step, error=error)


@dataclass
class ReopenDecision:
    incident: Incident
    verdict: Verdict
    reason: str
    outcome: Optional[ReopenOutcome] = None
    error: Optional[str] = None

    @property
    def reopened(self) -> bool:
        return self.outcome is not None and self.outcome.reopened

    @property
    def action(self) -> str:
        if self.error is not None:
            return "error"
        if self.verdict is Verdict.SKIP:
            return "skipped"
        return "reopened" if self.reopened else "failed"


@dataclass
class RunSummary:
    """Aggregate of one reopen run."""

    workspace: str
    executed_at: datetime
    criteria: Dict[str, str]
    time_window_hours: float
    invoked_by: str
    decisions: List[ReopenDecision] = field(default_factory=list)
    more_incidents_available: bool = False

    @property
    def total_analyzed(self) -> int:
        return len(self.decisions)

    @property
    def reopened_count(self) -> int:
        return sum(1 for decision in self.decisions if decision.reopened)

    @property
    def failed_count(self) -> int:
        return sum(1 for decision in self.decisions if decision.action in ("failed", "error"))
