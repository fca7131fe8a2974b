"""Reopening criteria shared by every invocation path."""

from typing import Optional

from incident_reopener.models import Incident, IncidentClassification, IncidentStatus

REOPEN_CRITERIA = {
    "status": "Closed",
    "assignment": "Unassigned",
    "classification": "Undetermined",
}


def is_unassigned(incident: Incident) -> bool:
    return incident.owner is None or not incident.owner.assigned_to


def is_eligible(incident: Incident) -> bool:
    """True when the incident is Closed, classified Undetermined and has no assignee."""
    return (
        incident.status is IncidentStatus.CLOSED
        and incident.classification is IncidentClassification.UNDETERMINED
        and is_unassigned(incident)
    )


def skip_reason(incident: Incident) -> Optional[str]:
    """Explain which criterion an incident fails, or None if it is eligible."""
    if incident.status is not IncidentStatus.CLOSED:
        status = incident.status.value if incident.status else "unknown"
        return f"Status is {status}, not Closed"
    if incident.classification is not IncidentClassification.UNDETERMINED:
        classification = incident.classification.value if incident.classification else "not set"
        return f"Classification is {classification}, not Undetermined"
    if not is_unassigned(incident):
        return f"Assigned to {incident.owner.assigned_to}"
    return None
