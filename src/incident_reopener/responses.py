"""JSON documents returned by every entry point."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from incident_reopener.models import ReopenDecision, RunSummary


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def decision_to_dict(decision: ReopenDecision) -> Dict[str, Any]:
    incident = decision.incident
    entry: Dict[str, Any] = {
        "incidentNumber": incident.number,
        "title": incident.title,
        "status": incident.status.value if incident.status else "",
        "classification": incident.classification.value if incident.classification else "",
        "reopened": decision.reopened,
        "action": decision.action,
    }

    if decision.action == "skipped":
        entry["reason"] = decision.reason
    elif decision.error is not None:
        entry["error"] = decision.error
    elif decision.outcome is not None and decision.outcome.error:
        entry["error"] = decision.outcome.error

    if decision.outcome is not None and decision.outcome.comment_warning:
        entry["warning"] = decision.outcome.comment_warning

    return entry


def build_message(summary: RunSummary) -> str:
    message = (
        f"Analyzed {summary.total_analyzed} closed incidents in the last "
        f"{summary.time_window_hours:g} hours and reopened {summary.reopened_count}"
    )
    if summary.failed_count:
        message += f" ({summary.failed_count} failed)"
    if summary.more_incidents_available:
        message += "; more closed incidents matched than one page, the rest will be handled by a later run"
    return message


def summary_to_dict(summary: RunSummary) -> Dict[str, Any]:
    """Render a run summary as the success response document."""
    return {
        "success": True,
        "message": build_message(summary),
        "summary": {
            "totalIncidentsAnalyzed": summary.total_analyzed,
            "incidentsReopened": summary.reopened_count,
            "incidentsFailed": summary.failed_count,
            "executionTime": summary.executed_at.isoformat(),
            "sentinelWorkspace": summary.workspace,
            "timeWindowHours": summary.time_window_hours,
            "moreIncidentsAvailable": summary.more_incidents_available,
        },
        "criteria": dict(summary.criteria),
        "incidentDetails": [decision_to_dict(decision) for decision in summary.decisions],
    }


def error_to_dict(error: BaseException, timestamp: Optional[str] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "error": str(error),
        "timestamp": timestamp or _utcnow_iso(),
    }


def config_error_to_dict(error: BaseException) -> Dict[str, Any]:
    return {"error": str(error)}
