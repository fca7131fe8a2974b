"""Reopens a single incident and records an audit comment."""

import logging
from datetime import datetime, timezone
from typing import Callable

from incident_reopener.errors import StoreError
from incident_reopener.models import Incident, IncidentPatch, ReopenOutcome
from incident_reopener.store import IncidentStore

logger = logging.getLogger(__name__)

AUDIT_COMMENT_TEMPLATE = (
    "Incident automatically reopened by {invoked_by} at {timestamp} UTC. "
    "It was closed with classification 'Undetermined' and no owner assigned. "
    "Please review, assign an owner and close it with a definitive classification."
)


class ReopenExecutor:
    """
    Moves an incident from Closed back to Active.

    The status update is the goal of the operation; the audit comment is best
    effort and a comment failure never undoes a successful reopen.
    """

    def __init__(
        self,
        store: IncidentStore,
        invoked_by: str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store = store
        self._invoked_by = invoked_by
        self._clock = clock

    def audit_message(self) -> str:
        timestamp = self._clock().astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        return AUDIT_COMMENT_TEMPLATE.format(invoked_by=self._invoked_by, timestamp=timestamp)

    async def reopen(self, incident: Incident) -> ReopenOutcome:
        patch = IncidentPatch.reopen(incident)

        try:
            await self._store.update_incident(incident.id, patch)
        except StoreError as e:
            logger.error(f"Failed to reopen incident {incident.number}: {e}")
            return ReopenOutcome.failed("update", str(e))

        logger.info(f"Reopened incident {incident.number}: {incident.title}")

        try:
            await self._store.add_comment(incident.id, self.audit_message())
        except Exception as e:
            logger.warning(f"Incident {incident.number} reopened but the audit comment failed: {e}", exc_info=True)
            return ReopenOutcome.success(comment_warning=f"Audit comment failed: {e}")

        return ReopenOutcome.success()
