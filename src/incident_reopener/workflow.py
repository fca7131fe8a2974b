"""End-to-end reopen run: authenticate, list, filter, remediate, report."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncContextManager, Callable, Iterable, Iterator, Optional

from incident_reopener.config import ReopenerConfig
from incident_reopener.credentials import CredentialProvider
from incident_reopener.eligibility import REOPEN_CRITERIA, is_eligible, skip_reason
from incident_reopener.errors import PerIncidentError
from incident_reopener.executor import ReopenExecutor
from incident_reopener.models import Incident, ReopenDecision, RunSummary, Verdict
from incident_reopener.store import IncidentStore, SentinelIncidentClient

logger = logging.getLogger(__name__)

StoreFactory = Callable[[str], AsyncContextManager[IncidentStore]]


class WorkflowStage(str, Enum):
    INIT = "Init"
    AUTHENTICATED = "Authenticated"
    LISTED = "Listed"
    FILTERING = "Filtering"
    REMEDIATING = "Remediating"
    REPORTED = "Reported"


def scan_incidents(incidents: Iterable[Incident], cutoff: datetime) -> Iterator[Incident]:
    """
    Yield incidents until one falls at or before the cutoff.

    The input must be ordered by last-modified time, newest first, so every
    incident after the first stale one is stale too. Incidents without a
    timestamp never stop the scan.
    """
    for incident in incidents:
        if incident.last_modified is not None and incident.last_modified <= cutoff:
            logger.info(f"Incident {incident.number} is outside the time window; stopping scan")
            return
        yield incident


class IncidentReopenWorkflow:
    """
    Runs one reopen pass over a Sentinel workspace.

    Token and listing failures are fatal and propagate. Failures while handling
    an individual incident are recorded in its decision and the batch continues.
    """

    def __init__(
        self,
        config: ReopenerConfig,
        invoked_by: str,
        credential_provider: Optional[CredentialProvider] = None,
        store_factory: Optional[StoreFactory] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._config = config
        self._invoked_by = invoked_by
        self._credentials = credential_provider or CredentialProvider(config)
        self._store_factory = store_factory or (lambda token: SentinelIncidentClient(config, token))
        self._clock = clock
        self.stage = WorkflowStage.INIT

    def _advance(self, stage: WorkflowStage) -> None:
        self.stage = stage
        logger.debug(f"Reopen workflow stage: {stage.value}")

    async def run(self) -> RunSummary:
        """
        Execute the run.

        Returns:
            RunSummary with one decision per incident examined

        Raises:
            AuthError: If no token could be acquired
            StoreError: If the closed incidents could not be listed
        """
        now = self._clock()
        cutoff = now - self._config.time_window
        logger.info(
            f"Starting reopen run for workspace {self._config.workspace_name} "
            f"({self._config.time_window_hours}h window, invoked by {self._invoked_by})"
        )

        token = await self._credentials.acquire_token()
        self._advance(WorkflowStage.AUTHENTICATED)

        summary = RunSummary(
            workspace=self._config.workspace_name,
            executed_at=now,
            criteria=dict(REOPEN_CRITERIA),
            time_window_hours=self._config.time_window_hours,
            invoked_by=self._invoked_by,
        )

        async with self._store_factory(token) as store:
            page = await store.list_closed_incidents(self._config.time_window, now=now)
            self._advance(WorkflowStage.LISTED)
            summary.more_incidents_available = page.has_more

            executor = ReopenExecutor(store, self._invoked_by, clock=self._clock)

            self._advance(WorkflowStage.FILTERING)
            for incident in scan_incidents(page.incidents, cutoff):
                decision = await self._process(executor, incident)
                summary.decisions.append(decision)

        self._advance(WorkflowStage.REPORTED)
        logger.info(
            f"Reopen run complete: {summary.total_analyzed} analyzed, "
            f"{summary.reopened_count} reopened, {summary.failed_count} failed"
        )
        return summary

    async def _process(self, executor: ReopenExecutor, incident: Incident) -> ReopenDecision:
        try:
            if not is_eligible(incident):
                reason = skip_reason(incident) or "Does not match the reopen criteria"
                logger.debug(f"Skipping incident {incident.number}: {reason}")
                return ReopenDecision(incident=incident, verdict=Verdict.SKIP, reason=reason)

            self._advance(WorkflowStage.REMEDIATING)
            outcome = await executor.reopen(incident)
            return ReopenDecision(
                incident=incident,
                verdict=Verdict.REOPEN,
                reason="Closed as Undetermined with no owner",
                outcome=outcome,
            )
        except Exception as e:
            error = PerIncidentError(incident.number, e)
            logger.error(f"Error processing incident: {error}", exc_info=True)
            return ReopenDecision(
                incident=incident,
                verdict=Verdict.REOPEN,
                reason="Unexpected error while processing",
                error=str(error),
            )


async def run_workflow(config: ReopenerConfig, invoked_by: str, **kwargs) -> RunSummary:
    """Run the reopen workflow once. Shared by the HTTP, timer and runbook entry points."""
    return await IncidentReopenWorkflow(config, invoked_by, **kwargs).run()
