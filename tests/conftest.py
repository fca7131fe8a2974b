"""Shared fixtures and fakes for the reopener tests."""

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest

from incident_reopener.config import ReopenerConfig
from incident_reopener.errors import AuthError, StoreError
from incident_reopener.models import (
    Incident,
    IncidentClassification,
    IncidentOwner,
    IncidentPage,
    IncidentPatch,
    IncidentSeverity,
    IncidentStatus,
)

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
INCIDENTS_PATH = (
    "/subscriptions/sub-1/resourceGroups/rg-sec/providers/Microsoft.OperationalInsights"
    "/workspaces/ws-sentinel/providers/Microsoft.SecurityInsights/incidents"
)


def make_incident(
    number: int,
    status: Optional[IncidentStatus] = IncidentStatus.CLOSED,
    classification: Optional[IncidentClassification] = IncidentClassification.UNDETERMINED,
    assigned_to: Optional[str] = None,
    minutes_ago: int = 10,
    severity: IncidentSeverity = IncidentSeverity.MEDIUM,
) -> Incident:
    return Incident(
        id=f"{INCIDENTS_PATH}/incident-{number}",
        name=f"incident-{number}",
        number=number,
        title=f"Suspicious sign-in {number}",
        status=status,
        classification=classification,
        owner=IncidentOwner(assigned_to=assigned_to) if assigned_to else None,
        severity=severity,
        last_modified=NOW - timedelta(minutes=minutes_ago),
    )


class FakeIncidentStore:
    """In-memory incident store recording every call."""

    def __init__(
        self,
        incidents: Optional[List[Incident]] = None,
        fail_list: bool = False,
        fail_update: Optional[Set[int]] = None,
        fail_comment: Optional[Set[int]] = None,
        next_link: Optional[str] = None,
    ):
        self.incidents: Dict[str, Incident] = {i.id: i for i in incidents or []}
        self.fail_list = fail_list
        self.fail_update = fail_update or set()
        self.fail_comment = fail_comment or set()
        self.next_link = next_link
        self.list_calls = 0
        self.updates: List[Tuple[str, IncidentPatch]] = []
        self.comments: List[Tuple[str, str]] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self) -> "FakeIncidentStore":
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.exited += 1

    def _number(self, incident_id: str) -> int:
        return self.incidents[incident_id].number

    async def list_closed_incidents(self, window: timedelta, now: Optional[datetime] = None) -> IncidentPage:
        self.list_calls += 1
        if self.fail_list:
            raise StoreError("list failed", status=503)
        closed = [dataclasses.replace(i) for i in self.incidents.values() if i.status is IncidentStatus.CLOSED]
        closed.sort(key=lambda i: i.last_modified, reverse=True)
        return IncidentPage(incidents=closed, next_link=self.next_link)

    async def update_incident(self, incident_id: str, patch: IncidentPatch) -> None:
        if self._number(incident_id) in self.fail_update:
            raise StoreError("update rejected", status=409)
        self.updates.append((incident_id, patch))
        self.incidents[incident_id] = dataclasses.replace(
            self.incidents[incident_id],
            status=patch.status,
            classification=patch.classification,
            title=patch.title,
            severity=patch.severity,
        )

    async def add_comment(self, incident_id: str, message: str) -> str:
        if self._number(incident_id) in self.fail_comment:
            raise StoreError("comment rejected", status=500)
        self.comments.append((incident_id, message))
        return f"comment-{len(self.comments)}"


class FakeCredentialProvider:
    def __init__(self, token: str = "test-token", fail: bool = False):
        self.token = token
        self.fail = fail
        self.calls = 0

    async def acquire_token(self) -> str:
        self.calls += 1
        if self.fail:
            raise AuthError("Failed to acquire a management API token: identity endpoint unavailable")
        return self.token


@pytest.fixture
def environ() -> Dict[str, str]:
    return {
        "SUBSCRIPTION_ID": "sub-1",
        "RESOURCE_GROUP_NAME": "rg-sec",
        "WORKSPACE_NAME": "ws-sentinel",
        "TIME_WINDOW_HOURS": "24",
    }


@pytest.fixture
def config(environ) -> ReopenerConfig:
    return ReopenerConfig.from_env(environ)
