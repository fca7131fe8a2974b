"""Reopens Microsoft Sentinel incidents closed as Undetermined with no owner."""

from incident_reopener.config import ReopenerConfig
from incident_reopener.eligibility import REOPEN_CRITERIA, is_eligible
from incident_reopener.errors import (
    AuthError,
    ConfigError,
    PerIncidentError,
    ReopenerError,
    StoreError,
)
from incident_reopener.workflow import IncidentReopenWorkflow, run_workflow

__all__ = [
    "AuthError",
    "ConfigError",
    "IncidentReopenWorkflow",
    "PerIncidentError",
    "REOPEN_CRITERIA",
    "ReopenerConfig",
    "ReopenerError",
    "StoreError",
    "is_eligible",
    "run_workflow",
]
