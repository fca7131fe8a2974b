"""
Invocation adapters.

Each adapter builds the configuration, runs the shared workflow and turns the
result or the fatal error into exactly one JSON document.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import azure.functions as func

from incident_reopener.config import (
    ReopenerConfig,
    get_cors_origin,
    parse_time_window_hours,
)
from incident_reopener.errors import ConfigError, ReopenerError
from incident_reopener.models import RunSummary
from incident_reopener.responses import config_error_to_dict, error_to_dict, summary_to_dict
from incident_reopener.workflow import run_workflow

logger = logging.getLogger(__name__)

HTTP_INVOKER = "Azure Function (HTTP trigger)"
TIMER_INVOKER = "Azure Function (timer trigger)"
RUNBOOK_INVOKER = "Automation runbook"

TIME_WINDOW_PARAM = "timeWindowHours"

WorkflowRunner = Callable[[ReopenerConfig, str], Awaitable[RunSummary]]


def cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }


def json_response(payload: Dict[str, Any], status_code: int, origin: str) -> func.HttpResponse:
    headers = cors_headers(origin)
    headers["Content-Type"] = "application/json"
    return func.HttpResponse(json.dumps(payload, default=str), status_code=status_code, headers=headers)


async def execute(
    config: ReopenerConfig,
    invoked_by: str,
    runner: WorkflowRunner = run_workflow,
) -> Tuple[int, Dict[str, Any]]:
    """
    Run the workflow and map the outcome to (status code, response document).

    Per-incident failures stay inside a 200; only fatal errors produce a 500.
    """
    try:
        summary = await runner(config, invoked_by)
    except ReopenerError as e:
        logger.error(f"Reopen run failed: {e}")
        return 500, error_to_dict(e)
    except Exception as e:
        logger.exception("Unexpected error during reopen run")
        return 500, error_to_dict(e)
    return 200, summary_to_dict(summary)


async def handle_reopen_request(
    req: func.HttpRequest,
    environ: Optional[Mapping[str, str]] = None,
    runner: WorkflowRunner = run_workflow,
) -> func.HttpResponse:
    """Handle GET/OPTIONS on the on-demand reopen endpoint."""
    origin = get_cors_origin(environ)

    if req.method.upper() == "OPTIONS":
        return func.HttpResponse(status_code=200, headers=cors_headers(origin))

    logger.info("Processing on-demand reopen request")

    try:
        config = ReopenerConfig.from_env(environ)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return json_response(config_error_to_dict(e), 500, origin)

    window = req.params.get(TIME_WINDOW_PARAM)
    if window:
        try:
            config = config.with_time_window(parse_time_window_hours(window))
        except ConfigError as e:
            return json_response({"error": str(e)}, 400, origin)

    status_code, payload = await execute(config, HTTP_INVOKER, runner)
    return json_response(payload, status_code, origin)


async def run_scheduled(
    invoked_by: str,
    environ: Optional[Mapping[str, str]] = None,
    runner: WorkflowRunner = run_workflow,
) -> Tuple[int, Dict[str, Any]]:
    """Schedule-triggered run reading configuration from named variables."""
    try:
        config = ReopenerConfig.from_env(environ)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 500, config_error_to_dict(e)
    return await execute(config, invoked_by, runner)


def handle_health(environ: Optional[Mapping[str, str]] = None) -> func.HttpResponse:
    """Report whether the reopener is configured. Makes no network calls."""
    origin = get_cors_origin(environ)
    health: Dict[str, Any] = {
        "service": "sentinel-incident-reopener",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    try:
        config = ReopenerConfig.from_env(environ)
    except ConfigError as e:
        health.update(status="misconfigured", error=str(e))
        return json_response(health, 500, origin)

    health.update(status="healthy", workspace=config.workspace_name, timeWindowHours=config.time_window_hours)
    return json_response(health, 200, origin)
