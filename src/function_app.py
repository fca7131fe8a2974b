# =============================================================================
# SENTINEL CLOSED-INCIDENT REOPENER
# =============================================================================
#
# Finds Microsoft Sentinel incidents that were closed with classification
# "Undetermined" and no owner, and reopens them so they are not silently lost.
#
# 1. Azure Functions - Serverless entry points
#    - HTTP trigger - On-demand run, called from the Azure portal (CORS enabled)
#    - Timer trigger - Scheduled run every five minutes
#    - Health check - Configuration status without network calls
#
# 2. Azure Resource Manager - Sentinel incidents REST API
#    - Lists closed incidents, updates their status, adds audit comments
#    - Authenticated with the function app's managed identity or a service principal
#
# Every entry point shares the same eligibility criteria and workflow from the
# incident_reopener package.

import json
import logging

import azure.functions as func

from incident_reopener.triggers import (
    TIMER_INVOKER,
    handle_health,
    handle_reopen_request,
    run_scheduled,
)

# Initialize the Azure Functions app
app = func.FunctionApp()

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# =============================================================================
# REOPEN ENDPOINTS
# =============================================================================

@app.route(route="reopen-incidents", methods=["GET", "OPTIONS"], auth_level=func.AuthLevel.FUNCTION)
async def http_reopen_incidents(req: func.HttpRequest) -> func.HttpResponse:
    """
    HTTP trigger to reopen closed, unassigned, Undetermined incidents on demand.
    Accepts an optional timeWindowHours query parameter.
    """
    return await handle_reopen_request(req)


@app.function_name("scheduled_reopen_incidents")
@app.timer_trigger(schedule="0 */5 * * * *", arg_name="timer", run_on_startup=False)
async def scheduled_reopen_incidents(timer: func.TimerRequest) -> None:
    """Timer trigger running the same reopen workflow on a schedule."""
    if timer.past_due:
        logger.warning("Reopen timer is past due")

    status_code, result = await run_scheduled(TIMER_INVOKER)
    if status_code == 200:
        logger.info(f"Scheduled reopen run result: {json.dumps(result, default=str)}")
    else:
        logger.error(f"Scheduled reopen run failed: {json.dumps(result, default=str)}")

# Health check endpoint
@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
async def http_health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint for monitoring."""
    logger.info("Processing health check")
    return handle_health()
