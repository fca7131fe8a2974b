"""
Scheduled-job entry point for the Sentinel incident reopener.

Runs one reopen pass outside Azure Functions, for example as an Automation
runbook or a cron job. Configuration comes from named variables in the
environment; a .env file next to this script or in its parent directory is
loaded first when present.

Usage:
    python runbook.py
"""

# Standard imports
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from incident_reopener.triggers import RUNBOOK_INVOKER, run_scheduled

logger = logging.getLogger(__name__)


def load_environment() -> None:
    script_dir = Path(__file__).resolve().parent
    for candidate in (script_dir / ".env", script_dir.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate)
            logger.info(f"Loaded environment from {candidate}")
            return


def main() -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    load_environment()

    status_code, result = asyncio.run(run_scheduled(RUNBOOK_INVOKER))
    print(json.dumps(result, indent=2, default=str))

    if status_code != 200:
        logger.error("Reopen run failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
