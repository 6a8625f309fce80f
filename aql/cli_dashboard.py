from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from . import codec
from .backend import BackendClient
from .dashboard import JobDashboard
from .errors import ConfigError
from .metrics import ReportingClient
from .settings import configure_logging, settings

logger = logging.getLogger(__name__)


async def load_dashboard(
    client: BackendClient,
    customer_id: str,
    time_filter: Optional[str] = None,
    job_id: Optional[str] = None,
) -> Dict[str, Any]:
    async with client, ReportingClient() as reporting:
        dashboard = JobDashboard(customer_id, client, reporting, time_filter=time_filter)
        await dashboard.load_jobs()
        if job_id and not await dashboard.select_job(job_id):
            logger.warning("Job %s is not one of the customer's jobs", job_id)
        return dashboard.snapshot()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Load a customer's job dashboard once and print it")
    parser.add_argument("--customer", required=True, help="Customer id")
    parser.add_argument("--time-filter", default=settings.dashboard.get("default_time_filter", "This month"))
    parser.add_argument("--job", default=None, help="Job to select instead of the first")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    try:
        client = BackendClient.from_settings()
    except ConfigError as e:
        print(codec.dumps({"status": "error", "error_type": "ConfigError", "error_message": str(e)}), file=sys.stderr)
        return 1

    state = asyncio.run(load_dashboard(client, args.customer, args.time_filter, args.job))
    print(codec.dumps(state))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
