"""Operational repairs and diagnostics against the hosted backend.

Usage: python -m aql.cli_maintenance <subcommand> [options]

Every subcommand that touches the backend runs as a maintenance run with a
hash-chained trail under artifacts/<run_id>/trail.jsonl, prints one JSON
summary, and exits 0 on completion or interruption and 1 on missing
configuration or error.
"""
from __future__ import annotations

import argparse
import asyncio
import hashlib
import os
import sys
import time
import traceback
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from . import codec, storage
from .backend import BackendClient
from .errors import BackendError, ConfigError
from .jobs import create_or_update_job_draft, finalize_job_draft
from .locations import link_inspector_location
from .monitor import JobsMonitor, describe_job
from .numbering import generate_job_number, get_next_job_sequence, increment_job_sequence
from .schemas import USER_ROLES, Customer, JobRecord
from .settings import ANON_KEY_ENV, SERVICE_KEY_ENV, URL_ENV, configure_logging, settings
from .trail import TRAIL_FILE, MaintenanceTrail, verify_chain


UNDEFINED_COLUMN = "42703"

JOBS_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "title",
    "status",
    "job_number",
    "location_number",
    "revision",
    "user_id",
    "customer_id",
    "customer_name",
    "customer_data",
    "location_id",
    "location_data",
    "inspector_id",
    "inspector_ids",
    "shifts_data",
    "form_data_json",
    "current_tab",
]

Step = Callable[..., None]
Action = Callable[[BackendClient, Step], Awaitable[Dict[str, Any]]]


def _emit(summary: Dict[str, Any], err: bool = False) -> None:
    print(codec.dumps(summary), file=sys.stderr if err else sys.stdout)


# Subcommand actions

async def _check_connection(client: BackendClient, step: Step) -> Dict[str, Any]:
    counts = {}
    for table in ("jobs", "profiles", "locations"):
        result = await client.table(table).select("id", count="exact", head=True).execute()
        counts[table] = result.count
        step(f"check_connection.{table}", count=result.count)
    return {"counts": counts}


async def _list_jobs(client: BackendClient, step: Step) -> Dict[str, Any]:
    rows = await JobsMonitor(client).snapshot()
    jobs = [describe_job(row) for row in rows]
    step("list_jobs.fetched", count=len(jobs))
    return {"jobs": jobs}


def _monitor_action(max_events: Optional[int], interval: Optional[float]) -> Action:
    async def action(client: BackendClient, step: Step) -> Dict[str, Any]:
        monitor = JobsMonitor(client, poll_interval_s=interval)
        await monitor.snapshot()
        step("monitor.subscribed", poll_interval_s=monitor.poll_interval_s)
        seen = 0
        try:
            async for event in monitor.events():
                print(codec.dumps({"event": event.event_type, "job": describe_job(event.new)}), flush=True)
                seen += 1
                if max_events is not None and seen >= max_events:
                    break
        finally:
            monitor.stop()
            step("monitor.unsubscribed", events=seen)
        return {"events": seen}

    return action


async def _fix_inspector_locations(client: BackendClient, step: Step) -> Dict[str, Any]:
    missing = await (
        client.table("profiles")
        .select("id,name,email,role,location_id")
        .eq("role", "inspector")
        .is_("location_id", None)
        .execute()
    )
    inspectors = missing.data or []
    step("fix_inspector_locations.scan", without_location=len(inspectors))
    if not inspectors:
        return {"updated": 0}

    locations = await client.table("locations").select("id,name,location_number").order("location_number").limit(1).execute()
    if not locations.data:
        raise BackendError("No locations found; create a location first")
    default = locations.data[0]

    await (
        client.table("profiles")
        .update({"location_id": default["id"]})
        .eq("role", "inspector")
        .is_("location_id", None)
        .execute()
    )
    linked = 0
    for inspector in inspectors:
        if await link_inspector_location(client, inspector["id"], default["id"]):
            linked += 1
    step("fix_inspector_locations.update", location_id=default["id"], updated=len(inspectors), linked=linked)
    return {"updated": len(inspectors), "linked": linked, "location_id": default["id"]}


def _set_role_action(user_id: str, role: str) -> Action:
    async def action(client: BackendClient, step: Step) -> Dict[str, Any]:
        current = await client.table("profiles").select("id,role").eq("id", user_id).single().execute()
        previous = current.data.get("role")
        if previous == role:
            step("set_role.unchanged", user_id=user_id, role=role)
            return {"user_id": user_id, "role": role, "changed": False}
        await client.table("profiles").update({"role": role}).eq("id", user_id).execute()
        step("set_role.updated", user_id=user_id, previous=previous, role=role)
        return {"user_id": user_id, "role": role, "previous": previous, "changed": True}

    return action


def _create_test_job_action(title: str, location_number: int, customer: str) -> Action:
    async def action(client: BackendClient, step: Step) -> Dict[str, Any]:
        existing = await client.table("jobs").select("id,job_number").eq("title", title).limit(1).execute()
        if existing.data:
            row = existing.data[0]
            step("create_test_job.exists", job_id=row["id"])
            return {"job_id": str(row["id"]), "job_number": row.get("job_number"), "created": False}

        sequence = await increment_job_sequence(client, location_number)
        job_number = generate_job_number(location_number, sequence)
        draft = await create_or_update_job_draft(
            client,
            JobRecord(
                title=title,
                job_number=job_number,
                location_number=location_number,
                revision=1,
                customer=Customer(name=customer),
                form_data={"contractNumber": title, "customerName": customer, "jobType": "inspection"},
            ),
        )
        step("create_test_job.draft", job_id=draft.id, job_number=job_number)
        job = await finalize_job_draft(client, draft.id)
        step("create_test_job.finalized", job_id=job.id, status=job.status)
        return {"job_id": job.id, "job_number": job.job_number, "created": True}

    return action


async def _verify_jobs_schema(client: BackendClient, step: Step) -> Dict[str, Any]:
    missing = []
    for column in JOBS_COLUMNS:
        try:
            await client.table("jobs").select(column).limit(1).execute()
        except BackendError as e:
            if e.code != UNDEFINED_COLUMN:
                raise
            missing.append(column)
    step("verify_jobs_schema.columns", checked=len(JOBS_COLUMNS), missing=missing)
    return {"checked": len(JOBS_COLUMNS), "missing": missing, "valid": not missing}


def _init_counter_action(location_number: int) -> Action:
    async def action(client: BackendClient, step: Step) -> Dict[str, Any]:
        sequence = await get_next_job_sequence(client, location_number)
        step("init_job_counter.ready", location_number=location_number, next_sequence=sequence)
        return {"location_number": location_number, "next_sequence": sequence}

    return action


async def _seed_local(client: Optional[BackendClient], step: Step) -> Dict[str, Any]:
    seeded = storage.seed_defaults()
    step("seed_local.seeded", **seeded)
    return {"seeded": seeded, "path": str(settings.local_store_path())}


# Run bookkeeping

async def _execute(command: str, client: Optional[BackendClient], action: Action) -> int:
    trail = MaintenanceTrail()
    start_perf_ns = time.perf_counter_ns()
    run_id = storage.create_run(command)
    run_dir = settings.artifacts_dir_for(run_id)

    def step(name: str, **details: Any) -> None:
        trail.log_event(run_id, step=name, status="ok", details=details)

    try:
        step("run_started", command=command, cfg_hash=settings.cfg_hash)
        result = await action(client, step)
        duration_ms = (time.perf_counter_ns() - start_perf_ns) // 1_000_000
        step("run_finished", duration_ms=int(duration_ms))
        storage.finish_run(run_id, status="ok", error_message=None)
        _emit(
            {
                "run_id": run_id,
                "command": command,
                "status": "ok",
                "result": result,
                "trail": str(run_dir / TRAIL_FILE),
            }
        )
        return 0
    except Exception as exc:
        tb_digest = hashlib.sha256(traceback.format_exc().encode("utf-8")).hexdigest()
        try:
            trail.log_event(
                run_id,
                step="run_failed",
                status="error",
                details={
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                    "traceback_digest": tb_digest,
                },
            )
        finally:
            storage.finish_run(run_id, status="error", error_message=str(exc))
            _emit(
                {
                    "run_id": run_id,
                    "command": command,
                    "status": "error",
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                    "trail": str(run_dir / TRAIL_FILE),
                },
                err=True,
            )
        return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        duration_ms = (time.perf_counter_ns() - start_perf_ns) // 1_000_000
        step("run_interrupted", duration_ms=int(duration_ms))
        storage.finish_run(run_id, status="interrupted", error_message=None)
        _emit({"run_id": run_id, "command": command, "status": "interrupted", "trail": str(run_dir / TRAIL_FILE)})
        return 0
    finally:
        if client is not None:
            await client.aclose()


def _run(command: str, action: Action, needs_backend: bool = True) -> int:
    client = None
    if needs_backend:
        try:
            client = BackendClient.from_settings(service=True)
        except ConfigError as e:
            _emit({"command": command, "status": "error", "error_type": "ConfigError", "error_message": str(e)}, err=True)
            return 1
    return asyncio.run(_execute(command, client, action))


# Subcommands without a run

def _check_env() -> int:
    present = [name for name in (URL_ENV, ANON_KEY_ENV, SERVICE_KEY_ENV) if os.getenv(name)]
    aliases = settings.legacy_env_aliases()
    try:
        url, _ = settings.backend_credentials()
    except ConfigError as e:
        _emit({"status": "error", "present": present, "legacy_aliases": aliases, "error_message": str(e)}, err=True)
        return 1
    _emit({"status": "ok", "url": url, "present": present, "legacy_aliases": aliases})
    return 0


def _verify_trail(run: str) -> int:
    target = Path(run)
    if target.is_dir():
        path = target / TRAIL_FILE
    else:
        path = settings.artifacts_dir_for(run) / TRAIL_FILE
    if not path.exists():
        _emit({"valid": False, "error": f"{TRAIL_FILE} not found", "path": str(path)})
        return 1
    result = verify_chain(path)
    _emit(result)
    return 0 if result.get("valid") else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AQL backend maintenance")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check-env", help="Report which backend credentials are set")
    sub.add_parser("check-connection", help="Count rows in the core tables")
    sub.add_parser("list-jobs", help="Summarize every job row")

    p = sub.add_parser("monitor", help="Print job inserts and updates as they happen")
    p.add_argument("--max-events", type=int, default=None)
    p.add_argument("--interval", type=float, default=None)

    sub.add_parser("fix-inspector-locations", help="Give inspectors without a location the first location")

    p = sub.add_parser("set-role", help="Set a user's profile role")
    p.add_argument("--user-id", required=True)
    p.add_argument("--role", required=True, choices=USER_ROLES)

    p = sub.add_parser("create-test-job", help="Create a pending job once per title")
    p.add_argument("--title", default="Test Inspection Job")
    p.add_argument("--location-number", type=int, default=1)
    p.add_argument("--customer", default="Test Customer")

    sub.add_parser("verify-jobs-schema", help="Check the jobs table for the expected columns")

    p = sub.add_parser("init-job-counter", help="Create the job counter for a location if missing")
    p.add_argument("--location-number", type=int, required=True)

    sub.add_parser("seed-local", help="Load sample data into the empty local store")

    p = sub.add_parser("verify-trail", help="Verify a run's trail hash chain")
    p.add_argument("--run", required=True, help="Run id or run directory")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "check-env":
        return _check_env()
    if args.command == "verify-trail":
        return _verify_trail(args.run)
    if args.command == "seed-local":
        return _run(args.command, _seed_local, needs_backend=False)
    if args.command == "check-connection":
        return _run(args.command, _check_connection)
    if args.command == "list-jobs":
        return _run(args.command, _list_jobs)
    if args.command == "monitor":
        try:
            return _run(args.command, _monitor_action(args.max_events, args.interval))
        except KeyboardInterrupt:
            return 0
    if args.command == "fix-inspector-locations":
        return _run(args.command, _fix_inspector_locations)
    if args.command == "set-role":
        return _run(args.command, _set_role_action(args.user_id, args.role))
    if args.command == "create-test-job":
        return _run(args.command, _create_test_job_action(args.title, args.location_number, args.customer))
    if args.command == "verify-jobs-schema":
        return _run(args.command, _verify_jobs_schema)
    # init-job-counter
    return _run(args.command, _init_counter_action(args.location_number))


if __name__ == "__main__":
    raise SystemExit(main())
