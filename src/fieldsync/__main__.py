"""
Operator CLI for the sync tracker.

Usage:
    python -m fieldsync init TENANT
    python -m fieldsync status TENANT
    python -m fieldsync conflicts TENANT
    python -m fieldsync history TENANT [--category C] [--limit N] [--offset N]
    python -m fieldsync run [--client MOD:FACTORY] [--local-store MOD:FACTORY]

The HTTP API runs separately under uvicorn:
    uvicorn fieldsync.api.main:app --host 0.0.0.0 --port 8000

Output is JSON on stdout. `run` starts the periodic reconcile scheduler and
blocks until interrupted; its client and local store come from the given
import paths, or from FIELDSYNC_RECONCILE_CLIENT / FIELDSYNC_RECONCILE_LOCAL_STORE.
"""
import argparse
import asyncio
import importlib
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from fieldsync.config import get_settings

logger = logging.getLogger(__name__)


def _dump(payload) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _records(records) -> list:
    return [r.model_dump(mode="json") for r in records]


def load_factory(path: str):
    """Resolve a "package.module:attribute" import path."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected module:attribute, got {path!r}")
    return getattr(importlib.import_module(module_name), attr)


async def _serve(reconciler) -> None:
    from fieldsync.scheduler.jobs import build_scheduler

    scheduler = build_scheduler(reconciler)
    scheduler.start()
    logger.info(
        "Scheduler started (reconcile every %d min)",
        get_settings().reconcile_interval_minutes,
    )
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()


def _run(args, engine, tracker) -> int:
    from fieldsync.reconcile.service import ReconcileService
    from fieldsync.tracking.history import SyncHistoryLogger

    settings = get_settings()
    client_path = args.client or settings.reconcile_client
    local_path = args.local_store or settings.reconcile_local_store
    if not client_path or not local_path:
        logger.error(
            "No reconcile client or local store configured. Pass --client and "
            "--local-store, or set FIELDSYNC_RECONCILE_CLIENT and "
            "FIELDSYNC_RECONCILE_LOCAL_STORE."
        )
        return 1
    try:
        client = load_factory(client_path)()
        local_store = load_factory(local_path)()
    except (ImportError, AttributeError, ValueError) as exc:
        logger.error("Could not load reconcile collaborators: %s", exc)
        return 1

    reconciler = ReconcileService(tracker, SyncHistoryLogger(engine), client, local_store)
    asyncio.run(_serve(reconciler))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fieldsync", description="Field sync tracking")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="Seed tracking records for a tenant")
    p_init.add_argument("tenant")

    p_status = sub.add_parser("status", help="Status summary for a tenant")
    p_status.add_argument("tenant")

    p_conflicts = sub.add_parser("conflicts", help="Fields currently in conflict")
    p_conflicts.add_argument("tenant")

    p_history = sub.add_parser("history", help="Recent sync history")
    p_history.add_argument("tenant")
    p_history.add_argument("--category", default=None)
    p_history.add_argument("--limit", type=int, default=None)
    p_history.add_argument("--offset", type=int, default=0)

    p_run = sub.add_parser("run", help="Run the periodic reconcile scheduler")
    p_run.add_argument("--client", default=None, help="module:factory for the profile-service client")
    p_run.add_argument("--local-store", default=None, help="module:factory for the local value store")

    return parser


def main(argv: Optional[List[str]] = None, engine=None) -> int:
    from fieldsync.db.engine import get_engine
    from fieldsync.tracking.errors import SyncTrackingError
    from fieldsync.tracking.history import SyncHistoryLogger
    from fieldsync.tracking.service import SyncTrackingService
    from fieldsync.tracking.store import SyncStateStore
    from fieldsync.tracking.summary import get_status_summary

    args = build_parser().parse_args(argv)
    engine = engine or get_engine()
    tracker = SyncTrackingService(SyncStateStore(engine))

    if args.command == "run":
        return _run(args, engine, tracker)

    try:
        if args.command == "init":
            created = tracker.initialize(args.tenant)
            _dump({"tenant_id": args.tenant, "created": created})
        elif args.command == "status":
            _dump(asdict(get_status_summary(tracker.store, args.tenant)))
        elif args.command == "conflicts":
            _dump(_records(tracker.get_conflicts(args.tenant)))
        elif args.command == "history":
            history = SyncHistoryLogger(engine)
            entries = history.get_history(
                args.tenant, category=args.category, limit=args.limit, offset=args.offset
            )
            _dump(_records(entries))
    except SyncTrackingError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    sys.exit(main())
