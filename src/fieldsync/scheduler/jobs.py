"""
APScheduler jobs for background reconciliation.

A periodic pass pushes and pulls whatever webhooks and local writes have left
pending. It is a safety net: orchestrators may also call ReconcileService
directly right after an event.

The scheduler is built un-started; the embedding process owns its lifecycle.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from fieldsync.config import get_settings
from fieldsync.models.history import Initiator

logger = logging.getLogger(__name__)


def build_scheduler(reconciler) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        reconciler: ReconcileService used by the job. Its tracker supplies
            the list of tenants.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _reconcile_pending,
        trigger="interval",
        minutes=settings.reconcile_interval_minutes,
        id="reconcile_pending",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={"reconciler": reconciler},
    )

    return scheduler


async def _reconcile_pending(reconciler) -> None:
    """
    Periodic job: reconcile every tracked tenant.

    One tenant failing is logged and does not stop the rest.
    """
    try:
        tenants = reconciler.tracker.list_tenants()
    except Exception as exc:
        logger.error("Scheduled reconcile could not list tenants: %s", exc)
        return

    logger.info("Scheduled reconcile starting for %d tenant(s)", len(tenants))
    for tenant_id in tenants:
        try:
            await reconciler.reconcile_tenant(tenant_id, initiated_by=Initiator.SCHEDULED)
        except Exception as exc:
            logger.error("Scheduled reconcile failed for tenant %s: %s", tenant_id, exc)
