"""Celery tasks for booking background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name="bookings.expire_booking_holds")
def expire_booking_holds():
    """
    Periodic sweep that expires lapsed seat holds.

    Runs every minute from the beat schedule. A run where most expirations
    failed raises, so the task shows up as failed in monitoring.
    """
    from services.booking_lifecycle import ExpirySweepPartialFailure
    from services.expiry import run_expiry_sweep

    result = run_expiry_sweep()
    if result.status == "failure":
        raise ExpirySweepPartialFailure(result)
    return {
        "expired": len(result.expired),
        "skipped": len(result.skipped),
        "failed": len(result.failed),
    }


@shared_task(name="bookings.settle_completed_bookings")
def settle_completed_bookings(limit=None):
    """Re-drive settlement for completed bookings without an earning."""
    from configuration.models import CronRun
    from services.settlement import settle_unsettled_bookings

    result = settle_unsettled_bookings(limit=limit)
    CronRun.record("bookings:settle-completed", result.status, result.message)
    if result.failed:
        logger.error(result.message)
    return {"settled": len(result.settled), "failed": len(result.failed)}
