"""
Seat hold expiry sweep.

The sweep is the only actor that fires ``expired``. Each booking is expired
in its own transaction so one failure never blocks the rest; bookings that
left the hold states between the scan and the lock are counted as skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from django.utils import timezone

from bookings.models import HOLD_STATUSES, Booking
from services.booking_lifecycle import InvalidTransition, expire_booking
from services.collaborators import BookingCollaborators, default_collaborators

logger = logging.getLogger(__name__)

DEFAULT_JOB_NAME = "bookings:expire-holds"


@dataclass
class SweepResult:
    expired: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.failed or len(self.expired) > len(self.failed):
            return 'success'
        return 'failure'

    @property
    def message(self) -> str:
        message = (
            f"Expired {len(self.expired)} booking(s), "
            f"skipped {len(self.skipped)}, failed {len(self.failed)}"
        )
        if self.failed:
            message += ": " + ", ".join(str(booking_id) for booking_id, _ in self.failed)
        return message


def find_stale_holds(now=None):
    now = now or timezone.now()
    return Booking.objects.filter(
        status__in=HOLD_STATUSES,
        hold_expires_at__lt=now,
    ).order_by('hold_expires_at', 'id')


def expire_stale_holds(now=None, collaborators: Optional[BookingCollaborators] = None) -> SweepResult:
    """Expire every booking whose seat hold lapsed before `now`."""
    now = now or timezone.now()
    collaborators = collaborators or default_collaborators()
    result = SweepResult()

    booking_ids = list(find_stale_holds(now).values_list('id', flat=True))
    for booking_id in booking_ids:
        try:
            expire_booking(booking_id, now=now, collaborators=collaborators)
        except InvalidTransition:
            result.skipped.append(booking_id)
        except Exception as exc:
            logger.exception("Failed to expire booking %s", booking_id)
            result.failed.append((booking_id, str(exc)))
        else:
            result.expired.append(booking_id)

    if booking_ids:
        logger.info(result.message)
    return result


def run_expiry_sweep(job_name: str = DEFAULT_JOB_NAME, now=None,
                     collaborators: Optional[BookingCollaborators] = None) -> SweepResult:
    """
    Run the sweep and record its outcome as a CronRun.

    A failure of the sweep as a whole (the scan query failing, say) is
    recorded and re-raised.
    """
    collaborators = collaborators or default_collaborators()
    try:
        result = expire_stale_holds(now=now, collaborators=collaborators)
    except Exception as exc:
        logger.exception("Hold expiry sweep %s failed", job_name)
        collaborators.cron.record(job_name, 'failure', f"Sweep aborted: {exc}")
        raise

    collaborators.cron.record(job_name, result.status, result.message)
    return result
