"""
Seat inventory guard.

The ride row lock taken here is the single race-prevention point for seat
inventory: concurrent reservations serialize on it, and the counter is
re-read under the lock before it is changed. Callers are responsible for
triggering at most one reserve and one release per booking.
"""

import logging
import time
from typing import Callable, TypeVar

from django.conf import settings
from django.db import OperationalError, connection, transaction

from rides.models import Ride

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_count(count: int) -> None:
    if not isinstance(count, int) or isinstance(count, bool) or count <= 0:
        raise ValueError(f"Seat count must be a positive integer, got {count!r}")


@transaction.atomic
def reserve_seats(ride_id: int, count: int) -> bool:
    """
    Take `count` seats from the ride if that many are still available.

    Returns False, without side effects, when the ride has too few seats or
    no longer exists.
    """
    _validate_count(count)

    ride = Ride.objects.select_for_update().filter(pk=ride_id).first()
    if ride is None:
        logger.warning("Seat reservation on missing ride %s", ride_id)
        return False

    if ride.seats_available < count:
        logger.info(
            "Ride %s has %s seat(s) left, %s requested",
            ride_id, ride.seats_available, count,
        )
        return False

    ride.seats_available -= count
    ride.save(update_fields=['seats_available', 'updated_at'])
    return True


@transaction.atomic
def release_seats(ride_id: int, count: int) -> bool:
    """
    Return `count` seats to the ride, clamped to seats_total.

    Returns False when the ride no longer exists.
    """
    _validate_count(count)

    if ride_id is None:
        return False

    ride = Ride.objects.select_for_update().filter(pk=ride_id).first()
    if ride is None:
        logger.warning("Seat release on missing ride %s", ride_id)
        return False

    restored = min(ride.seats_available + count, ride.seats_total)
    if restored != ride.seats_available + count:
        logger.warning(
            "Seat release on ride %s clamped to seats_total=%s",
            ride_id, ride.seats_total,
        )
    ride.seats_available = restored
    ride.save(update_fields=['seats_available', 'updated_at'])
    return True


def run_with_lock_retries(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Call `func`, retrying on lock contention errors.

    Retries only apply at the outermost transaction level; inside an
    enclosing atomic block the failed transaction cannot be replayed, so the
    error is raised straight away.
    """
    attempts = max(1, settings.SEAT_LOCK_RETRY_ATTEMPTS)
    delay = settings.SEAT_LOCK_RETRY_DELAY

    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except OperationalError:
            if connection.in_atomic_block or attempt == attempts:
                raise
            logger.warning(
                "Lock contention in %s (attempt %s/%s), retrying",
                getattr(func, "__name__", func), attempt, attempts,
            )
            if delay:
                time.sleep(delay * attempt)
