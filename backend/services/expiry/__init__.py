"""
Expiry service - releases seats held by bookings that were never confirmed.
"""

from .hold_expiry import (
    DEFAULT_JOB_NAME,
    SweepResult,
    expire_stale_holds,
    find_stale_holds,
    run_expiry_sweep,
)

__all__ = [
    "DEFAULT_JOB_NAME",
    "SweepResult",
    "expire_stale_holds",
    "find_stale_holds",
    "run_expiry_sweep",
]
