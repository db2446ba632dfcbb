"""
Read-through provider for runtime business settings.

Values live in ``SystemSetting`` rows and are served from Django's cache for
``SYSTEM_SETTINGS_CACHE_TTL`` seconds, so readers may observe a value up to
one TTL stale after an admin edits it. ``set()`` invalidates the key
immediately for the current cache backend.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache as default_cache
from django.utils.module_loading import import_string

from .models import SystemSetting

logger = logging.getLogger(__name__)

CACHE_PREFIX = "setting."

DEFAULTS = {
    'bookings.seat_hold_minutes': 10,
    'bookings.cancellation_deadline_hours': 3,
    'bookings.allow_cancellation': True,
    'bookings.require_driver_acceptance_default': True,
    'bookings.max_active_requests_per_user': 5,
    'bookings.refund_policy': 'none',
    'business.commission_type': 'percent',
    'business.commission_value': Decimal('0'),
    'payments.method_cash_enabled': True,
    'chat.enabled': True,
    'chat.system_messages_enabled': True,
    'chat.allow_after_completion': False,
    'payouts.enabled': True,
    'payouts.auto_approve': False,
    'payouts.methods': ['bank', 'manual'],
    'wallet.min_payout_amount': Decimal('100'),
}

_MISSING = object()


@dataclass(frozen=True)
class BookingPolicy:
    """Settings snapshot taken once per booking operation."""
    hold_minutes: int
    cancellation_deadline_hours: int
    allow_cancellation: bool
    require_driver_acceptance: bool
    max_active_requests: int
    refund_policy: str
    commission_type: str
    commission_value: Decimal
    cash_enabled: bool
    chat_allow_after_completion: bool


class SettingsProvider:
    def __init__(self, cache=None, ttl: Optional[int] = None, defaults: Optional[dict] = None):
        self.cache = cache or default_cache
        self.ttl = settings.SYSTEM_SETTINGS_CACHE_TTL if ttl is None else ttl
        self.defaults = {**DEFAULTS, **getattr(settings, 'SYSTEM_SETTING_DEFAULTS', {}), **(defaults or {})}

    def get(self, key: str, default: Any = _MISSING) -> Any:
        cache_key = CACHE_PREFIX + key
        cached = self.cache.get(cache_key, _MISSING)
        if cached is _MISSING:
            row = SystemSetting.objects.filter(key=key).first()
            # Misses are cached too so an unset key does not hit the DB every read
            cached = (True, row.typed_value()) if row else (False, None)
            self.cache.set(cache_key, cached, self.ttl)

        found, value = cached
        if found:
            return value
        if default is not _MISSING:
            return default
        return self.defaults.get(key)

    def get_bool(self, key: str, default: Any = _MISSING) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ('1', 'true', 'yes', 'on')
        return bool(value)

    def get_int(self, key: str, default: Any = _MISSING) -> int:
        return int(self.get(key, default))

    def get_decimal(self, key: str, default: Any = _MISSING) -> Decimal:
        return Decimal(str(self.get(key, default)))

    def set(self, key: str, value: Any, type: str = 'string', group: Optional[str] = None,
            description: str = "") -> SystemSetting:
        defaults = {
            'value': SystemSetting.serialize_value(value),
            'type': type,
            'group': group or key.split('.', 1)[0],
        }
        if description:
            defaults['description'] = description
        setting, _ = SystemSetting.objects.update_or_create(key=key, defaults=defaults)
        self.cache.delete(CACHE_PREFIX + key)
        logger.info("System setting %s updated", key)
        return setting

    def forget(self, key: str) -> None:
        self.cache.delete(CACHE_PREFIX + key)

    def booking_policy(self) -> BookingPolicy:
        return BookingPolicy(
            hold_minutes=self.get_int('bookings.seat_hold_minutes'),
            cancellation_deadline_hours=self.get_int('bookings.cancellation_deadline_hours'),
            allow_cancellation=self.get_bool('bookings.allow_cancellation'),
            require_driver_acceptance=self.get_bool('bookings.require_driver_acceptance_default'),
            max_active_requests=self.get_int('bookings.max_active_requests_per_user'),
            refund_policy=str(self.get('bookings.refund_policy')),
            commission_type=str(self.get('business.commission_type')),
            commission_value=self.get_decimal('business.commission_value'),
            cash_enabled=self.get_bool('payments.method_cash_enabled'),
            chat_allow_after_completion=self.get_bool('chat.allow_after_completion'),
        )


def get_settings_provider() -> SettingsProvider:
    provider_path = getattr(settings, 'SYSTEM_SETTINGS_PROVIDER', None)
    if provider_path:
        return import_string(provider_path)()
    return SettingsProvider()
