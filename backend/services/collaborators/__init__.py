"""
External collaborators consumed by the booking engine.

Service operations take an optional ``collaborators`` argument; when it is
omitted they build the defaults below, so tests can inject fakes without
touching module globals.
"""

from dataclasses import dataclass
from typing import Any, Protocol

from configuration.models import CronRun
from configuration.provider import SettingsProvider, get_settings_provider
from realtime.notifications import NotificationDispatcher

from .conversations import ChatDisabledError, ConversationService
from .payments import (
    PaymentGatewayVerifier,
    PaymentVerdict,
    UnconfiguredPaymentVerifier,
    get_payment_verifier,
)


class CronRunRecorder(Protocol):
    def record(self, command: str, status: str, message: str = "") -> Any:
        ...


@dataclass
class BookingCollaborators:
    settings: SettingsProvider
    notifier: NotificationDispatcher
    conversations: ConversationService
    payments: PaymentGatewayVerifier
    cron: CronRunRecorder


def default_collaborators(**overrides) -> BookingCollaborators:
    settings_provider = overrides.pop('settings', None) or get_settings_provider()
    values = {
        'settings': settings_provider,
        'notifier': NotificationDispatcher(),
        'conversations': ConversationService(settings_provider),
        'payments': get_payment_verifier(),
        'cron': CronRun,
    }
    values.update(overrides)
    return BookingCollaborators(**values)


__all__ = [
    "BookingCollaborators",
    "ChatDisabledError",
    "ConversationService",
    "CronRunRecorder",
    "PaymentGatewayVerifier",
    "PaymentVerdict",
    "UnconfiguredPaymentVerifier",
    "default_collaborators",
    "get_payment_verifier",
]
