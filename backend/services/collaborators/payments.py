"""Payment gateway verification seam."""

import logging
from enum import Enum
from typing import Protocol

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PaymentVerdict(str, Enum):
    PAID = 'paid'
    REFUNDED = 'refunded'
    FAILED = 'failed'


class PaymentGatewayVerifier(Protocol):
    def verify_payment(self, booking_id: int, provider_ref: str) -> PaymentVerdict:
        ...

    def verify_refund(self, booking_id: int, provider_ref: str) -> PaymentVerdict:
        ...


class UnconfiguredPaymentVerifier:
    """Fallback used until a real gateway verifier is configured. Never confirms."""

    def verify_payment(self, booking_id: int, provider_ref: str) -> PaymentVerdict:
        logger.warning(
            "No payment gateway verifier configured; treating %s for booking %s as failed",
            provider_ref, booking_id,
        )
        return PaymentVerdict.FAILED

    def verify_refund(self, booking_id: int, provider_ref: str) -> PaymentVerdict:
        logger.warning(
            "No payment gateway verifier configured; ignoring refund of %s for booking %s",
            provider_ref, booking_id,
        )
        return PaymentVerdict.FAILED


def get_payment_verifier() -> PaymentGatewayVerifier:
    return import_string(settings.PAYMENT_GATEWAY_VERIFIER)()
