"""
Driver payout requests.

requested -> approved -> paid, with rejected reachable from requested or
approved. The wallet is debited when the request is made and credited back
on rejection, so a pending request can never be withdrawn twice.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.utils import timezone

from realtime.notifications import NotificationDispatcher
from wallets.models import PayoutMethod, PayoutRequest, PayoutStatus, TransactionType

from .exceptions import InsufficientBalanceError, PayoutError, PayoutNotFoundError
from .wallet_ledger import _positive_amount, credit, debit

logger = logging.getLogger(__name__)


def _notify(notifier, payout: PayoutRequest, title: str, body: str, event: str) -> None:
    notifier = notifier or NotificationDispatcher()
    notifier.notify(
        payout.driver_profile.user_id,
        title,
        body,
        {"type": f"payout_{event}", "payout_id": payout.id, "status": payout.status},
    )


def _locked_payout(payout_id: int) -> PayoutRequest:
    try:
        return PayoutRequest.objects.select_for_update().select_related('driver_profile').get(pk=payout_id)
    except PayoutRequest.DoesNotExist:
        raise PayoutNotFoundError(f"Payout request {payout_id} not found")


def request_payout(driver_profile, amount, method: str, settings_provider=None,
                   notifier=None) -> PayoutRequest:
    """
    Withdraw from the driver's wallet.

    Raises:
        PayoutError: If payouts are off, the method is not offered, the amount
            is below the minimum or exceeds the balance
        InvalidAmountError: If the amount is not a positive number
    """
    from configuration.provider import get_settings_provider

    settings_provider = settings_provider or get_settings_provider()
    amount = _positive_amount(amount)

    if not settings_provider.get_bool('payouts.enabled'):
        raise PayoutError("Payouts are currently disabled.")

    minimum = settings_provider.get_decimal('wallet.min_payout_amount')
    if amount < minimum:
        raise PayoutError(f"Minimum payout amount is {minimum.quantize(Decimal('0.01'))}.")

    allowed = settings_provider.get('payouts.methods') or []
    if method not in allowed or method not in PayoutMethod.values:
        raise PayoutError("Selected payout method is not available.")

    with transaction.atomic():
        payout = PayoutRequest.objects.create(
            driver_profile=driver_profile,
            amount=amount,
            method=method,
        )
        try:
            debit(
                driver_profile,
                amount,
                TransactionType.PAYOUT,
                description=f"Payout request: {method}",
                meta={'payout_request_id': payout.id, 'method': method},
            )
        except InsufficientBalanceError:
            raise PayoutError("Insufficient wallet balance for this payout.")

    logger.info("Payout %s requested: driver profile %s, %s via %s", payout.id, driver_profile.pk, amount, method)

    if settings_provider.get_bool('payouts.auto_approve'):
        return approve_payout(payout.id, None, notifier=notifier)

    _notify(notifier, payout, "Payout requested", f"Your payout request of {amount} has been submitted.", "requested")
    return payout


def approve_payout(payout_id: int, admin, notifier=None) -> PayoutRequest:
    with transaction.atomic():
        payout = _locked_payout(payout_id)
        if payout.status != PayoutStatus.REQUESTED:
            raise PayoutError(f"Payout cannot be approved while {payout.status}.")

        payout.status = PayoutStatus.APPROVED
        payout.reviewed_by = admin
        payout.save(update_fields=['status', 'reviewed_by', 'updated_at'])

    logger.info("Payout %s approved", payout.id)
    _notify(notifier, payout, "Payout approved", f"Your payout request of {payout.amount} has been approved.", "approved")
    return payout


def reject_payout(payout_id: int, admin, reason: str, notifier=None) -> PayoutRequest:
    """Reject a pending payout and credit the held amount back to the wallet."""
    with transaction.atomic():
        payout = _locked_payout(payout_id)
        if not payout.is_pending:
            raise PayoutError(f"Payout cannot be rejected while {payout.status}.")

        credit(
            payout.driver_profile,
            payout.amount,
            TransactionType.PAYOUT,
            description="Payout rejected",
            meta={'payout_request_id': payout.id, 'reason': reason},
        )
        payout.status = PayoutStatus.REJECTED
        payout.admin_note = reason
        payout.reviewed_by = admin
        payout.processed_at = timezone.now()
        payout.save(update_fields=['status', 'admin_note', 'reviewed_by', 'processed_at', 'updated_at'])

    logger.info("Payout %s rejected: %s", payout.id, reason)
    _notify(notifier, payout, "Payout rejected", f"Your payout request has been rejected: {reason}", "rejected")
    return payout


def mark_payout_paid(payout_id: int, reference: str, admin=None, notifier=None) -> PayoutRequest:
    with transaction.atomic():
        payout = _locked_payout(payout_id)
        if payout.status != PayoutStatus.APPROVED:
            raise PayoutError(f"Payout cannot be marked paid while {payout.status}.")

        payout.status = PayoutStatus.PAID
        payout.payout_reference = reference
        payout.processed_at = timezone.now()
        if admin is not None:
            payout.reviewed_by = admin
        payout.save(update_fields=['status', 'payout_reference', 'processed_at', 'reviewed_by', 'updated_at'])

    logger.info("Payout %s paid, reference %s", payout.id, reference)
    _notify(
        notifier, payout, "Payout completed",
        f"Your payout of {payout.amount} has been processed. Reference: {reference}", "paid",
    )
    return payout


def list_driver_payouts(driver_profile, status: Optional[str] = None):
    payouts = PayoutRequest.objects.filter(driver_profile=driver_profile)
    if status:
        payouts = payouts.filter(status=status)
    return payouts
