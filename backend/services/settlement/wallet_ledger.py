"""
Driver wallet ledger.

Every balance change appends one WalletTransaction and updates the wallet
row in the same transaction, under a lock on that row, so the balance always
equals the signed sum of the ledger.
"""

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.utils import timezone

from services.pricing import to_money
from wallets.models import DriverWallet, TransactionDirection, TransactionType, WalletTransaction

from .exceptions import InsufficientBalanceError, InvalidAmountError

logger = logging.getLogger(__name__)


def get_or_create_wallet(driver_profile) -> DriverWallet:
    wallet, created = DriverWallet.objects.get_or_create(driver_profile=driver_profile)
    if created:
        logger.info("Created wallet for driver profile %s", driver_profile.pk)
    return wallet


def _positive_amount(amount) -> Decimal:
    try:
        value = to_money(amount)
    except ValueError:
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if value <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    return value


@transaction.atomic
def _post(driver_profile, amount, type: str, direction: str, booking=None,
          description: str = "", meta: Optional[dict] = None) -> WalletTransaction:
    amount = _positive_amount(amount)
    wallet_id = get_or_create_wallet(driver_profile).pk
    wallet = DriverWallet.objects.select_for_update().get(pk=wallet_id)

    update_fields = ['balance', 'last_updated_at']
    if direction == TransactionDirection.CREDIT:
        wallet.balance += amount
        if type == TransactionType.EARNING:
            wallet.lifetime_earned += amount
            update_fields.append('lifetime_earned')
        elif type == TransactionType.PAYOUT:
            # Reversal of a payout that never left the platform
            wallet.lifetime_withdrawn -= amount
            update_fields.append('lifetime_withdrawn')
    else:
        # Only an explicit admin adjustment may take the balance negative
        if wallet.balance - amount < 0 and type != TransactionType.ADJUSTMENT:
            raise InsufficientBalanceError(
                f"Wallet {wallet.pk} balance {wallet.balance} is less than {amount}"
            )
        wallet.balance -= amount
        if type == TransactionType.PAYOUT:
            wallet.lifetime_withdrawn += amount
            update_fields.append('lifetime_withdrawn')

    wallet.last_updated_at = timezone.now()
    wallet.save(update_fields=update_fields)

    txn = WalletTransaction.objects.create(
        wallet=wallet,
        booking=booking,
        type=type,
        direction=direction,
        amount=amount,
        description=description,
        meta=meta or {},
    )
    logger.info(
        "Wallet %s %s %s (%s), balance now %s",
        wallet.pk, direction, amount, type, wallet.balance,
    )
    return txn


def credit(driver_profile, amount, type: str = TransactionType.EARNING, booking=None,
           description: str = "", meta: Optional[dict] = None) -> WalletTransaction:
    return _post(driver_profile, amount, type, TransactionDirection.CREDIT, booking, description, meta)


def debit(driver_profile, amount, type: str = TransactionType.PAYOUT, booking=None,
          description: str = "", meta: Optional[dict] = None) -> WalletTransaction:
    return _post(driver_profile, amount, type, TransactionDirection.DEBIT, booking, description, meta)


def adjust(driver_profile, amount, description: str, performed_by=None) -> WalletTransaction:
    """
    Manual correction by an admin. A positive amount credits the wallet, a
    negative one debits it and may leave the balance below zero.
    """
    try:
        value = to_money(amount)
    except ValueError:
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    meta = {'performed_by': performed_by.pk if performed_by is not None else None}
    if value > 0:
        return credit(driver_profile, value, TransactionType.ADJUSTMENT, description=description, meta=meta)
    return debit(driver_profile, -value, TransactionType.ADJUSTMENT, description=description, meta=meta)
