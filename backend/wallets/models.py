from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class DriverWallet(models.Model):
    """Driver settlement balance. Mutated only under a row lock by services.settlement."""

    driver_profile = models.OneToOneField(
        'drivers.DriverProfile',
        on_delete=models.PROTECT,
        related_name='wallet'
    )
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    lifetime_earned = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    lifetime_withdrawn = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    last_updated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'driver_wallets'

    def __str__(self):
        return f"Wallet of {self.driver_profile} ({self.balance})"


class TransactionType(models.TextChoices):
    EARNING = 'earning', 'Earning'
    COMMISSION = 'commission', 'Commission'
    REFUND = 'refund', 'Refund'
    ADJUSTMENT = 'adjustment', 'Adjustment'
    PAYOUT = 'payout', 'Payout'


class TransactionDirection(models.TextChoices):
    CREDIT = 'credit', 'Credit'
    DEBIT = 'debit', 'Debit'


class WalletTransaction(models.Model):
    """One ledger movement. Append-only."""

    wallet = models.ForeignKey(DriverWallet, on_delete=models.PROTECT, related_name='transactions')
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='wallet_transactions'
    )
    type = models.CharField(max_length=20, choices=TransactionType.choices)
    direction = models.CharField(max_length=10, choices=TransactionDirection.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.CharField(max_length=255, blank=True)
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = 'wallet_transactions'
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='wallet_txn_amount_positive'),
            # A booking is paid out at most once
            models.UniqueConstraint(
                fields=['booking'],
                condition=Q(type='earning'),
                name='unique_earning_per_booking'
            ),
        ]

    def __str__(self):
        return f"{self.direction} {self.amount} ({self.type})"

    @property
    def is_credit(self) -> bool:
        return self.direction == TransactionDirection.CREDIT

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Wallet transactions are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Wallet transactions cannot be deleted")


class PayoutMethod(models.TextChoices):
    BANK = 'bank', 'Bank transfer'
    RAZORPAY = 'razorpay', 'Razorpay'
    STRIPE = 'stripe', 'Stripe'
    CASH = 'cash', 'Cash'
    MANUAL = 'manual', 'Manual'


class PayoutStatus(models.TextChoices):
    REQUESTED = 'requested', 'Requested'
    APPROVED = 'approved', 'Approved'
    PAID = 'paid', 'Paid'
    REJECTED = 'rejected', 'Rejected'


class PayoutRequest(models.Model):
    """
    A driver's withdrawal from their wallet.

    The amount is debited when the request is made, so the funds are held
    while staff review it; a rejection credits them back.
    """

    driver_profile = models.ForeignKey(
        'drivers.DriverProfile',
        on_delete=models.PROTECT,
        related_name='payout_requests'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=PayoutMethod.choices)
    status = models.CharField(
        max_length=20,
        choices=PayoutStatus.choices,
        default=PayoutStatus.REQUESTED,
        db_index=True
    )
    payout_reference = models.CharField(max_length=120, blank=True)
    admin_note = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_payouts'
    )
    requested_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payout_requests'
        ordering = ['-requested_at', '-id']
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name='payout_amount_positive'),
        ]

    def __str__(self):
        return f"Payout {self.id}: {self.amount} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status in (PayoutStatus.REQUESTED, PayoutStatus.APPROVED)
