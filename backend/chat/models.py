from django.conf import settings
from django.db import models
from django.utils import timezone


class Conversation(models.Model):
    """Rider/driver thread attached to a single booking"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('closed', 'Closed'),
    ]

    booking = models.OneToOneField(
        'bookings.Booking',
        on_delete=models.CASCADE,
        related_name='conversation'
    )
    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rider_conversations'
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='driver_conversations'
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    closed_at = models.DateTimeField(null=True, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'conversations'

    def __str__(self):
        return f"Conversation for booking #{self.booking_id} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status == 'active'

    def close(self):
        self.status = 'closed'
        self.closed_at = timezone.now()
        self.save(update_fields=['status', 'closed_at'])


class Message(models.Model):
    TYPE_CHOICES = [
        ('text', 'Text'),
        ('system', 'System'),
    ]

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    # Null for system messages
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    message_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='text')
    body = models.TextField()
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'messages'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"[{self.message_type}] {self.body[:40]}"
