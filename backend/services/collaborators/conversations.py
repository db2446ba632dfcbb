"""Booking conversation thread and system messages."""

import logging
from typing import Optional

from django.utils import timezone

from chat.models import Conversation, Message

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE_TEMPLATES = {
    'booking_accepted': "The driver accepted this booking.",
    'booking_confirmed': "Booking confirmed. See you on the ride!",
    'booking_rejected': "The driver declined this booking.",
    'booking_cancelled': "This booking was cancelled.",
    'booking_completed': "Trip completed. Thanks for riding together!",
}


class ChatDisabledError(Exception):
    """Raised when chat is switched off in system settings."""
    pass


class ConversationService:
    def __init__(self, settings_provider):
        self.settings = settings_provider

    def get_or_create_conversation(self, booking) -> Conversation:
        existing = Conversation.objects.filter(booking_id=booking.id).first()
        if existing:
            return existing

        if not self.settings.get_bool('chat.enabled'):
            raise ChatDisabledError("Chat is currently disabled.")

        conversation, _ = Conversation.objects.get_or_create(
            booking_id=booking.id,
            defaults={
                'rider_id': booking.rider_id,
                'driver_id': booking.driver_profile.user_id,
            },
        )
        return conversation

    def close_conversation(self, booking_id: int) -> bool:
        conversation = Conversation.objects.filter(booking_id=booking_id).first()
        if conversation is None or not conversation.is_active:
            return False
        conversation.close()
        return True

    def insert_system_message(self, booking_id: int, template_key: str, meta: Optional[dict] = None) -> Optional[Message]:
        if not self.settings.get_bool('chat.system_messages_enabled'):
            return None

        conversation = Conversation.objects.filter(booking_id=booking_id).first()
        if conversation is None:
            return None

        body = SYSTEM_MESSAGE_TEMPLATES.get(template_key, template_key)
        reason = (meta or {}).get('reason')
        if reason:
            body = f"{body} Reason: {reason}"

        message = Message.objects.create(
            conversation=conversation,
            sender=None,
            message_type='system',
            body=body,
            meta={**(meta or {}), 'event': template_key},
        )
        conversation.last_message_at = timezone.now()
        conversation.save(update_fields=['last_message_at'])
        return message
