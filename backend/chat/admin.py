from django.contrib import admin

from .models import Conversation, Message


class MessageInline(admin.TabularInline):
    model = Message
    extra = 0
    readonly_fields = ['sender', 'message_type', 'body', 'created_at']


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'rider', 'driver', 'status', 'last_message_at']
    list_filter = ['status']
    search_fields = ['booking__id', 'rider__username', 'driver__username']
    inlines = [MessageInline]
