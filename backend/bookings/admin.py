"""Tells what to show in the Django admin interface for bookings app"""

from django.contrib import admin
from .models import Booking, BookingEvent, Payment


class BookingEventInline(admin.TabularInline):
    model = BookingEvent
    extra = 0
    can_delete = False
    fields = ['created_at', 'event', 'performed_by', 'meta']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Booking admin. Status changes go through the booking services, never this form."""
    list_display = ['id', 'ride', 'rider', 'status', 'seats_requested', 'total_amount',
                    'payment_method', 'payment_status', 'hold_expires_at', 'created_at']
    list_filter = ['status', 'payment_method', 'payment_status']
    search_fields = ['id', 'rider__username', 'driver_profile__user__username']
    date_hierarchy = 'created_at'
    inlines = [BookingEventInline]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("provider", "provider_ref", "booking", "amount", "status", "created_at")
    list_filter = ("provider", "status")
    search_fields = ("provider_ref", "booking__id")
