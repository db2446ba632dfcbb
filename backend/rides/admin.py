"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'driver_profile', 'origin_name', 'destination_name', 'departure_at',
                    'status', 'seats_available', 'seats_total', 'price_per_seat']
    list_filter = ['status', 'allow_instant_booking', 'departure_at']
    search_fields = ['driver_profile__user__username', 'origin_name', 'destination_name']
    # seats_available is owned by the seat inventory guard
    readonly_fields = ['seats_available', 'published_at', 'cancelled_at', 'completed_at',
                       'created_at', 'updated_at']
    date_hierarchy = 'departure_at'
