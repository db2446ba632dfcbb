from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from drivers.serializers import DriverBasicSerializer
from .models import Ride


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides"""
    driver = DriverBasicSerializer(read_only=True, source='driver_profile')

    class Meta:
        model = Ride
        fields = ['id', 'driver', 'city_id', 'status', 'origin_name', 'destination_name',
                  'departure_at', 'price_per_seat', 'currency_code', 'seats_total',
                  'seats_available', 'allow_instant_booking', 'published_at',
                  'cancelled_at', 'completed_at', 'cancellation_reason', 'created_at']
        read_only_fields = fields


class RideCreateSerializer(serializers.ModelSerializer):
    """Serializer for creating draft rides"""
    price_per_seat = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    seats_total = serializers.IntegerField(min_value=1)

    class Meta:
        model = Ride
        fields = ['origin_name', 'destination_name', 'departure_at', 'price_per_seat',
                  'currency_code', 'seats_total', 'allow_instant_booking']

    def validate_departure_at(self, value):
        if value <= timezone.now():
            raise serializers.ValidationError("Departure time must be in the future")
        return value


class RideCancelSerializer(serializers.Serializer):
    """Serializer for ride cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, default="Cancelled by driver")
