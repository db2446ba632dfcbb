from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from drivers.serializers import DriverBasicSerializer
from .models import Booking, BookingEvent, PaymentMethod


class BookingEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingEvent
        fields = ['id', 'event', 'performed_by', 'meta', 'created_at']
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for Bookings"""
    rider = UserBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True, source='driver_profile')
    route = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = ['id', 'ride', 'route', 'rider', 'driver', 'status', 'seats_requested',
                  'price_per_seat', 'subtotal', 'total_amount', 'payment_method',
                  'payment_status', 'hold_expires_at', 'accepted_at', 'confirmed_at',
                  'rejected_at', 'cancelled_at', 'completed_at', 'refunded_at',
                  'cancel_reason', 'created_at']
        read_only_fields = fields

    def get_route(self, obj):
        if obj.ride is None:
            return None
        return {
            'origin': obj.ride.origin_name,
            'destination': obj.ride.destination_name,
            'departure_at': obj.ride.departure_at,
        }


class DriverBookingSerializer(BookingSerializer):
    """Booking as seen by the driver, with the commission breakdown"""
    driver_payout = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ['commission_type', 'commission_amount', 'driver_payout']
        read_only_fields = fields


class BookingDetailSerializer(BookingSerializer):
    events = BookingEventSerializer(many=True, read_only=True)

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ['events']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for creating bookings"""
    ride_id = serializers.IntegerField()
    seats_requested = serializers.IntegerField(min_value=1, default=1)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)


class BookingReasonSerializer(serializers.Serializer):
    """Serializer for cancellation/rejection/refund reasons"""
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentWebhookSerializer(serializers.Serializer):
    EVENT_CHOICES = ['payment', 'refund']

    event = serializers.ChoiceField(choices=EVENT_CHOICES, default='payment')
    booking_id = serializers.IntegerField()
    provider = serializers.ChoiceField(choices=[PaymentMethod.RAZORPAY, PaymentMethod.STRIPE])
    provider_ref = serializers.CharField(max_length=120)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
