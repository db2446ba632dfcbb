import logging

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated

from .models import Booking
from .serializers import (
    BookingSerializer,
    BookingDetailSerializer,
    DriverBookingSerializer,
    BookingCreateSerializer,
    BookingReasonSerializer,
    PaymentWebhookSerializer,
)

# Import from services layer
from services.booking_lifecycle import (
    create_booking as create_booking_service,
    accept_booking,
    reject_booking,
    cancel_booking as cancel_booking_service,
    complete_booking,
    refund_booking,
    handle_payment_callback,
    handle_refund_callback,
    get_booking_for_user,
    list_rider_bookings,
    list_driver_bookings,
    BookingNotFoundError,
    BookingValidationError,
    BookingPermissionError,
    InvalidTransition,
    SettlementFailure,
)
from services.ride_management import RideNotFoundError
from services.settlement import settle_booking

logger = logging.getLogger(__name__)


def error_response(exc):
    """Translate a booking service exception into an API response."""
    if isinstance(exc, (BookingNotFoundError, RideNotFoundError)):
        return Response({'error': str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, BookingPermissionError):
        return Response({'error': str(exc)}, status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, InvalidTransition):
        return Response(
            {'error': InvalidTransition.user_message, 'status': exc.status},
            status=status.HTTP_409_CONFLICT
        )
    if isinstance(exc, BookingValidationError):
        return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    raise exc


BOOKING_ERRORS = (
    BookingNotFoundError,
    RideNotFoundError,
    BookingPermissionError,
    InvalidTransition,
    BookingValidationError,
)


def _driver_only(request):
    if request.user.role != 'driver':
        return Response(
            {'error': 'Only drivers can manage bookings on their rides'},
            status=status.HTTP_403_FORBIDDEN
        )
    return None


# ==================== Rider Booking APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_booking(request):
    """Request seats on a published ride"""
    serializer = BookingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        booking = create_booking_service(
            request.user,
            serializer.validated_data['ride_id'],
            serializer.validated_data['seats_requested'],
            serializer.validated_data['payment_method'],
        )
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_bookings(request):
    bookings = list_rider_bookings(request.user, status=request.query_params.get('status'))
    return Response({
        'count': bookings.count(),
        'bookings': BookingSerializer(bookings, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booking_detail(request, booking_id):
    """Booking with its event history; visible to the rider, the driver and staff"""
    try:
        booking = get_booking_for_user(request.user, booking_id)
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response(BookingDetailSerializer(booking).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel_booking(request, booking_id):
    serializer = BookingReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        booking = cancel_booking_service(request.user, booking_id, serializer.validated_data['reason'])
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'success': True,
        'message': 'Booking cancelled successfully',
        'booking': BookingSerializer(booking).data,
    })


# ==================== Driver Booking APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def driver_bookings(request):
    denied = _driver_only(request)
    if denied:
        return denied

    try:
        bookings = list_driver_bookings(
            request.user,
            status=request.query_params.get('status'),
            ride_id=request.query_params.get('ride'),
        )
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'count': bookings.count(),
        'bookings': DriverBookingSerializer(bookings, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def accept_driver_booking(request, booking_id):
    denied = _driver_only(request)
    if denied:
        return denied

    try:
        booking = accept_booking(request.user, booking_id)
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'success': True,
        'booking': DriverBookingSerializer(booking).data,
        'message': (
            'Booking confirmed.' if booking.status == 'confirmed'
            else 'Booking accepted. Waiting for the rider to pay.'
        ),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def reject_driver_booking(request, booking_id):
    denied = _driver_only(request)
    if denied:
        return denied

    serializer = BookingReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        booking = reject_booking(request.user, booking_id, serializer.validated_data['reason'])
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'success': True,
        'booking': DriverBookingSerializer(booking).data,
        'message': 'Booking rejected. The seats are available again.',
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def complete_driver_booking(request, booking_id):
    denied = _driver_only(request)
    if denied:
        return denied

    try:
        booking = complete_booking(request.user, booking_id)
    except SettlementFailure:
        # The booking is completed; settlement is retried by the reconciliation job
        logger.error("Booking %s completed without settlement", booking_id)
        booking = Booking.objects.select_related('ride', 'rider', 'driver_profile__user').get(pk=booking_id)
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'success': True,
        'booking': DriverBookingSerializer(booking).data,
        'message': 'Booking completed successfully',
    })


# ==================== Gateway & Admin APIs ====================

@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook(request):
    """
    Payment gateway callback.

    The payload is only a pointer; the configured gateway verifier decides
    whether the payment actually went through.
    """
    serializer = PaymentWebhookSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        if data['event'] == 'refund':
            booking = handle_refund_callback(
                data['booking_id'], data['provider'], data['provider_ref'], data['reason'] or None,
            )
        else:
            booking = handle_payment_callback(data['booking_id'], data['provider'], data['provider_ref'])
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({
        'booking_id': booking.id,
        'status': booking.status,
        'payment_status': booking.payment_status,
    })


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_refund_booking(request, booking_id):
    serializer = BookingReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        booking = refund_booking(booking_id, performer=request.user, reason=serializer.validated_data['reason'])
    except BOOKING_ERRORS as e:
        return error_response(e)

    return Response({'success': True, 'booking': BookingSerializer(booking).data})


@api_view(['POST'])
@permission_classes([IsAdminUser])
def admin_settle_booking(request, booking_id):
    """Re-drive settlement for a completed booking"""
    try:
        txn = settle_booking(booking_id)
    except SettlementFailure as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

    return Response({
        'success': True,
        'booking_id': booking_id,
        'wallet_transaction_id': txn.id if txn else None,
        'amount': str(txn.amount) if txn else '0.00',
    })
