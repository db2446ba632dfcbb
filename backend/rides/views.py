from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import RideSerializer, RideCreateSerializer, RideCancelSerializer

from services.ride_management import (
    create_ride,
    publish_ride,
    cancel_ride,
    complete_ride,
    get_driver_rides,
    get_published_ride,
    RideNotFoundError,
    RideNotAvailableError,
)


def _driver_only(request):
    if request.user.role != 'driver':
        return Response(
            {'error': 'Only drivers can manage rides'},
            status=status.HTTP_403_FORBIDDEN
        )
    return None


# ==================== Public Ride APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_detail(request, ride_id):
    """Published ride with its remaining seats"""
    try:
        ride = get_published_ride(ride_id)
    except RideNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

    return Response(RideSerializer(ride).data)


# ==================== Driver Ride APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def driver_rides(request):
    """List the driver's rides, or create a new draft ride"""
    denied = _driver_only(request)
    if denied:
        return denied

    if request.method == 'GET':
        try:
            rides = get_driver_rides(request.user, status=request.query_params.get('status'))
        except RideNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response({'count': rides.count(), 'rides': RideSerializer(rides, many=True).data})

    serializer = RideCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        ride = create_ride(request.user, **serializer.validated_data)
    except RideNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except RideNotAvailableError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(RideSerializer(ride).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def publish_driver_ride(request, ride_id):
    denied = _driver_only(request)
    if denied:
        return denied

    try:
        ride = publish_ride(request.user, ride_id)
    except RideNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except RideNotAvailableError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'success': True,
        'ride': RideSerializer(ride).data,
        'message': 'Ride published. Riders can now book seats.'
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel_driver_ride(request, ride_id):
    """Cancel a ride; every active booking on it is cancelled too"""
    denied = _driver_only(request)
    if denied:
        return denied

    serializer = RideCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = cancel_ride(request.user, ride_id, serializer.validated_data['reason'])
    except RideNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except RideNotAvailableError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'success': True,
        'ride': RideSerializer(result.ride).data,
        'message': result.message,
        'cancelled_bookings': result.extra['cancelled_bookings'],
        'skipped_bookings': result.extra['skipped_bookings'],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def complete_driver_ride(request, ride_id):
    """Complete a ride and each of its confirmed bookings"""
    denied = _driver_only(request)
    if denied:
        return denied

    try:
        result = complete_ride(request.user, ride_id)
    except RideNotFoundError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except RideNotAvailableError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'success': True,
        'ride': RideSerializer(result.ride).data,
        'message': result.message,
        'completed_bookings': result.extra['completed_bookings'],
        'skipped_bookings': result.extra['skipped_bookings'],
    })
