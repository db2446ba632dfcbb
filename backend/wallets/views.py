import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from drivers.models import DriverProfile
from services.settlement import (
    InvalidAmountError,
    PayoutError,
    PayoutNotFoundError,
    adjust,
    approve_payout,
    get_or_create_wallet,
    mark_payout_paid,
    reject_payout,
)
from wallets.models import PayoutRequest
from wallets.serializers import (
    DriverWalletSerializer,
    PayoutPaidSerializer,
    PayoutRejectSerializer,
    PayoutRequestSerializer,
    WalletAdjustmentSerializer,
    WalletTransactionSerializer,
)

logger = logging.getLogger(__name__)


def payout_error_response(exc):
    if isinstance(exc, PayoutNotFoundError):
        return Response({'error': str(exc)}, status=status.HTTP_404_NOT_FOUND)
    return Response({'error': str(exc)}, status=status.HTTP_409_CONFLICT)


@api_view(['GET'])
@permission_classes([IsAdminUser])
def payout_list(request):
    payouts = PayoutRequest.objects.select_related('driver_profile__user')
    status_filter = request.query_params.get('status')
    if status_filter:
        payouts = payouts.filter(status=status_filter)
    return Response(PayoutRequestSerializer(payouts, many=True).data)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def approve_payout_view(request, payout_id):
    try:
        payout = approve_payout(payout_id, request.user)
    except PayoutError as e:
        return payout_error_response(e)
    return Response(PayoutRequestSerializer(payout).data)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def reject_payout_view(request, payout_id):
    serializer = PayoutRejectSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        payout = reject_payout(payout_id, request.user, serializer.validated_data['reason'])
    except PayoutError as e:
        return payout_error_response(e)
    return Response(PayoutRequestSerializer(payout).data)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def mark_payout_paid_view(request, payout_id):
    serializer = PayoutPaidSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        payout = mark_payout_paid(payout_id, serializer.validated_data['reference'], admin=request.user)
    except PayoutError as e:
        return payout_error_response(e)
    return Response(PayoutRequestSerializer(payout).data)


@api_view(['POST'])
@permission_classes([IsAdminUser])
def adjust_wallet(request, driver_profile_id):
    """Manual credit or debit; a negative amount may overdraw the wallet."""
    try:
        profile = DriverProfile.objects.get(pk=driver_profile_id)
    except DriverProfile.DoesNotExist:
        return Response({'error': 'Driver profile not found'}, status=status.HTTP_404_NOT_FOUND)

    serializer = WalletAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        txn = adjust(
            profile,
            serializer.validated_data['amount'],
            serializer.validated_data['description'],
            performed_by=request.user,
        )
    except InvalidAmountError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info("Admin %s adjusted wallet of driver profile %s by %s", request.user.id, profile.pk, txn.amount)
    return Response({
        'transaction': WalletTransactionSerializer(txn).data,
        'wallet': DriverWalletSerializer(get_or_create_wallet(profile)).data,
    }, status=status.HTTP_201_CREATED)
