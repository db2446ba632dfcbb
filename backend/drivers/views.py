from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from drivers.models import DriverProfile
from drivers.serializers import DriverProfileSerializer, DriverProfileUpdateSerializer
from services.settlement import (
    InvalidAmountError,
    PayoutError,
    get_or_create_wallet,
    list_driver_payouts,
    request_payout,
)
from wallets.serializers import DriverWalletSerializer, PayoutCreateSerializer, PayoutRequestSerializer


# Utility: Ensure request.user is a driver
def require_driver(user):
    if user.role != "driver":
        return False, Response({"error": "Only drivers allowed"}, status=403)
    try:
        profile = user.driver_profile
        return True, profile
    except DriverProfile.DoesNotExist:
        return False, Response({"error": "Driver profile not found"}, status=404)


class DriverProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile  # Response object

        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def post(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = DriverProfileUpdateSerializer(data=request.data, context={"profile": profile})
        serializer.is_valid(raise_exception=True)

        for field, value in serializer.validated_data.items():
            setattr(profile, field, value)
        if serializer.validated_data:
            profile.save(update_fields=list(serializer.validated_data))

        return Response(DriverProfileSerializer(profile, context={"request": request}).data, status=200)


class DriverWalletView(APIView):
    """Wallet balance and the latest ledger entries."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        wallet = get_or_create_wallet(profile)
        try:
            limit = min(int(request.query_params.get("limit", 20)), 100)
        except ValueError:
            limit = 20

        serializer = DriverWalletSerializer(wallet, context={"transaction_limit": limit})
        return Response(serializer.data)


class DriverPayoutView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        payouts = list_driver_payouts(profile, status=request.query_params.get("status"))
        return Response(PayoutRequestSerializer(payouts, many=True).data)

    def post(self, request):
        ok, profile = require_driver(request.user)
        if ok is False:
            return profile

        serializer = PayoutCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payout = request_payout(profile, **serializer.validated_data)
        except (PayoutError, InvalidAmountError) as e:
            return Response({"error": str(e)}, status=400)

        return Response(PayoutRequestSerializer(payout).data, status=201)
