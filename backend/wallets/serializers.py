from decimal import Decimal

from rest_framework import serializers

from wallets.models import DriverWallet, PayoutMethod, PayoutRequest, WalletTransaction


class WalletTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = WalletTransaction
        fields = [
            "id",
            "booking",
            "type",
            "direction",
            "amount",
            "description",
            "created_at",
        ]
        read_only_fields = fields


class DriverWalletSerializer(serializers.ModelSerializer):
    recent_transactions = serializers.SerializerMethodField()

    class Meta:
        model = DriverWallet
        fields = [
            "id",
            "balance",
            "lifetime_earned",
            "lifetime_withdrawn",
            "last_updated_at",
            "recent_transactions",
        ]
        read_only_fields = fields

    def get_recent_transactions(self, obj):
        limit = self.context.get("transaction_limit", 20)
        return WalletTransactionSerializer(obj.transactions.all()[:limit], many=True).data


class PayoutRequestSerializer(serializers.ModelSerializer):
    driver_username = serializers.CharField(source="driver_profile.user.username", read_only=True)

    class Meta:
        model = PayoutRequest
        fields = [
            "id",
            "driver_profile",
            "driver_username",
            "amount",
            "method",
            "status",
            "payout_reference",
            "admin_note",
            "requested_at",
            "processed_at",
        ]
        read_only_fields = fields


class PayoutCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    method = serializers.ChoiceField(choices=PayoutMethod.choices)


class PayoutRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class PayoutPaidSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=120)


class WalletAdjustmentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    description = serializers.CharField(max_length=255)

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment amount cannot be zero")
        return value
