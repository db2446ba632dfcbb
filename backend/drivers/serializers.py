from rest_framework import serializers
from drivers.models import DriverProfile
from accounts.serializers import UserSerializer


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    user = UserSerializer(read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "user",
            "vehicle_number",
            "city_id",
            "status",
            "created_at",
        ]
        read_only_fields = ["id", "status", "created_at"]


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for ride and booking details
    (shown to riders).
    """
    username = serializers.CharField(source="user.username", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "username",
            "phone_number",
            "vehicle_number",
        ]


class DriverProfileUpdateSerializer(serializers.Serializer):
    vehicle_number = serializers.CharField(max_length=20, required=False)
    city_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_vehicle_number(self, value):
        profile = self.context.get("profile")
        taken = DriverProfile.objects.filter(vehicle_number=value)
        if profile is not None:
            taken = taken.exclude(pk=profile.pk)
        if taken.exists():
            raise serializers.ValidationError("Vehicle number already registered")
        return value
