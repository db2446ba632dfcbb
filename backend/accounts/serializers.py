from rest_framework import serializers
from django.contrib.auth import authenticate
from .models import User
from drivers.models import DriverProfile


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "role",
            "phone_number",
            "completed_rides",
        ]
        read_only_fields = ["id", "role", "completed_rides"]


class UserBasicSerializer(serializers.ModelSerializer):
    """Lite rider info shown to drivers on their bookings."""

    class Meta:
        model = User
        fields = ["id", "username", "phone_number"]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=[User.ROLE_RIDER, User.ROLE_DRIVER], default=User.ROLE_RIDER)
    phone_number = serializers.CharField(required=False, allow_blank=True)
    vehicle_number = serializers.CharField(required=False)
    city_id = serializers.IntegerField(required=False, allow_null=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'role', 'phone_number', 'vehicle_number', 'city_id']

    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate_vehicle_number(self, value):
        if DriverProfile.objects.filter(vehicle_number=value).exists():
            raise serializers.ValidationError("Vehicle number already registered")
        return value

    def validate(self, data):
        # If registering as driver, vehicle_number is required
        if data['role'] == User.ROLE_DRIVER and not data.get('vehicle_number'):
            raise serializers.ValidationError({
                'vehicle_number': 'Vehicle number is required for drivers'
            })
        return data

    def create(self, validated_data):
        vehicle_number = validated_data.pop('vehicle_number', None)
        city_id = validated_data.pop('city_id', None)

        user = User.objects.create_user(
            username=validated_data['username'],
            email=validated_data.get('email', ''),
            password=validated_data['password'],
            role=validated_data['role'],
            phone_number=validated_data.get('phone_number', ''),
        )

        # Driver profiles start out pending approval
        if user.role == User.ROLE_DRIVER and vehicle_number:
            DriverProfile.objects.create(
                user=user,
                vehicle_number=vehicle_number,
                city_id=city_id,
            )

        return user
