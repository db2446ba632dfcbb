from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from .serializers import RegisterSerializer, LoginSerializer, UserSerializer


def _session_payload(user, message):
    """User, driver approval state and a fresh token pair."""
    from rest_framework_simplejwt.tokens import RefreshToken

    refresh = RefreshToken.for_user(user)
    profile = getattr(user, 'driver_profile', None) if user.is_driver else None
    return {
        'message': message,
        'user': UserSerializer(user).data,
        # Drivers can publish rides only after approval
        'driver_status': profile.status if profile else None,
        'tokens': {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        },
    }


class RegisterView(APIView):
    """
    Sign up as a rider or a driver.

    Riders can book straight away. Drivers get a pending profile and
    must be approved by staff before their rides can be published.
    `vehicle_number` is required for drivers.
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        user = serializer.save()
        return Response(
            _session_payload(user, 'User registered successfully'),
            status=status.HTTP_201_CREATED
        )


class LoginView(APIView):
    """Exchange username and password for a JWT pair."""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        return Response(_session_payload(serializer.validated_data, 'Login successful'))


class RefreshTokenView(APIView):
    """Issue a new access token for a valid refresh token."""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = TokenRefreshSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError:
            return Response(
                {'error': 'Invalid refresh token'},
                status=status.HTTP_401_UNAUTHORIZED
            )
        return Response(serializer.validated_data)
