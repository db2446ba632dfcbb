from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # accounts.urls have register, login, refresh endpoints

    # Driver APIs (driver profile, wallet)
    path('api/driver/', include('drivers.urls')),

    # Rides endpoints (at /api/rides/)
    path('api/rides/', include('rides.urls')),

    # Booking endpoints (at /api/bookings/)
    path('api/bookings/', include('bookings.urls')),

    # Staff wallet and payout APIs (at /api/wallets/)
    path('api/wallets/', include('wallets.urls')),
]
