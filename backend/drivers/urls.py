from django.urls import path
from .views import (
    DriverPayoutView,
    DriverProfileView,
    DriverWalletView,
)

urlpatterns = [
    path("profile/", DriverProfileView.as_view(), name="driver-profile"),
    path("wallet/", DriverWalletView.as_view(), name="driver-wallet"),
    path("payouts/", DriverPayoutView.as_view(), name="driver-payouts"),
]
