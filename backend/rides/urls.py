from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Rider-facing
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),

    # Driver Ride Actions
    path('driver/', views.driver_rides, name='driver-rides'),
    path('driver/<int:ride_id>/publish/', views.publish_driver_ride, name='publish-ride'),
    path('driver/<int:ride_id>/cancel/', views.cancel_driver_ride, name='cancel-ride'),
    path('driver/<int:ride_id>/complete/', views.complete_driver_ride, name='complete-ride'),
]
