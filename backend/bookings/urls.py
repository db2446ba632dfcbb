from django.urls import path
from . import views

app_name = 'bookings'

urlpatterns = [
    # Rider APIs
    path('', views.create_booking, name='create-booking'),
    path('my/', views.my_bookings, name='my-bookings'),
    path('<int:booking_id>/', views.booking_detail, name='booking-detail'),
    path('<int:booking_id>/cancel/', views.cancel_booking, name='cancel-booking'),

    # Driver Booking Actions
    path('driver/', views.driver_bookings, name='driver-bookings'),
    path('driver/<int:booking_id>/accept/', views.accept_driver_booking, name='accept-booking'),
    path('driver/<int:booking_id>/reject/', views.reject_driver_booking, name='reject-booking'),
    path('driver/<int:booking_id>/complete/', views.complete_driver_booking, name='complete-booking'),

    # Gateway callbacks and staff actions
    path('payments/webhook/', views.payment_webhook, name='payment-webhook'),
    path('admin/<int:booking_id>/refund/', views.admin_refund_booking, name='admin-refund-booking'),
    path('admin/<int:booking_id>/settle/', views.admin_settle_booking, name='admin-settle-booking'),
]
