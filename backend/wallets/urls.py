from django.urls import path
from . import views

app_name = 'wallets'

urlpatterns = [
    # Staff payout review
    path('payouts/', views.payout_list, name='payout-list'),
    path('payouts/<int:payout_id>/approve/', views.approve_payout_view, name='approve-payout'),
    path('payouts/<int:payout_id>/reject/', views.reject_payout_view, name='reject-payout'),
    path('payouts/<int:payout_id>/paid/', views.mark_payout_paid_view, name='mark-payout-paid'),

    # Manual corrections
    path('<int:driver_profile_id>/adjust/', views.adjust_wallet, name='adjust-wallet'),
]
