from django.contrib import admin, messages

from services.settlement import PayoutError, approve_payout
from wallets.models import DriverWallet, PayoutRequest, WalletTransaction


class WalletTransactionInline(admin.TabularInline):
    model = WalletTransaction
    extra = 0
    can_delete = False
    fields = ["created_at", "type", "direction", "amount", "booking", "description"]
    readonly_fields = fields
    ordering = ["-created_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(DriverWallet)
class DriverWalletAdmin(admin.ModelAdmin):
    list_display = ["driver_profile", "balance", "lifetime_earned", "lifetime_withdrawn", "last_updated_at"]
    search_fields = ["driver_profile__user__username", "driver_profile__vehicle_number"]
    # Balances change only through the ledger
    readonly_fields = ["balance", "lifetime_earned", "lifetime_withdrawn", "last_updated_at", "created_at"]
    inlines = [WalletTransactionInline]


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ["id", "wallet", "type", "direction", "amount", "booking", "created_at"]
    list_filter = ["type", "direction"]
    search_fields = ["wallet__driver_profile__user__username", "booking__id"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PayoutRequest)
class PayoutRequestAdmin(admin.ModelAdmin):
    list_display = ["id", "driver_profile", "amount", "method", "status", "requested_at", "processed_at"]
    list_filter = ["status", "method"]
    search_fields = ["driver_profile__user__username", "payout_reference"]
    # Status moves only through the payout service so the wallet stays in step
    readonly_fields = [
        "driver_profile", "amount", "method", "status", "payout_reference",
        "reviewed_by", "requested_at", "processed_at", "updated_at",
    ]
    actions = ["approve_selected"]

    def has_add_permission(self, request):
        return False

    @admin.action(description="Approve selected payout requests")
    def approve_selected(self, request, queryset):
        approved = 0
        for payout in queryset:
            try:
                approve_payout(payout.id, request.user)
            except PayoutError as e:
                self.message_user(request, f"Payout {payout.id}: {e}", level=messages.WARNING)
                continue
            approved += 1
        self.message_user(request, f"{approved} payout request(s) approved.")
