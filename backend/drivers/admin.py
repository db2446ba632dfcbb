from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Admin panel for reviewing and approving Driver Profiles"""

    list_display = [
        "user",
        "vehicle_number",
        "city_id",
        "status",
        "created_at",
    ]

    list_filter = [
        "status",
        "created_at",
    ]

    search_fields = [
        "user__username",
        "vehicle_number",
    ]

    readonly_fields = [
        "created_at",
    ]

    actions = ["approve", "suspend"]

    ordering = ("user__username",)

    @admin.action(description="Approve selected drivers")
    def approve(self, request, queryset):
        queryset.update(status="approved")

    @admin.action(description="Suspend selected drivers")
    def suspend(self, request, queryset):
        queryset.update(status="suspended")
