from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User
from drivers.models import DriverProfile


class DriverProfileInline(admin.StackedInline):
    model = DriverProfile
    can_delete = False
    extra = 0
    fields = ("vehicle_number", "city_id", "status")


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Riders, drivers and staff. Ride counters are maintained by booking completion."""

    list_display = [
        "username",
        "role",
        "phone_number",
        "completed_rides",
        "is_active",
    ]

    list_filter = ["role", "is_active", "is_staff"]

    search_fields = ["username", "email", "phone_number"]

    ordering = ("username",)

    readonly_fields = ("completed_rides", "last_login", "date_joined")

    inlines = [DriverProfileInline]

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Ride pooling", {"fields": ("role", "phone_number", "completed_rides")}),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Ride pooling", {"fields": ("role", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        # Only drivers carry a profile
        if obj is None or not obj.is_driver:
            return []
        return super().get_inlines(request, obj)
