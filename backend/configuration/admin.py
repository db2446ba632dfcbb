from django.contrib import admin

from .models import CronRun, SystemSetting
from .provider import CACHE_PREFIX


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'type', 'group', 'updated_at']
    list_filter = ['group', 'type']
    search_fields = ['key', 'description']

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        from django.core.cache import cache
        cache.delete(CACHE_PREFIX + obj.key)


@admin.register(CronRun)
class CronRunAdmin(admin.ModelAdmin):
    """Read-only view of scheduled job health"""
    list_display = ['command', 'status', 'last_ran_at', 'message']
    list_filter = ['status']
    readonly_fields = ['command', 'status', 'last_ran_at', 'message']
