import json
from decimal import Decimal, InvalidOperation

from django.db import models
from django.utils import timezone


class SystemSetting(models.Model):
    """Admin-editable runtime setting, stored as text and coerced by type."""

    TYPE_CHOICES = [
        ('string', 'String'),
        ('boolean', 'Boolean'),
        ('integer', 'Integer'),
        ('decimal', 'Decimal'),
        ('json', 'JSON'),
    ]

    key = models.CharField(max_length=120, unique=True)
    value = models.TextField(blank=True, default='')
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='string')
    group = models.CharField(max_length=50, default='general', db_index=True)
    description = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'system_settings'
        ordering = ['group', 'key']

    def __str__(self):
        return f"{self.key}={self.value}"

    def typed_value(self):
        if self.type == 'boolean':
            return self.value.strip().lower() in ('1', 'true', 'yes', 'on')
        if self.type == 'integer':
            return int(self.value)
        if self.type == 'decimal':
            try:
                return Decimal(self.value)
            except InvalidOperation:
                raise ValueError(f"Setting {self.key} is not a valid decimal: {self.value!r}")
        if self.type == 'json':
            return json.loads(self.value)
        return self.value

    @staticmethod
    def serialize_value(value) -> str:
        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)


class CronRun(models.Model):
    """Last run of each scheduled job, for operational visibility."""

    STATUS_CHOICES = [
        ('success', 'Success'),
        ('failure', 'Failure'),
    ]

    command = models.CharField(max_length=120, unique=True)
    last_ran_at = models.DateTimeField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    message = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'cron_runs'
        ordering = ['command']

    def __str__(self):
        return f"{self.command} [{self.status}] @ {self.last_ran_at}"

    @classmethod
    def record(cls, command: str, status: str, message: str = "") -> "CronRun":
        run, _ = cls.objects.update_or_create(
            command=command,
            defaults={
                'last_ran_at': timezone.now(),
                'status': status,
                'message': message or '',
            },
        )
        return run
