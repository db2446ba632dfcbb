import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('drivers', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Ride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('city_id', models.PositiveIntegerField(blank=True, db_index=True, null=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='draft', max_length=20)),
                ('origin_name', models.CharField(max_length=255)),
                ('destination_name', models.CharField(max_length=255)),
                ('departure_at', models.DateTimeField(db_index=True)),
                ('price_per_seat', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency_code', models.CharField(default='INR', max_length=3)),
                ('seats_total', models.PositiveIntegerField()),
                ('seats_available', models.PositiveIntegerField()),
                ('allow_instant_booking', models.BooleanField(default=False)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('driver_profile', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rides', to='drivers.driverprofile')),
            ],
            options={
                'db_table': 'rides',
                'ordering': ['departure_at'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('seats_total__gte', 1)), name='ride_seats_total_positive'),
                    models.CheckConstraint(condition=models.Q(('seats_available__gte', 0), ('seats_available__lte', models.F('seats_total'))), name='ride_seats_available_within_total'),
                ],
            },
        ),
    ]
