import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


CATEGORY_CHOICES = [('fresh', 'Fresh'), ('bakery', 'Bakery')]


def _amount():
    return models.DecimalField(decimal_places=4, default=0, max_digits=18)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('employees', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DailyTrip',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('reference', models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ('driver_name', models.CharField(max_length=255)),
                ('date', models.DateField()),
                ('collection_amount', _amount()),
                ('purchase_amount', _amount()),
                ('expiry_amount', _amount()),
                ('discount_amount', _amount()),
                ('petrol_amount', _amount()),
                ('previous_balance', _amount()),
                ('total_amount', _amount()),
                ('net_total', _amount()),
                ('grand_total', _amount()),
                ('expiry_after_tax', _amount()),
                ('amount_to_be', _amount()),
                ('sales_difference', _amount()),
                ('profit', _amount()),
                ('balance', _amount()),
                ('totals_snapshot', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='trips', to='employees.employee')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'daily_trips',
                'ordering': ['-date', '-created_at'],
                'unique_together': {('driver', 'date')},
                'indexes': [
                    models.Index(fields=['driver', '-date'], name='daily_trips_driver__a41c7e_idx'),
                    models.Index(fields=['-date'], name='daily_trips_date_5d2b90_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TripLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('SOLD', 'Sold'), ('ACCEPTED', 'Accepted'), ('TRANSFERRED', 'Transferred')], max_length=12)),
                ('position', models.PositiveIntegerField(default=0)),
                ('product_id', models.CharField(max_length=32)),
                ('product_name', models.CharField(max_length=255)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, max_length=10)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12)),
                ('unit_price', models.DecimalField(decimal_places=4, max_digits=18)),
                ('receiving_driver_id', models.CharField(blank=True, default='', max_length=32)),
                ('receiving_driver_name', models.CharField(blank=True, default='', max_length=255)),
                ('sending_driver_id', models.CharField(blank=True, default='', max_length=32)),
                ('sending_driver_name', models.CharField(blank=True, default='', max_length=255)),
                ('source_trip', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='delivered_lines', to='ledger.dailytrip')),
                ('trip', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='ledger.dailytrip')),
            ],
            options={
                'db_table': 'daily_trip_lines',
                'ordering': ['kind', 'position'],
                'indexes': [
                    models.Index(fields=['trip', 'kind', 'position'], name='daily_trip__trip_id_0f6c2a_idx'),
                    models.Index(fields=['source_trip'], name='daily_trip__source__e83b15_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PendingTransfer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('receiving_driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pending_transfers', to='employees.employee')),
            ],
            options={
                'db_table': 'pending_transfers',
                'unique_together': {('date', 'receiving_driver')},
            },
        ),
        migrations.CreateModel(
            name='PendingTransferLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_id', models.CharField(max_length=32)),
                ('product_name', models.CharField(max_length=255)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, max_length=10)),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12)),
                ('unit_price', models.DecimalField(decimal_places=4, max_digits=18)),
                ('receiving_driver_name', models.CharField(blank=True, default='', max_length=255)),
                ('sending_driver_id', models.CharField(max_length=32)),
                ('sending_driver_name', models.CharField(blank=True, default='', max_length=255)),
                ('pending', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='ledger.pendingtransfer')),
                ('source_trip', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pending_lines', to='ledger.dailytrip')),
            ],
            options={
                'db_table': 'pending_transfer_lines',
                'ordering': ['id'],
            },
        ),
    ]
