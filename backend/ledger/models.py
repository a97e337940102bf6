from django.conf import settings
from django.db import models


CATEGORY_CHOICES = [('fresh', 'Fresh'), ('bakery', 'Bakery')]


class DailyTrip(models.Model):
    id = models.BigAutoField(primary_key=True)
    # Human readable reference, e.g. TRP-001; assigned right after the first save.
    reference = models.CharField(max_length=32, unique=True, null=True, blank=True)
    driver = models.ForeignKey('employees.Employee', on_delete=models.PROTECT, related_name='trips')
    driver_name = models.CharField(max_length=255)
    date = models.DateField()

    # Raw financial inputs
    collection_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    purchase_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    expiry_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    discount_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    petrol_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)

    # Derived outputs
    previous_balance = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    total_amount = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    net_total = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    grand_total = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    expiry_after_tax = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    amount_to_be = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    sales_difference = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    profit = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    balance = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    totals_snapshot = models.JSONField(default=dict)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'daily_trips'
        unique_together = [('driver', 'date')]
        indexes = [
            models.Index(fields=['driver', '-date'], name='daily_trips_driver__a41c7e_idx'),
            models.Index(fields=['-date'], name='daily_trips_date_5d2b90_idx'),
        ]
        ordering = ['-date', '-created_at']

    def __str__(self):
        return f"{self.reference or self.pk} {self.driver_id} {self.date}"


class TripLine(models.Model):
    SOLD = 'SOLD'
    ACCEPTED = 'ACCEPTED'
    TRANSFERRED = 'TRANSFERRED'
    KIND_CHOICES = [(SOLD, 'Sold'), (ACCEPTED, 'Accepted'), (TRANSFERRED, 'Transferred')]

    trip = models.ForeignKey(DailyTrip, on_delete=models.CASCADE, related_name='lines')
    kind = models.CharField(max_length=12, choices=KIND_CHOICES)
    position = models.PositiveIntegerField(default=0)
    product_id = models.CharField(max_length=32)
    product_name = models.CharField(max_length=255)
    category = models.CharField(max_length=10, choices=CATEGORY_CHOICES)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    # TRANSFERRED lines name the receiver; ACCEPTED and TRANSFERRED lines name the sender.
    receiving_driver_id = models.CharField(max_length=32, blank=True, default='')
    receiving_driver_name = models.CharField(max_length=255, blank=True, default='')
    sending_driver_id = models.CharField(max_length=32, blank=True, default='')
    sending_driver_name = models.CharField(max_length=255, blank=True, default='')
    source_trip = models.ForeignKey(
        DailyTrip,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='delivered_lines',
    )

    class Meta:
        db_table = 'daily_trip_lines'
        indexes = [
            models.Index(fields=['trip', 'kind', 'position'], name='daily_trip__trip_id_0f6c2a_idx'),
            models.Index(fields=['source_trip'], name='daily_trip__source__e83b15_idx'),
        ]
        ordering = ['kind', 'position']


class PendingTransfer(models.Model):
    date = models.DateField()
    receiving_driver = models.ForeignKey('employees.Employee', on_delete=models.CASCADE, related_name='pending_transfers')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pending_transfers'
        unique_together = [('date', 'receiving_driver')]

    def __str__(self):
        return f"Pending for {self.receiving_driver_id} on {self.date}"


class PendingTransferLine(models.Model):
    pending = models.ForeignKey(PendingTransfer, on_delete=models.CASCADE, related_name='lines')
    source_trip = models.ForeignKey(DailyTrip, on_delete=models.CASCADE, related_name='pending_lines')
    product_id = models.CharField(max_length=32)
    product_name = models.CharField(max_length=255)
    category = models.CharField(max_length=10, choices=CATEGORY_CHOICES)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    receiving_driver_name = models.CharField(max_length=255, blank=True, default='')
    sending_driver_id = models.CharField(max_length=32)
    sending_driver_name = models.CharField(max_length=255, blank=True, default='')

    class Meta:
        db_table = 'pending_transfer_lines'
        ordering = ['id']
