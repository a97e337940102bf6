from django.db import models
from django.utils import timezone


class Employee(models.Model):
    DESIGNATION_CHOICES = [('driver', 'Driver'), ('staff', 'Staff'), ('ceo', 'CEO')]

    id = models.CharField(max_length=32, primary_key=True)  # e.g. EMP-004
    name = models.CharField(max_length=255)
    designation = models.CharField(max_length=10, choices=DESIGNATION_CHOICES, default='driver')
    phone_number = models.CharField(max_length=64, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    route_name = models.CharField(max_length=255, blank=True, default='')
    # Running cash position for drivers; NULL means nothing has been recorded yet.
    balance = models.DecimalField(max_digits=18, decimal_places=4, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'employees'
        indexes = [
            models.Index(fields=['designation', 'is_active'], name='employees_designa_5b1f0e_idx'),
        ]

    @property
    def is_driver(self) -> bool:
        return self.designation == 'driver'

    def __str__(self):
        return f"{self.id} ({self.name})"


class BalanceHistoryEntry(models.Model):
    """One versioned change of a driver's running balance."""
    SCHEMA_VERSION = 2

    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='balance_history')
    version = models.PositiveIntegerField()
    balance = models.DecimalField(max_digits=18, decimal_places=4)
    reason = models.TextField(blank=True, default='')
    updated_by = models.CharField(max_length=150, blank=True, default='')
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'employee_balance_history'
        unique_together = [('employee', 'version')]
        ordering = ['version']

    def __str__(self):
        return f"{self.employee_id} v{self.version}: {self.balance}"
