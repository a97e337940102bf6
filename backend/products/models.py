from django.db import models


class Product(models.Model):
    CATEGORY_CHOICES = [('fresh', 'Fresh'), ('bakery', 'Bakery')]

    id = models.CharField(max_length=32, primary_key=True)  # e.g. PRD-001
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=10, choices=CATEGORY_CHOICES)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        indexes = [
            models.Index(fields=['category', 'is_active'], name='products_categor_8c2d41_idx'),
        ]

    def __str__(self):
        return f"{self.id} {self.name}"
