"""Database models for the company product catalogue."""

from django.db import models


class Product(models.Model):
    """A product a company's field reps can put on an order."""

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='products')
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['company', 'sku'], name='unique_product_sku_per_company'),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"
