"""Django admin configuration for the product catalogue."""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'sku', 'company', 'category', 'price', 'is_active')
    search_fields = ('name', 'sku')
    list_filter = ('company', 'category', 'is_active')
