"""Django admin configuration for contacts."""

from django.contrib import admin

from .models import Contact


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ('name', 'contact_type', 'company', 'phone', 'city', 'assigned_to', 'is_active')
    search_fields = ('name', 'phone', 'email')
    list_filter = ('contact_type', 'company', 'is_active')
