"""Django admin configuration for companies and users."""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import Company, User


class CompanyUserInline(admin.TabularInline):
    """Users of a company, read-only."""

    model = User
    fields = ('username', 'email', 'role', 'phone_number', 'is_active')
    readonly_fields = fields
    extra = 0
    can_delete = False
    show_change_link = True


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)
    inlines = [CompanyUserInline]


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    model = User
    list_display = ['username', 'email', 'company', 'role', 'phone_number', 'phone_verified', 'is_staff']
    list_filter = UserAdmin.list_filter + ('role', 'company')

    fieldsets = UserAdmin.fieldsets + (
        ('Company & Role', {'fields': ('company', 'role', 'phone_number', 'phone_verified')}),
    )
