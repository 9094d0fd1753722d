"""Database models for companies (tenants) and users."""

from django.contrib.auth.models import AbstractUser
from django.db import models


class Company(models.Model):
    """A tenant. Every business record hangs off exactly one company."""

    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Companies"
        ordering = ['name']

    def __str__(self):
        return self.name


class User(AbstractUser):
    """Custom user model.

    Extends Django's :class:`~django.contrib.auth.models.AbstractUser` with:
    - ``company`` the tenant the user works for
    - ``role`` to separate field reps from managers and admins
    - ``phone_number`` stored as country-code digits, verified through OTP at signup
    """

    class Role(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        MANAGER = 'MANAGER', 'Manager'
        FIELD_REP = 'FIELD_REP', 'Field rep'

    company = models.ForeignKey(Company, on_delete=models.CASCADE, null=True, blank=True, related_name='users')
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.FIELD_REP)
    phone_number = models.CharField(max_length=20, null=True, blank=True)
    phone_verified = models.BooleanField(default=False)

    @property
    def is_manager(self) -> bool:
        return self.role in {self.Role.ADMIN, self.Role.MANAGER}

    def __str__(self):
        return self.username
