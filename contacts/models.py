"""Database models for the contacts a company sells to."""

from django.conf import settings
from django.db import models


class Contact(models.Model):
    """A doctor, pharmacy, retailer or institution visited by field reps."""

    class ContactType(models.TextChoices):
        DOCTOR = 'DOCTOR', 'Doctor'
        PHARMACIST = 'PHARMACIST', 'Pharmacist'
        RETAILER = 'RETAILER', 'Retailer'
        HOSPITAL = 'HOSPITAL', 'Hospital'
        CLINIC = 'CLINIC', 'Clinic'
        OTHER = 'OTHER', 'Other'

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='contacts')
    name = models.CharField(max_length=255)
    contact_type = models.CharField(max_length=20, choices=ContactType.choices, default=ContactType.OTHER)
    # Stored as country-code digits; see notifications.phone.normalize_phone
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=10, blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_contacts',
    )
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        indexes = [
            models.Index(fields=['company', 'contact_type'], name='contact_company_type_idx'),
        ]

    def __str__(self):
        return self.name
