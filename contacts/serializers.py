"""Serializers for contacts."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from notifications.phone import normalize_phone

from .models import Contact


class ContactSerializer(serializers.ModelSerializer):
    assigned_to_name = serializers.ReadOnlyField(source='assigned_to.username')
    assigned_to = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.all(), required=False, allow_null=True,
    )

    class Meta:
        model = Contact
        fields = [
            'id', 'name', 'contact_type', 'phone', 'email', 'address', 'city', 'state', 'pincode',
            'assigned_to', 'assigned_to_name', 'notes', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_phone(self, value):
        if not value:
            return ''
        normalized = normalize_phone(value)
        if not normalized:
            raise serializers.ValidationError("Enter a valid phone number with country code.")
        return normalized

    def validate_assigned_to(self, user):
        request = self.context.get('request')
        if user is not None and request is not None and user.company_id != request.user.company_id:
            raise serializers.ValidationError("User does not belong to your company.")
        return user
