"""Serializers for the accounts app.

Includes:
- Registration with server-side OTP verification
- OTP send/resend payloads
- Profile and team management
"""

import re

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from core.exceptions import ExternalServiceError
from notifications.phone import normalize_phone

from .models import Company
from .otp import get_otp_service


User = get_user_model()


def validate_phone_field(phone, field_name: str) -> str:
    """Normalize a phone number or raise a field error."""
    normalized = normalize_phone(phone)
    if not normalized:
        raise serializers.ValidationError({
            field_name: f"Phone number {phone} is not valid. Include the country code (e.g. +91 for India)."
        })
    return normalized


class CompanySerializer(serializers.ModelSerializer):

    class Meta:
        model = Company
        fields = ['id', 'name', 'created_at']
        read_only_fields = ['created_at']


class RegisterSerializer(serializers.ModelSerializer):
    """Create a company and its first (admin) user.

    The phone number must be proven with OTP. The client forwards either the
    OTP widget's access token or the code it received; this serializer makes
    the one verification call itself and never accepts a client-side
    "verified" claim.
    """

    password = serializers.CharField(write_only=True, min_length=8)
    company_name = serializers.CharField(write_only=True, max_length=255)
    phone_number = serializers.CharField()
    otp_access_token = serializers.CharField(write_only=True, required=False, allow_blank=True)
    otp_code = serializers.CharField(write_only=True, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = (
            'id', 'username', 'password', 'email', 'first_name', 'last_name',
            'phone_number', 'company_name', 'otp_access_token', 'otp_code',
        )
        read_only_fields = ('id',)

    def validate_username(self, value):
        if not re.match(r'^[a-zA-Z0-9._@+-]+$', value):
            raise serializers.ValidationError("Username may contain letters, digits and . _ @ + - only.")
        if len(value) < 4:
            raise serializers.ValidationError("Username must be at least 4 characters long.")
        return value

    def validate_email(self, value):
        value = (value or '').lower().strip()
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this e-mail already exists.")
        return value

    def validate(self, attrs):
        phone = validate_phone_field(attrs.get('phone_number'), 'phone_number')
        if User.objects.filter(phone_number=phone).exists():
            raise serializers.ValidationError({'phone_number': "A user with this phone number already exists."})
        attrs['phone_number'] = phone

        token = (attrs.pop('otp_access_token', '') or '').strip()
        code = (attrs.pop('otp_code', '') or '').strip()
        if not token and not code:
            raise serializers.ValidationError({'otp': "Provide otp_access_token or otp_code to verify the phone number."})

        service = self.context.get('otp_service') or get_otp_service()
        if token:
            result = service.verify_access_token(token)
        else:
            result = service.verify_otp(phone, code)

        if not result.verified:
            if result.retryable:
                raise ExternalServiceError(result.error or 'OTP provider is unavailable. Please try again.')
            raise serializers.ValidationError({'otp': result.error or "OTP verification failed."})

        # A widget token proves nothing unless it names the verified number
        if token and not result.identifier:
            raise serializers.ValidationError({'otp': "The verified token does not identify a phone number."})
        if result.identifier and result.identifier != phone:
            raise serializers.ValidationError({'otp': "The verified phone number does not match phone_number."})

        return attrs

    @transaction.atomic
    def create(self, validated_data):
        company_name = validated_data.pop('company_name').strip()
        password = validated_data.pop('password')

        company = Company.objects.create(name=company_name)
        user = User(
            company=company,
            role=User.Role.ADMIN,
            phone_verified=True,
            **validated_data,
        )
        user.set_password(password)
        user.save()
        return user


class OTPSendSerializer(serializers.Serializer):
    identifier = serializers.CharField()
    length = serializers.ChoiceField(choices=[4, 6], default=4)
    expiry_minutes = serializers.IntegerField(min_value=1, max_value=30, default=5)


class OTPResendSerializer(serializers.Serializer):
    identifier = serializers.CharField()
    retry_type = serializers.ChoiceField(choices=['text', 'voice'], default='text')


class UserProfileSerializer(serializers.ModelSerializer):
    """Profile of the authenticated user."""

    company = CompanySerializer(read_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'first_name', 'last_name', 'phone_number', 'phone_verified', 'role', 'company')
        read_only_fields = ('username', 'phone_number', 'phone_verified', 'role', 'company')


class TeamMemberSerializer(serializers.ModelSerializer):
    """Users of the requesting admin's company."""

    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ('id', 'username', 'password', 'email', 'first_name', 'last_name', 'phone_number', 'role', 'is_active')

    def validate_phone_number(self, value):
        if not value:
            return value
        normalized = normalize_phone(value)
        if not normalized:
            raise serializers.ValidationError("Enter a valid phone number with country code.")
        return normalized

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(company=self.context['request'].user.company, **validated_data)
        user.set_password(password)
        user.save()
        return user
