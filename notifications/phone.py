"""Phone number helpers built on ``phonenumbers``."""

import re

import phonenumbers
from django.conf import settings


def normalize_phone(raw, region: str | None = None) -> str | None:
    """Return the number as country-code digits without ``+`` (e.g. 919812345678).

    Numbers without a country code are parsed against ``region`` (defaults to
    ``settings.DEFAULT_PHONE_REGION``). Returns None for invalid input.
    """

    if not raw:
        return None

    phone_input = str(raw).strip()
    clean_phone = re.sub(r'(?<!^)\+|[^\d+]', '', phone_input)
    if clean_phone.startswith('00'):
        clean_phone = '+' + clean_phone[2:]
    if not clean_phone:
        return None

    try:
        parsed = phonenumbers.parse(clean_phone, None if clean_phone.startswith('+') else (region or settings.DEFAULT_PHONE_REGION))
    except phonenumbers.NumberParseException:
        return None

    if not phonenumbers.is_valid_number(parsed):
        return None

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164).lstrip('+')


def mask_phone(phone) -> str:
    s = str(phone or '')
    if len(s) <= 5:
        return '***'
    return s[:5] + '***'


def mask_identifier(identifier) -> str:
    """Mask a phone number or e-mail address for log output."""
    s = str(identifier or '')
    if '@' in s:
        local, _, domain = s.partition('@')
        return (local[:2] or '*') + '***@' + domain
    return mask_phone(s)
